"""
Tests for keychain_sdk.signers.turnkey module.

Tests TurnkeySigner against a mocked Turnkey API: stamped requests, the
sign_raw_payload activity body, r/s reconstruction with short components,
activity status handling and the whoami availability probe.
"""

import base64
import json

import httpx
import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from keychain_sdk.errors import (
    ConfigError,
    KeyFormatError,
    RemoteApiError,
    SigningFailedError,
)
from keychain_sdk.signers.turnkey import TurnkeySigner


SIGN_PATH = "/public/v1/submit/sign_raw_payload"
WHOAMI_PATH = "/public/v1/query/whoami"


def make_signer(keypair, api_key, client, **overrides):
    private_hex, public_hex, _ = api_key
    config = {
        "api_public_key": public_hex,
        "api_private_key": private_hex,
        "organization_id": "org-1",
        "private_key_id": "pk-1",
        "public_key": str(keypair.pubkey()),
    }
    config.update(overrides)
    return TurnkeySigner(http_client=client, **config)


def activity(r: str, s: str, status: str = "ACTIVITY_STATUS_COMPLETED") -> dict:
    return {
        "activity": {
            "id": "act-1",
            "status": status,
            "result": {"signRawPayloadResult": {"r": r, "s": s, "v": "00"}},
        }
    }


def decode_stamp(value: str) -> dict:
    padded = value + "=" * (-len(value) % 4)
    return json.loads(base64.urlsafe_b64decode(padded))


@pytest.fixture
def turnkey(mock_api, keypair):
    """sign_raw_payload endpoint that signs with the test keypair."""
    def sign(request):
        body = json.loads(request.content)
        message = bytes.fromhex(body["parameters"]["payload"])
        signature = bytes(keypair.sign_message(message))
        return httpx.Response(200, json=activity(signature[:32].hex(), signature[32:].hex()))

    mock_api.add("POST", SIGN_PATH, sign)
    return mock_api


class TestTurnkeySignerInit:
    """Tests for TurnkeySigner construction."""

    def test_valid(self, keypair, turnkey_api_key, mock_api):
        """Test that the configured public key is reported."""
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)
        assert signer.pubkey() == keypair.pubkey()

    def test_invalid_api_private_key(self, keypair, turnkey_api_key, mock_api):
        """Test that a non-hex API private key is a key format error."""
        with pytest.raises(KeyFormatError):
            make_signer(keypair, turnkey_api_key, mock_api.client, api_private_key="not-hex")

    def test_mismatched_api_public_key(self, keypair, turnkey_api_key, mock_api):
        """Test that an API public key from another pair is rejected."""
        other = ec.generate_private_key(ec.SECP256R1())
        other_hex = format(other.private_numbers().private_value, "064x")
        with pytest.raises(ConfigError):
            make_signer(keypair, turnkey_api_key, mock_api.client, api_private_key=other_hex)


class TestTurnkeySignerSigning:
    """Tests for signing via sign_raw_payload."""

    async def test_sign_message(self, keypair, turnkey_api_key, turnkey):
        """Test that the reconstructed signature verifies."""
        signer = make_signer(keypair, turnkey_api_key, turnkey.client)

        signature = await signer.sign_message(b"hello turnkey")

        assert signature.verify(keypair.pubkey(), b"hello turnkey")

    async def test_request_body(self, keypair, turnkey_api_key, turnkey):
        """Test the activity request shape."""
        signer = make_signer(keypair, turnkey_api_key, turnkey.client)
        await signer.sign_message(b"\x01\x02")

        body = json.loads(turnkey.calls("POST", SIGN_PATH)[0].content)
        assert body["type"] == "ACTIVITY_TYPE_SIGN_RAW_PAYLOAD_V2"
        assert body["organizationId"] == "org-1"
        assert body["timestampMs"].isdigit()
        assert body["parameters"] == {
            "signWith": "pk-1",
            "payload": "0102",
            "encoding": "PAYLOAD_ENCODING_HEXADECIMAL",
            "hashFunction": "HASH_FUNCTION_NOT_APPLICABLE",
        }

    async def test_stamp_signs_body(self, keypair, turnkey_api_key, turnkey):
        """Test that X-Stamp carries a valid P-256 signature of the body."""
        _, public_hex, api_key = turnkey_api_key
        signer = make_signer(keypair, turnkey_api_key, turnkey.client)
        await signer.sign_message(b"stamped")

        request = turnkey.calls("POST", SIGN_PATH)[0]
        stamp = decode_stamp(request.headers["X-Stamp"])
        assert stamp["publicKey"] == public_hex
        assert stamp["scheme"] == "SIGNATURE_SCHEME_TK_API_P256"
        api_key.public_key().verify(
            bytes.fromhex(stamp["signature"]),
            request.content,
            ec.ECDSA(hashes.SHA256()),
        )

    async def test_sign_transaction(self, keypair, turnkey_api_key, turnkey, make_versioned_transaction):
        """Test that the signature lands in a v0 transaction."""
        signer = make_signer(keypair, turnkey_api_key, turnkey.client)
        handle = make_versioned_transaction([keypair.pubkey()])

        signature = await signer.sign_transaction(handle)

        assert handle.transaction.signatures[0] == signature
        assert signature.verify(keypair.pubkey(), handle.message_bytes())

    async def test_one_byte_component(self, keypair, turnkey_api_key, mock_api):
        """Test left padding of a 1-byte r component."""
        s = bytes([0x5A] * 32)
        mock_api.add("POST", SIGN_PATH, activity("07", s.hex()))
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)

        signature = await signer.sign_message(b"x")

        assert bytes(signature) == bytes(31) + b"\x07" + s

    async def test_stripped_components(self, keypair, turnkey_api_key, mock_api):
        """Test components with leading zero bytes stripped by the API."""
        r = b"\x00" + bytes([1] * 31)
        s = b"\x00\x00\x00" + bytes([2] * 29)
        mock_api.add("POST", SIGN_PATH, activity(r.lstrip(b"\x00").hex(), s.lstrip(b"\x00").hex()))
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)

        signature = await signer.sign_message(b"x")

        assert bytes(signature) == r + s

    async def test_oversized_component(self, keypair, turnkey_api_key, mock_api):
        """Test that a 33-byte component raises SigningFailedError."""
        mock_api.add("POST", SIGN_PATH, activity(bytes([1] * 33).hex(), bytes([2] * 32).hex()))
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)

        with pytest.raises(SigningFailedError):
            await signer.sign_message(b"x")

    async def test_empty_component(self, keypair, turnkey_api_key, mock_api, make_legacy_transaction):
        """Test that an empty r fails and leaves the transaction unsigned."""
        mock_api.add("POST", SIGN_PATH, activity("", bytes([2] * 32).hex()))
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)
        handle = make_legacy_transaction([keypair.pubkey()])

        with pytest.raises(SigningFailedError):
            await signer.sign_transaction(handle)
        assert handle.get_signature(keypair.pubkey()) is None

    async def test_compact_body(self, keypair, turnkey_api_key, turnkey):
        """Test that the request body is compact JSON."""
        signer = make_signer(keypair, turnkey_api_key, turnkey.client)
        await signer.sign_message(b"compact")

        content = turnkey.calls("POST", SIGN_PATH)[0].content
        assert b", " not in content
        assert b": " not in content

    async def test_failed_activity(self, keypair, turnkey_api_key, mock_api):
        """Test that a non-completed activity raises SigningFailedError."""
        mock_api.add("POST", SIGN_PATH, activity("01", "02", status="ACTIVITY_STATUS_FAILED"))
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)

        with pytest.raises(SigningFailedError):
            await signer.sign_message(b"x")

    async def test_missing_result(self, keypair, turnkey_api_key, mock_api):
        """Test that a completed activity without a result fails."""
        mock_api.add("POST", SIGN_PATH, {"activity": {"status": "ACTIVITY_STATUS_COMPLETED"}})
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)

        with pytest.raises(SigningFailedError):
            await signer.sign_message(b"x")

    async def test_api_error(self, keypair, turnkey_api_key, mock_api):
        """Test that a 401 raises RemoteApiError."""
        mock_api.add("POST", SIGN_PATH, lambda r: httpx.Response(401, json={"message": "bad stamp"}))
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)

        with pytest.raises(RemoteApiError) as exc_info:
            await signer.sign_message(b"x")
        assert exc_info.value.status == 401


class TestTurnkeySignerAvailability:
    """Tests for is_available()."""

    async def test_whoami_ok(self, keypair, turnkey_api_key, mock_api):
        """Test that a successful whoami is available."""
        mock_api.add("POST", WHOAMI_PATH, {"organizationId": "org-1", "userId": "u-1"})
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)

        assert await signer.is_available() is True
        body = json.loads(mock_api.calls("POST", WHOAMI_PATH)[0].content)
        assert body == {"organizationId": "org-1"}

    async def test_whoami_rejected(self, keypair, turnkey_api_key, mock_api):
        """Test that a rejected whoami is unavailable."""
        mock_api.add("POST", WHOAMI_PATH, lambda r: httpx.Response(403, json={}))
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)
        assert await signer.is_available() is False

    async def test_network_error(self, keypair, turnkey_api_key, mock_api):
        """Test that a network error is unavailable."""
        def fail(request):
            raise httpx.ReadTimeout("timed out", request=request)

        mock_api.add("POST", WHOAMI_PATH, fail)
        signer = make_signer(keypair, turnkey_api_key, mock_api.client)
        assert await signer.is_available() is False
