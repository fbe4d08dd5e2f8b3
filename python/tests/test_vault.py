"""
Tests for keychain_sdk.signers.vault module.

Tests VaultSigner against a mocked transit engine: request shape,
signature decoding, error mapping and the key metadata availability probe.
"""

import asyncio
import base64
import json

import httpx
import pytest

from keychain_sdk.errors import (
    ConfigError,
    RemoteApiError,
    SerializationError,
    SigningFailedError,
)
from keychain_sdk.signers.vault import VaultSigner, decode_vault_signature


SIGN_PATH = "/v1/transit/sign/solana-hot"
KEY_PATH = "/v1/transit/keys/solana-hot"


@pytest.fixture
def transit(mock_api, keypair):
    """Transit sign endpoint that signs with the test keypair."""
    def sign(request: httpx.Request) -> httpx.Response:
        message = base64.b64decode(json.loads(request.content)["input"])
        signature = base64.b64encode(bytes(keypair.sign_message(message))).decode()
        return httpx.Response(200, json={"data": {"signature": f"vault:v1:{signature}", "key_version": 1}})

    mock_api.add("POST", SIGN_PATH, sign)
    return mock_api


def make_signer(keypair, client, **overrides):
    config = {
        "vault_addr": "https://vault.example.com:8200/",
        "vault_token": "hvs.test-token",
        "key_name": "solana-hot",
        "public_key": str(keypair.pubkey()),
    }
    config.update(overrides)
    return VaultSigner(http_client=client, **config)


class TestVaultSignerInit:
    """Tests for VaultSigner construction."""

    def test_pubkey_from_config(self, keypair, mock_api):
        """Test that the public key comes from config."""
        signer = make_signer(keypair, mock_api.client)
        assert signer.pubkey() == keypair.pubkey()

    def test_invalid_public_key(self, keypair, mock_api):
        """Test that an invalid public key is a config error."""
        with pytest.raises(ConfigError):
            make_signer(keypair, mock_api.client, public_key="bogus")

    def test_token_not_in_repr(self, keypair, mock_api):
        """Test that the token is not exposed in repr."""
        signer = make_signer(keypair, mock_api.client)
        assert "hvs.test-token" not in repr(signer)
        assert "hvs.test-token" not in repr(signer.config)


class TestVaultSignerSigning:
    """Tests for signing through the transit engine."""

    async def test_sign_message(self, keypair, transit):
        """Test that the signature verifies and the request is well formed."""
        signer = make_signer(keypair, transit.client)

        signature = await signer.sign_message(b"hello vault")

        assert signature.verify(keypair.pubkey(), b"hello vault")
        request = transit.calls("POST", SIGN_PATH)[0]
        assert request.headers["X-Vault-Token"] == "hvs.test-token"
        assert "X-Vault-Namespace" not in request.headers
        assert json.loads(request.content) == {
            "input": base64.b64encode(b"hello vault").decode()
        }

    async def test_namespace_and_mount(self, keypair, mock_api):
        """Test custom mount path and namespace header."""
        mock_api.add("POST", "/v1/solana-transit/sign/solana-hot", lambda r: httpx.Response(
            200, json={"data": {"signature": "vault:v2:" + base64.b64encode(bytes(64)).decode()}}
        ))
        signer = make_signer(
            keypair, mock_api.client, mount_path="solana-transit", namespace="team-a"
        )

        await signer.sign_message(b"x")

        assert mock_api.requests[0].headers["X-Vault-Namespace"] == "team-a"

    async def test_sign_transaction(self, keypair, transit, make_legacy_transaction):
        """Test that the signature lands in the transaction."""
        signer = make_signer(keypair, transit.client)
        handle = make_legacy_transaction([keypair.pubkey()])

        signature = await signer.sign_transaction(handle)

        assert handle.get_signature(keypair.pubkey()) == signature
        handle.transaction.verify()

    async def test_http_error(self, keypair, mock_api):
        """Test that a non-2xx response raises RemoteApiError with details."""
        mock_api.add("POST", SIGN_PATH, lambda r: httpx.Response(403, json={"errors": ["permission denied"]}))
        signer = make_signer(keypair, mock_api.client)

        with pytest.raises(RemoteApiError) as exc_info:
            await signer.sign_message(b"x")

        assert exc_info.value.status == 403
        assert "permission denied" in exc_info.value.response

    async def test_network_error(self, keypair, mock_api):
        """Test that transport failures raise RemoteApiError."""
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        mock_api.add("POST", SIGN_PATH, fail)
        signer = make_signer(keypair, mock_api.client)

        with pytest.raises(RemoteApiError):
            await signer.sign_message(b"x")

    async def test_unexpected_body(self, keypair, mock_api):
        """Test that a body without data.signature raises SerializationError."""
        mock_api.add("POST", SIGN_PATH, {"data": {}})
        signer = make_signer(keypair, mock_api.client)

        with pytest.raises(SerializationError):
            await signer.sign_message(b"x")

    async def test_non_json_body(self, keypair, mock_api):
        """Test that a non-JSON body raises SerializationError."""
        mock_api.add("POST", SIGN_PATH, lambda r: httpx.Response(200, text="<html>"))
        signer = make_signer(keypair, mock_api.client)

        with pytest.raises(SerializationError):
            await signer.sign_message(b"x")

    async def test_short_signature(self, keypair, mock_api):
        """Test that a 63-byte signature raises SigningFailedError."""
        short = base64.b64encode(bytes(63)).decode()
        mock_api.add("POST", SIGN_PATH, {"data": {"signature": f"vault:v1:{short}"}})
        signer = make_signer(keypair, mock_api.client)

        with pytest.raises(SigningFailedError):
            await signer.sign_message(b"x")

    async def test_batch_order_with_out_of_order_responses(self, keypair, mock_api):
        """Test that batch results map to inputs when responses arrive reversed."""
        async def slow_sign(request: httpx.Request) -> httpx.Response:
            message = base64.b64decode(json.loads(request.content)["input"])
            await asyncio.sleep(0.02 * (3 - message[0]))
            signature = base64.b64encode(bytes(keypair.sign_message(message))).decode()
            return httpx.Response(200, json={"data": {"signature": f"vault:v1:{signature}"}})

        mock_api.add("POST", SIGN_PATH, slow_sign)
        signer = make_signer(keypair, mock_api.client)
        messages = [bytes([i]) + b"-payload" for i in range(4)]

        signatures = await signer.sign_messages(messages)

        for message, signature in zip(messages, signatures):
            assert signature.verify(keypair.pubkey(), message)


class TestDecodeVaultSignature:
    """Tests for decode_vault_signature()."""

    def test_strips_prefix(self):
        """Test that the versioned prefix is stripped."""
        raw = bytes(range(64))
        value = "vault:v12:" + base64.b64encode(raw).decode()
        assert bytes(decode_vault_signature(value)) == raw

    @pytest.mark.parametrize("value", [
        "", "v1:abc", "transit:v1:abc", "vault:1:abc", "vault:v:abc", "vault:vx:abc",
    ])
    def test_bad_prefix(self, value):
        """Test that malformed prefixes raise SerializationError."""
        with pytest.raises(SerializationError):
            decode_vault_signature(value)


class TestVaultSignerAvailability:
    """Tests for is_available()."""

    async def test_ed25519_key(self, keypair, mock_api):
        """Test that an ed25519 transit key is available."""
        mock_api.add("GET", KEY_PATH, {"data": {"name": "solana-hot", "type": "ed25519"}})
        assert await make_signer(keypair, mock_api.client).is_available() is True

    async def test_wrong_key_type(self, keypair, mock_api):
        """Test that a non-ed25519 key is unavailable."""
        mock_api.add("GET", KEY_PATH, {"data": {"name": "solana-hot", "type": "aes256-gcm96"}})
        assert await make_signer(keypair, mock_api.client).is_available() is False

    async def test_malformed_metadata(self, keypair, mock_api):
        """Test that malformed metadata is unavailable, not an error."""
        mock_api.add("GET", KEY_PATH, {"unexpected": True})
        assert await make_signer(keypair, mock_api.client).is_available() is False

    async def test_network_error(self, keypair, mock_api):
        """Test that a network error is unavailable, not an error."""
        def fail(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        mock_api.add("GET", KEY_PATH, fail)
        assert await make_signer(keypair, mock_api.client).is_available() is False

    async def test_missing_key(self, keypair, mock_api):
        """Test that a 404 is unavailable."""
        assert await make_signer(keypair, mock_api.client).is_available() is False
