"""
Location: python/keychain_sdk/signers/turnkey.py

Summary:
    Turnkey signer. Every request body is stamped with the organization's
    P-256 API key; signing uses the sign_raw_payload activity, whose
    result carries the Ed25519 signature as separate r and s hex
    components.

Usage:
    The Turnkey private key must be an Ed25519 (Solana) key. The API key
    pair is the hex pair shown when the API key was created.

Example:
    from keychain_sdk.signers import TurnkeySigner

    signer = TurnkeySigner(
        api_public_key="02ab...",
        api_private_key="5f1c...",
        organization_id="org-uuid",
        private_key_id="pk-uuid",
        public_key="4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T",
    )
"""

import json
import logging
import time
from typing import Any, Optional, Union

import httpx
from pydantic import BaseModel, Field
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..auth import create_turnkey_stamp, load_turnkey_api_key
from ..encoding import parse_public_key, signature_from_components
from ..errors import SignerError, SigningFailedError
from ..signer import BaseSigner
from ..transport import parse_model, request_json
from ..types import TurnkeySignerConfig, load_config


logger = logging.getLogger(__name__)

SERVICE = "Turnkey"

SIGN_RAW_PAYLOAD_PATH = "/public/v1/submit/sign_raw_payload"
WHOAMI_PATH = "/public/v1/query/whoami"

ACTIVITY_TYPE_SIGN_RAW_PAYLOAD = "ACTIVITY_TYPE_SIGN_RAW_PAYLOAD_V2"
ACTIVITY_STATUS_COMPLETED = "ACTIVITY_STATUS_COMPLETED"
PAYLOAD_ENCODING_HEX = "PAYLOAD_ENCODING_HEXADECIMAL"
# Ed25519 hashes internally, the payload is passed through
HASH_FUNCTION_NOT_APPLICABLE = "HASH_FUNCTION_NOT_APPLICABLE"


class SignRawPayloadResult(BaseModel):
    r: str
    s: str
    v: Optional[str] = None


class ActivityResult(BaseModel):
    sign_raw_payload_result: Optional[SignRawPayloadResult] = Field(
        None, alias="signRawPayloadResult"
    )

    model_config = {"populate_by_name": True}


class Activity(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    result: Optional[ActivityResult] = None


class ActivityResponse(BaseModel):
    activity: Activity


class TurnkeySigner(BaseSigner):
    """
    Signer backed by a Turnkey-managed Ed25519 private key.

    Attributes:
        config: The signer configuration (API private key hidden from repr)
    """

    backend = "turnkey"

    def __init__(
        self,
        config: Union[TurnkeySignerConfig, dict, None] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        """
        Initialize the Turnkey signer.

        Args:
            config: TurnkeySignerConfig or equivalent mapping
            http_client: Optional shared HTTP client (not closed by the signer)
            **kwargs: Config fields, when config is not given

        Raises:
            ConfigError: If the config is invalid or the API key pair mismatches
            KeyFormatError: If the API private key is not a P-256 scalar
        """
        self.config = load_config(TurnkeySignerConfig, config, kwargs)
        super().__init__(self.config.request_delay_ms, http_client)
        self._pubkey = parse_public_key(self.config.public_key)
        self._api_key = load_turnkey_api_key(
            self.config.api_private_key, self.config.api_public_key
        )
        self._base_url = self.config.api_base_url.rstrip("/")

    def pubkey(self) -> Pubkey:
        return self._pubkey

    async def _post(self, path: str, body: dict[str, Any]) -> Any:
        # the stamp covers the exact bytes sent
        content = json.dumps(body, separators=(",", ":"))
        headers = {
            "Content-Type": "application/json",
            "X-Stamp": create_turnkey_stamp(content, self._api_key, self.config.api_public_key),
        }
        return await request_json(
            self._http, "POST", f"{self._base_url}{path}",
            service=SERVICE, headers=headers, content=content,
        )

    async def _sign_bytes(self, message: bytes) -> Signature:
        body = {
            "type": ACTIVITY_TYPE_SIGN_RAW_PAYLOAD,
            "timestampMs": str(int(time.time() * 1000)),
            "organizationId": self.config.organization_id,
            "parameters": {
                "signWith": self.config.private_key_id,
                "payload": message.hex(),
                "encoding": PAYLOAD_ENCODING_HEX,
                "hashFunction": HASH_FUNCTION_NOT_APPLICABLE,
            },
        }
        data = await self._post(SIGN_RAW_PAYLOAD_PATH, body)
        activity = parse_model(ActivityResponse, data, SERVICE).activity

        if activity.status is not None and activity.status != ACTIVITY_STATUS_COMPLETED:
            raise SigningFailedError(f"Turnkey activity did not complete: {activity.status}")

        result = activity.result.sign_raw_payload_result if activity.result else None
        if result is None:
            raise SigningFailedError("Turnkey response has no signRawPayloadResult")

        return signature_from_components(result.r, result.s)

    async def is_available(self) -> bool:
        """
        Check the API key against the whoami endpoint.

        Returns:
            True if Turnkey accepts the stamped request
        """
        try:
            await self._post(WHOAMI_PATH, {"organizationId": self.config.organization_id})
        except SignerError as e:
            logger.debug("Turnkey availability check failed: %s", e.code.value)
            return False
        return True
