"""
Location: python/keychain_sdk/signers/vault.py

Summary:
    HashiCorp Vault transit engine signer. The Ed25519 key lives in the
    transit engine; messages are sent base64-encoded to the sign endpoint
    and the versioned signature Vault returns is decoded back to 64 bytes.

Usage:
    Requires an ed25519 transit key and a token with update capability on
    {mount}/sign/{key} and read capability on {mount}/keys/{key}.

Example:
    from keychain_sdk.signers import VaultSigner

    signer = VaultSigner(
        vault_addr="https://vault.example.com:8200",
        vault_token="hvs.XXXX",
        key_name="solana-hot",
        public_key="4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T",
    )
    signature = await signer.sign_message(b"hello")
"""

import base64
import logging
from typing import Optional, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..encoding import decode_base64_signature, parse_public_key
from ..errors import SerializationError, SignerError
from ..signer import BaseSigner
from ..transport import parse_model, request_json
from ..types import VaultSignerConfig, load_config


logger = logging.getLogger(__name__)

SERVICE = "Vault"


class VaultSignData(BaseModel):
    signature: str
    key_version: Optional[int] = None


class VaultSignResponse(BaseModel):
    data: VaultSignData


class VaultKeyData(BaseModel):
    type: str
    name: Optional[str] = None


class VaultKeyResponse(BaseModel):
    data: VaultKeyData


def decode_vault_signature(value: str) -> Signature:
    """
    Decode a transit signature of the form "vault:v<N>:<base64>".

    Raises:
        SerializationError: If the prefix is missing or malformed
        SigningFailedError: If the decoded signature is not 64 bytes
    """
    parts = value.split(":", 2)
    if len(parts) != 3 or parts[0] != "vault":
        raise SerializationError("Unexpected Vault signature format")
    # key version, "v" followed by digits
    if not parts[1].startswith("v") or not parts[1][1:].isdigit():
        raise SerializationError("Unexpected Vault signature format")
    return decode_base64_signature(parts[2], "Vault signature")


class VaultSigner(BaseSigner):
    """
    Signer backed by a Vault transit Ed25519 key.

    Attributes:
        config: The signer configuration (token hidden from repr)
    """

    backend = "vault"

    def __init__(
        self,
        config: Union[VaultSignerConfig, dict, None] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        """
        Initialize the Vault signer.

        Args:
            config: VaultSignerConfig or equivalent mapping
            http_client: Optional shared HTTP client (not closed by the signer)
            **kwargs: Config fields, when config is not given

        Raises:
            ConfigError: If the config or public key is invalid
        """
        self.config = load_config(VaultSignerConfig, config, kwargs)
        super().__init__(self.config.request_delay_ms, http_client)
        self._pubkey = parse_public_key(self.config.public_key)
        self._base_url = self.config.vault_addr.rstrip("/")
        self._mount = self.config.mount_path.strip("/")
        self._key = quote(self.config.key_name, safe="")

    def _headers(self) -> dict[str, str]:
        headers = {"X-Vault-Token": self.config.vault_token}
        if self.config.namespace:
            headers["X-Vault-Namespace"] = self.config.namespace
        return headers

    def pubkey(self) -> Pubkey:
        return self._pubkey

    async def _sign_bytes(self, message: bytes) -> Signature:
        url = f"{self._base_url}/v1/{self._mount}/sign/{self._key}"
        body = {"input": base64.b64encode(message).decode("ascii")}
        data = await request_json(
            self._http, "POST", url,
            service=SERVICE, headers=self._headers(), json_body=body,
        )
        result = parse_model(VaultSignResponse, data, SERVICE)
        return decode_vault_signature(result.data.signature)

    async def is_available(self) -> bool:
        """
        Check that the transit key exists and is an ed25519 key.

        Returns:
            True if the key metadata is readable and of type ed25519
        """
        url = f"{self._base_url}/v1/{self._mount}/keys/{self._key}"
        try:
            data = await request_json(
                self._http, "GET", url, service=SERVICE, headers=self._headers()
            )
            key = parse_model(VaultKeyResponse, data, SERVICE)
        except SignerError as e:
            logger.debug("Vault availability check failed: %s", e.code.value)
            return False
        return key.data.type == "ed25519"
