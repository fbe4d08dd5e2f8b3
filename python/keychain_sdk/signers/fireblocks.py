"""
Location: python/keychain_sdk/signers/fireblocks.py

Summary:
    Fireblocks signer. Creates a Fireblocks transaction that signs either
    the raw message bytes (RAW) or the whole wire transaction
    (PROGRAM_CALL, where Fireblocks also broadcasts), then polls it until
    it reaches a terminal status. Requests are authenticated with an API
    key header and a per-request RS256 JWT.

Usage:
    Construct, then await init() (or use FireblocksSigner.create()) to
    resolve the vault's Solana address. Signing or calling pubkey()
    before init() raises NotInitializedError.

Example:
    from keychain_sdk.signers import FireblocksSigner

    signer = await FireblocksSigner.create(
        api_key="fb-api-key",
        private_key_pem=open("fireblocks_secret.key").read(),
        vault_account_id="0",
    )
    signature = await signer.sign_message(b"hello")
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Optional, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..auth import create_fireblocks_jwt, load_rsa_private_key
from ..encoding import decode_base58_signature, decode_hex_signature, parse_public_key
from ..errors import ConfigError, SignerError, SigningFailedError
from ..signer import BaseSigner
from ..transaction import TransactionHandle
from ..transport import parse_model, request_json
from ..types import FireblocksSignerConfig, load_config


logger = logging.getLogger(__name__)

SERVICE = "Fireblocks"

TRANSACTIONS_PATH = "/v1/transactions"


class TransactionStatus(str, Enum):
    """Fireblocks transaction status values."""
    SUBMITTED = "SUBMITTED"
    QUEUED = "QUEUED"
    PENDING_SIGNATURE = "PENDING_SIGNATURE"
    PENDING_AUTHORIZATION = "PENDING_AUTHORIZATION"
    PENDING_3RD_PARTY_MANUAL_APPROVAL = "PENDING_3RD_PARTY_MANUAL_APPROVAL"
    PENDING_3RD_PARTY = "PENDING_3RD_PARTY"
    BROADCASTING = "BROADCASTING"
    CONFIRMING = "CONFIRMING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    BLOCKED = "BLOCKED"
    FAILED = "FAILED"


FAILED_STATUSES = frozenset({
    TransactionStatus.CANCELLED.value,
    TransactionStatus.REJECTED.value,
    TransactionStatus.BLOCKED.value,
    TransactionStatus.FAILED.value,
})


class VaultAddress(BaseModel):
    address: str


class VaultAddressesResponse(BaseModel):
    addresses: list[VaultAddress] = Field(default_factory=list)


class CreateTransactionResponse(BaseModel):
    id: str
    status: Optional[str] = None


class SignatureData(BaseModel):
    full_sig: Optional[str] = Field(None, alias="fullSig")

    model_config = {"populate_by_name": True}


class SignedMessage(BaseModel):
    signature: Optional[SignatureData] = None


class TransactionResponse(BaseModel):
    """Polled transaction state (GET /v1/transactions/{id})."""
    id: str
    status: str
    signed_messages: Optional[list[SignedMessage]] = Field(None, alias="signedMessages")
    tx_hash: Optional[str] = Field(None, alias="txHash")

    model_config = {"populate_by_name": True}


def extract_signature(transaction: TransactionResponse) -> Signature:
    """
    Extract the signature from a COMPLETED transaction.

    The RAW signature (signedMessages[0].signature.fullSig, hex) is preferred;
    the broadcast transaction hash (txHash, base58) is the fallback.

    Raises:
        SigningFailedError: If neither field is present or the length is wrong
    """
    if transaction.signed_messages:
        first = transaction.signed_messages[0].signature
        if first is not None and first.full_sig:
            return decode_hex_signature(first.full_sig, "Fireblocks fullSig")

    if transaction.tx_hash:
        return decode_base58_signature(transaction.tx_hash, "Fireblocks txHash")

    raise SigningFailedError("No signature found in response (no signedMessages or txHash)")


class FireblocksSigner(BaseSigner):
    """
    Signer backed by a Fireblocks vault account.

    Attributes:
        config: The signer configuration (RSA key hidden from repr)
    """

    backend = "fireblocks"

    def __init__(
        self,
        config: Union[FireblocksSignerConfig, dict, None] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        """
        Initialize the Fireblocks signer. Call init() before signing.

        Args:
            config: FireblocksSignerConfig or equivalent mapping
            http_client: Optional shared HTTP client (not closed by the signer)
            **kwargs: Config fields, when config is not given

        Raises:
            ConfigError: If the config is invalid
            KeyFormatError: If the PEM is not an RSA private key
        """
        self.config = load_config(FireblocksSignerConfig, config, kwargs)
        super().__init__(self.config.request_delay_ms, http_client)
        self._private_key = load_rsa_private_key(self.config.private_key_pem)
        self._base_url = self.config.api_base_url.rstrip("/")
        self._vault_path = f"/v1/vault/accounts/{quote(self.config.vault_account_id, safe='')}"
        self._pubkey: Optional[Pubkey] = None

    @classmethod
    async def create(
        cls,
        config: Union[FireblocksSignerConfig, dict, None] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ) -> "FireblocksSigner":
        """Construct a signer and resolve its vault address."""
        signer = cls(config, http_client=http_client, **kwargs)
        await signer.init()
        return signer

    async def _request(self, method: str, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        # the JWT body hash covers the exact bytes sent
        content = json.dumps(body) if body is not None else ""
        token = create_fireblocks_jwt(self.config.api_key, self._private_key, path, content)
        headers = {
            "Authorization": f"Bearer {token}",
            "X-API-Key": self.config.api_key,
        }
        if body is not None:
            headers["Content-Type"] = "application/json"
        return await request_json(
            self._http, method, f"{self._base_url}{path}",
            service=SERVICE, headers=headers, content=content or None,
        )

    @property
    def is_initialized(self) -> bool:
        return self._pubkey is not None

    async def init(self) -> None:
        """
        Fetch the vault's first Solana address. Idempotent.

        Raises:
            RemoteApiError: If the address lookup fails
            ConfigError: If the vault has no valid address for the asset
        """
        if self._pubkey is not None:
            return

        path = f"{self._vault_path}/{quote(self.config.asset_id, safe='')}/addresses_paginated"
        data = await self._request("GET", path)
        addresses = parse_model(VaultAddressesResponse, data, SERVICE).addresses
        if not addresses or not addresses[0].address:
            raise ConfigError("No addresses found in Fireblocks vault")
        self._pubkey = parse_public_key(addresses[0].address)
        logger.info(
            "Fireblocks signer initialized for vault account %s", self.config.vault_account_id
        )

    def pubkey(self) -> Pubkey:
        self._ensure_initialized()
        return self._pubkey

    def _source(self) -> dict[str, str]:
        return {"type": "VAULT_ACCOUNT", "id": self.config.vault_account_id}

    async def _create_and_wait(self, request: dict[str, Any]) -> Signature:
        data = await self._request("POST", TRANSACTIONS_PATH, request)
        created = parse_model(CreateTransactionResponse, data, SERVICE)
        logger.debug("Fireblocks %s transaction created: %s", request["operation"], created.id)
        return await self._poll_for_signature(created.id)

    async def _poll_for_signature(self, transaction_id: str) -> Signature:
        """
        Poll a transaction until it completes, fails or the budget runs out.

        Raises:
            SigningFailedError: On a failure status, a missing signature or timeout
        """
        path = f"{TRANSACTIONS_PATH}/{quote(transaction_id, safe='')}"
        attempts = self.config.max_poll_attempts

        for attempt in range(attempts):
            data = await self._request("GET", path)
            transaction = parse_model(TransactionResponse, data, SERVICE)

            if transaction.status == TransactionStatus.COMPLETED.value:
                return extract_signature(transaction)

            if transaction.status in FAILED_STATUSES:
                logger.error(
                    "Fireblocks transaction %s ended with status %s",
                    transaction_id, transaction.status,
                )
                raise SigningFailedError(
                    f"Transaction failed with status: {transaction.status}"
                )

            if attempt + 1 < attempts:
                await asyncio.sleep(self.config.poll_interval_ms / 1000)

        logger.error("Fireblocks transaction %s timed out after %s polls", transaction_id, attempts)
        raise SigningFailedError(f"Transaction did not complete within {attempts} attempts")

    async def _sign_bytes(self, message: bytes) -> Signature:
        return await self._create_and_wait({
            "assetId": self.config.asset_id,
            "operation": "RAW",
            "source": self._source(),
            "extraParameters": {
                "rawMessageData": {"messages": [{"content": message.hex()}]},
            },
        })

    async def _sign_transaction_bytes(self, transaction: TransactionHandle) -> Signature:
        if not self.config.use_program_call:
            return await self._sign_bytes(transaction.message_bytes())

        return await self._create_and_wait({
            "assetId": self.config.asset_id,
            "operation": "PROGRAM_CALL",
            "source": self._source(),
            "extraParameters": {"programCallData": transaction.to_base64()},
        })

    async def is_available(self) -> bool:
        """
        Check that the vault account is reachable with these credentials.

        Returns:
            True if the vault account lookup succeeds
        """
        try:
            await self._request("GET", self._vault_path)
        except SignerError as e:
            logger.debug("Fireblocks availability check failed: %s", e.code.value)
            return False
        return True
