"""
Location: python/keychain_sdk/signers/privy.py

Summary:
    Privy server wallet signer. Signs through the Privy wallet RPC API
    using HTTP Basic authentication with the app id and secret. The
    wallet's public key is looked up once by init().

Usage:
    Construct, then await init() (or use PrivySigner.create()). Signing or
    calling pubkey() before init() raises NotInitializedError.

Example:
    from keychain_sdk.signers import PrivySigner

    signer = await PrivySigner.create(
        app_id="cm0000000000000000000000",
        app_secret="privy_app_secret_XXXX",
        wallet_id="wallet_abc123",
    )
    signature = await signer.sign_message(b"hello")
"""

import base64
import logging
from typing import Literal, Optional, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..auth import basic_auth_header
from ..encoding import decode_base64_signature, parse_public_key
from ..errors import ConfigError, SignerError, SigningFailedError
from ..signer import BaseSigner
from ..transaction import TransactionHandle
from ..transport import parse_model, request_json
from ..types import PrivySignerConfig, load_config


logger = logging.getLogger(__name__)

SERVICE = "Privy"


class WalletResponse(BaseModel):
    """Wallet lookup response (GET /wallets/{id})."""
    id: str
    address: str
    chain_type: Optional[str] = None


class SignTransactionData(BaseModel):
    signed_transaction: str
    encoding: Literal["base64"] = "base64"


class SignTransactionResponse(BaseModel):
    data: SignTransactionData
    method: Optional[str] = None


class SignMessageData(BaseModel):
    signature: str
    encoding: Literal["base64"] = "base64"


class SignMessageResponse(BaseModel):
    data: SignMessageData
    method: Optional[str] = None


class PrivySigner(BaseSigner):
    """
    Signer backed by a Privy server wallet.

    For transactions Privy returns the whole re-signed transaction. Only
    the signature in this wallet's slot is taken from it; the caller's
    transaction keeps every other slot as it was.

    Attributes:
        config: The signer configuration (app secret hidden from repr)
    """

    backend = "privy"

    def __init__(
        self,
        config: Union[PrivySignerConfig, dict, None] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        """
        Initialize the Privy signer. Call init() before signing.

        Args:
            config: PrivySignerConfig or equivalent mapping
            http_client: Optional shared HTTP client (not closed by the signer)
            **kwargs: Config fields, when config is not given

        Raises:
            ConfigError: If the config is invalid
        """
        self.config = load_config(PrivySignerConfig, config, kwargs)
        super().__init__(self.config.request_delay_ms, http_client)
        self._base_url = self.config.api_base_url.rstrip("/")
        self._wallet_url = f"{self._base_url}/wallets/{quote(self.config.wallet_id, safe='')}"
        self._pubkey: Optional[Pubkey] = None

    @classmethod
    async def create(
        cls,
        config: Union[PrivySignerConfig, dict, None] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ) -> "PrivySigner":
        """Construct a signer and resolve its wallet address."""
        signer = cls(config, http_client=http_client, **kwargs)
        await signer.init()
        return signer

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": basic_auth_header(self.config.app_id, self.config.app_secret),
            "privy-app-id": self.config.app_id,
        }

    async def _get_wallet(self) -> WalletResponse:
        data = await request_json(
            self._http, "GET", self._wallet_url, service=SERVICE, headers=self._headers()
        )
        return parse_model(WalletResponse, data, SERVICE)

    @property
    def is_initialized(self) -> bool:
        return self._pubkey is not None

    async def init(self) -> None:
        """
        Look up the wallet and store its public key. Idempotent.

        Raises:
            RemoteApiError: If the wallet lookup fails
            ConfigError: If the wallet is not a Solana wallet
        """
        if self._pubkey is not None:
            return

        wallet = await self._get_wallet()
        if wallet.chain_type is not None and wallet.chain_type != "solana":
            raise ConfigError(f"Privy wallet has chain type {wallet.chain_type!r}, expected 'solana'")
        self._pubkey = parse_public_key(wallet.address)
        logger.info("Privy signer initialized for wallet %s", wallet.id)

    def pubkey(self) -> Pubkey:
        self._ensure_initialized()
        return self._pubkey

    async def _rpc(self, method: str, params: dict) -> dict:
        return await request_json(
            self._http, "POST", f"{self._wallet_url}/rpc",
            service=SERVICE,
            headers=self._headers(),
            json_body={"method": method, "params": params},
        )

    async def _sign_bytes(self, message: bytes) -> Signature:
        data = await self._rpc(
            "signMessage",
            {"encoding": "base64", "message": base64.b64encode(message).decode("ascii")},
        )
        result = parse_model(SignMessageResponse, data, SERVICE)
        return decode_base64_signature(result.data.signature, "Privy signature")

    async def _sign_transaction_bytes(self, transaction: TransactionHandle) -> Signature:
        data = await self._rpc(
            "signTransaction",
            {"encoding": "base64", "transaction": transaction.to_base64()},
        )
        result = parse_model(SignTransactionResponse, data, SERVICE)
        signed = TransactionHandle.from_base64(result.data.signed_transaction)

        if signed.message_bytes() != transaction.message_bytes():
            raise SigningFailedError("Privy returned a transaction with a different message")

        signature = signed.get_signature(self._pubkey)
        if signature is None:
            raise SigningFailedError("Privy returned a transaction without this wallet's signature")
        return signature

    async def is_available(self) -> bool:
        """
        Check that the wallet can be looked up.

        Returns:
            True if the wallet lookup succeeds
        """
        try:
            await self._get_wallet()
        except SignerError as e:
            logger.debug("Privy availability check failed: %s", e.code.value)
            return False
        return True
