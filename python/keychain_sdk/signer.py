"""
Location: python/keychain_sdk/signer.py

Summary:
    Defines the Signer protocol (the contract every backend fulfils) and
    the BaseSigner abstract class that implements the shared parts of it:
    transaction signature insertion, staggered concurrent batch signing,
    the init() guard and HTTP client lifecycle.

Usage:
    Backends extend BaseSigner and implement pubkey(), _sign_bytes() and
    is_available(). Code that only consumes signers should depend on the
    Signer protocol.

Example:
    from keychain_sdk.signer import BaseSigner

    class EchoSigner(BaseSigner):
        backend = "echo"

        def pubkey(self) -> Pubkey:
            return self._pubkey

        async def _sign_bytes(self, message: bytes) -> Signature:
            ...

        async def is_available(self) -> bool:
            return True
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import ClassVar, Optional, Protocol, Union, runtime_checkable

import httpx
from solders.pubkey import Pubkey
from solders.signature import Signature

from .errors import ConfigError, NotInitializedError, SignerError
from .transaction import TransactionHandle
from .transport import create_http_client
from .types import REQUEST_DELAY_WARN_MS


logger = logging.getLogger(__name__)

BatchResult = Union[Signature, SignerError]


@runtime_checkable
class Signer(Protocol):
    """
    Protocol for Solana signers.

    Signers are responsible for:
    - Reporting the public key they sign for
    - Signing transactions (inserting the signature into the transaction)
    - Signing arbitrary messages
    - Reporting whether their backend is reachable

    Implementations include MemorySigner (local key) and the remote
    VaultSigner, PrivySigner, TurnkeySigner, AwsKmsSigner and
    FireblocksSigner.
    """

    def pubkey(self) -> Pubkey:
        """
        Get the public key of this signer.

        Returns:
            The signer's public key
        """
        ...

    async def sign_transaction(self, transaction: TransactionHandle) -> Signature:
        """
        Sign a transaction in place.

        Args:
            transaction: Transaction to sign; its slot for pubkey() is updated

        Returns:
            The 64-byte signature
        """
        ...

    async def sign_message(self, message: bytes) -> Signature:
        """
        Sign arbitrary bytes.

        Args:
            message: The raw bytes to sign

        Returns:
            The 64-byte signature
        """
        ...

    async def is_available(self) -> bool:
        """
        Check whether the signer's backend is reachable and usable.

        Returns:
            True if signing is expected to work; never raises
        """
        ...


class BaseSigner(ABC):
    """
    Abstract base class for signer backends.

    Subclasses must implement pubkey(), _sign_bytes() and is_available().
    Backends that cannot sign a transaction as plain message bytes
    override _sign_transaction_bytes(). Backends that resolve their public
    key remotely override init() and is_initialized.

    Attributes:
        backend: Backend tag (matches SignerBackend values)
        request_delay_ms: Stagger between concurrent items in batch calls
    """

    backend: ClassVar[str] = ""

    def __init__(
        self,
        request_delay_ms: int = 0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize shared signer state.

        Args:
            request_delay_ms: Stagger between batch items in milliseconds
            http_client: Optional client to use instead of an owned one

        Raises:
            ConfigError: If request_delay_ms is negative
        """
        if request_delay_ms < 0:
            raise ConfigError("request_delay_ms must not be negative")
        if request_delay_ms > REQUEST_DELAY_WARN_MS:
            logger.warning(
                "request_delay_ms is greater than %sms, this may result in blockhash "
                "expiration errors for signing messages/transactions",
                REQUEST_DELAY_WARN_MS,
            )
        self.request_delay_ms = request_delay_ms
        self._http_client = http_client
        self._owns_http = http_client is None

    @property
    def _http(self) -> httpx.AsyncClient:
        """HTTP client, created on first use when none was injected."""
        if self._http_client is None:
            self._http_client = create_http_client()
        return self._http_client

    async def close(self) -> None:
        """Close the owned HTTP client. Injected clients are left open."""
        if self._owns_http and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self):
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args) -> None:
        """Exit async context manager and close resources."""
        await self.close()

    @property
    def is_initialized(self) -> bool:
        """Whether the signer is ready to sign."""
        return True

    async def init(self) -> None:
        """Resolve remote state needed before signing. No-op by default."""
        return None

    def _ensure_initialized(self) -> None:
        if not self.is_initialized:
            raise NotInitializedError(
                f"{self.__class__.__name__} not initialized. Call init() first."
            )

    @abstractmethod
    def pubkey(self) -> Pubkey:
        """Public key this signer signs for."""
        raise NotImplementedError

    @abstractmethod
    async def _sign_bytes(self, message: bytes) -> Signature:
        """Sign raw bytes with the backend."""
        raise NotImplementedError

    @abstractmethod
    async def is_available(self) -> bool:
        """Backend health probe; must never raise."""
        raise NotImplementedError

    async def _sign_transaction_bytes(self, transaction: TransactionHandle) -> Signature:
        """Produce this signer's signature for a transaction."""
        return await self._sign_bytes(transaction.message_bytes())

    async def sign_message(self, message: bytes) -> Signature:
        """
        Sign arbitrary bytes.

        Args:
            message: Bytes to sign as-is

        Returns:
            The 64-byte signature

        Raises:
            NotInitializedError: If init() is required and has not completed
            SignerError: If the backend fails to sign
        """
        self._ensure_initialized()
        return await self._sign_bytes(bytes(message))

    async def sign_transaction(self, transaction: TransactionHandle) -> Signature:
        """
        Sign a transaction and insert the signature into it.

        Args:
            transaction: Transaction to sign; mutated in place

        Returns:
            The 64-byte signature

        Raises:
            NotInitializedError: If init() is required and has not completed
            SigningFailedError: If this signer is not a required signer
            SignerError: If the backend fails to sign
        """
        self._ensure_initialized()
        pubkey = self.pubkey()
        # fail before any remote call
        transaction.signer_index(pubkey)
        signature = await self._sign_transaction_bytes(transaction)
        transaction.add_signature(pubkey, signature)
        return signature

    async def _stagger(self, index: int) -> None:
        if self.request_delay_ms > 0 and index > 0:
            await asyncio.sleep(index * self.request_delay_ms / 1000)

    async def sign_messages(
        self,
        messages: Sequence[bytes],
        *,
        return_exceptions: bool = False,
    ) -> list[BatchResult]:
        """
        Sign several messages concurrently.

        Item i starts after i * request_delay_ms. Results are returned in
        input order regardless of completion order.

        Args:
            messages: Messages to sign
            return_exceptions: Return each failing item's SignerError in its
                               slot instead of raising the first one

        Returns:
            Signatures (or SignerErrors) in input order
        """
        self._ensure_initialized()

        async def sign_one(index: int, message: bytes) -> Signature:
            await self._stagger(index)
            return await self.sign_message(message)

        return await self._gather(
            [sign_one(i, m) for i, m in enumerate(messages)],
            return_exceptions,
        )

    async def sign_transactions(
        self,
        transactions: Sequence[TransactionHandle],
        *,
        return_exceptions: bool = False,
    ) -> list[BatchResult]:
        """
        Sign several transactions concurrently, each in place.

        Args:
            transactions: Transactions to sign
            return_exceptions: Return each failing item's SignerError in its
                               slot instead of raising the first one

        Returns:
            Signatures (or SignerErrors) in input order
        """
        self._ensure_initialized()

        async def sign_one(index: int, transaction: TransactionHandle) -> Signature:
            await self._stagger(index)
            return await self.sign_transaction(transaction)

        return await self._gather(
            [sign_one(i, tx) for i, tx in enumerate(transactions)],
            return_exceptions,
        )

    @staticmethod
    async def _gather(coros: list, return_exceptions: bool) -> list[BatchResult]:
        results = await asyncio.gather(*coros, return_exceptions=return_exceptions)
        if return_exceptions:
            for result in results:
                if isinstance(result, BaseException) and not isinstance(result, SignerError):
                    raise result
        return list(results)

    def __repr__(self) -> str:
        if not self.is_initialized:
            return f"{self.__class__.__name__}(uninitialized)"
        return f"{self.__class__.__name__}(pubkey={self.pubkey()})"
