"""
Location: python/keychain_sdk/keychain.py

Summary:
    KeychainSigner, a single signer type over every backend. Holds one
    concrete backend signer and forwards each call to it, so callers can
    pick the backend from configuration at runtime.

Usage:
    Build from a config model or a plain mapping with a "backend" key.
    Privy and Fireblocks signers are initialized before from_config()
    returns.

Example:
    from keychain_sdk import KeychainSigner

    signer = await KeychainSigner.from_config({
        "backend": "vault",
        "vaultAddr": "https://vault.example.com:8200",
        "vaultToken": "hvs.XXXX",
        "keyName": "solana-hot",
        "publicKey": "4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T",
    })
    async with signer:
        signature = await signer.sign_message(b"hello")
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any, Optional, Union

import httpx
from solders.pubkey import Pubkey
from solders.signature import Signature

from .errors import ConfigError
from .signer import BaseSigner, BatchResult
from .signers import (
    AwsKmsSigner,
    FireblocksSigner,
    MemorySigner,
    PrivySigner,
    TurnkeySigner,
    VaultSigner,
)
from .transaction import TransactionHandle
from .types import (
    AwsKmsSignerConfig,
    FireblocksSignerConfig,
    MemorySignerConfig,
    PrivySignerConfig,
    SignerConfig,
    TurnkeySignerConfig,
    VaultSignerConfig,
    parse_signer_config,
)


logger = logging.getLogger(__name__)


class SignerBackend(str, Enum):
    """Supported signer backends."""
    MEMORY = "memory"
    VAULT = "vault"
    PRIVY = "privy"
    TURNKEY = "turnkey"
    AWS_KMS = "aws_kms"
    FIREBLOCKS = "fireblocks"


SIGNER_BACKENDS: dict[SignerBackend, type[BaseSigner]] = {
    SignerBackend.MEMORY: MemorySigner,
    SignerBackend.VAULT: VaultSigner,
    SignerBackend.PRIVY: PrivySigner,
    SignerBackend.TURNKEY: TurnkeySigner,
    SignerBackend.AWS_KMS: AwsKmsSigner,
    SignerBackend.FIREBLOCKS: FireblocksSigner,
}

# Backends that talk to their service over httpx
HTTP_BACKENDS = frozenset({
    SignerBackend.VAULT,
    SignerBackend.PRIVY,
    SignerBackend.TURNKEY,
    SignerBackend.FIREBLOCKS,
})

CONFIG_TYPES = (
    MemorySignerConfig,
    VaultSignerConfig,
    PrivySignerConfig,
    TurnkeySignerConfig,
    AwsKmsSignerConfig,
    FireblocksSignerConfig,
)


def _to_backend(value: Union[SignerBackend, str]) -> SignerBackend:
    try:
        return SignerBackend(value)
    except ValueError:
        raise ConfigError(f"Unknown signer backend: {value!r}") from None


class KeychainSigner:
    """
    Signer that dispatches to one concrete backend signer.

    Attributes:
        backend: The active backend
        signer: The wrapped backend signer
    """

    def __init__(self, backend: Union[SignerBackend, str], signer: BaseSigner):
        """
        Wrap a backend signer.

        Args:
            backend: Backend tag of the signer
            signer: Signer instance of the class registered for backend

        Raises:
            ConfigError: If the backend is unknown or signer does not match it
        """
        self.backend = _to_backend(backend)
        expected = SIGNER_BACKENDS[self.backend]
        if not isinstance(signer, expected):
            raise ConfigError(
                f"Backend {self.backend.value!r} requires {expected.__name__}, "
                f"got {type(signer).__name__}"
            )
        self.signer = signer

    @classmethod
    async def from_config(
        cls,
        config: Union[SignerConfig, Mapping[str, Any]],
        *,
        backends: Optional[Iterable[Union[SignerBackend, str]]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "KeychainSigner":
        """
        Build and initialize the signer a config describes.

        Args:
            config: A backend config model or a mapping with a "backend" key
            backends: Backends allowed for this call, or a single backend
                      (all when None)
            http_client: Shared HTTP client for HTTP backends

        Returns:
            An initialized KeychainSigner

        Raises:
            ConfigError: If the config is invalid, the enabled set is empty,
                         or the config's backend is not enabled
            SignerError: If backend initialization fails
        """
        if isinstance(backends, str):
            # a bare tag (SignerBackend is a str too) means just that backend
            backends = [backends]
        enabled = (
            set(SignerBackend) if backends is None
            else {_to_backend(b) for b in backends}
        )
        if not enabled:
            raise ConfigError("At least one signer backend must be enabled")

        if isinstance(config, Mapping):
            config = parse_signer_config(config)
        elif not isinstance(config, CONFIG_TYPES):
            raise ConfigError(f"Unsupported signer config type: {type(config).__name__}")

        backend = _to_backend(config.backend)
        if backend not in enabled:
            raise ConfigError(f"Signer backend {backend.value!r} is not enabled")

        signer_cls = SIGNER_BACKENDS[backend]
        if backend in HTTP_BACKENDS:
            signer = signer_cls(config, http_client=http_client)
        else:
            signer = signer_cls(config)

        try:
            await signer.init()
        except Exception:
            await signer.close()
            raise

        logger.info("Keychain signer ready - backend: %s", backend.value)
        return cls(backend, signer)

    @property
    def is_initialized(self) -> bool:
        return self.signer.is_initialized

    async def init(self) -> None:
        await self.signer.init()

    def pubkey(self) -> Pubkey:
        return self.signer.pubkey()

    async def sign_transaction(self, transaction: TransactionHandle) -> Signature:
        return await self.signer.sign_transaction(transaction)

    async def sign_message(self, message: bytes) -> Signature:
        return await self.signer.sign_message(message)

    async def sign_transactions(
        self,
        transactions: Sequence[TransactionHandle],
        *,
        return_exceptions: bool = False,
    ) -> list[BatchResult]:
        return await self.signer.sign_transactions(
            transactions, return_exceptions=return_exceptions
        )

    async def sign_messages(
        self,
        messages: Sequence[bytes],
        *,
        return_exceptions: bool = False,
    ) -> list[BatchResult]:
        return await self.signer.sign_messages(messages, return_exceptions=return_exceptions)

    async def is_available(self) -> bool:
        return await self.signer.is_available()

    async def close(self) -> None:
        await self.signer.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"KeychainSigner(backend={self.backend.value}, signer={self.signer!r})"
