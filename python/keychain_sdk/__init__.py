"""
Location: python/keychain_sdk/__init__.py

Summary:
    Main package initialization for keychain-sdk. Exports the signer
    contract, every backend, the unified KeychainSigner, the config models
    and the error types.

Usage:
    from keychain_sdk import KeychainSigner, TransactionHandle, SignerError

    # Or import specific modules
    from keychain_sdk.signers import MemorySigner, VaultSigner
    from keychain_sdk.types import VaultSignerConfig

Version: 0.1.0
"""

from .errors import (
    SignerErrorCode,
    SignerError,
    KeyFormatError,
    SigningFailedError,
    RemoteApiError,
    SerializationError,
    ConfigError,
    NotInitializedError,
)
from .types import (
    SignerConfig,
    MemorySignerConfig,
    VaultSignerConfig,
    PrivySignerConfig,
    TurnkeySignerConfig,
    AwsCredentials,
    AwsKmsSignerConfig,
    FireblocksSignerConfig,
    parse_signer_config,
)
from .transaction import TransactionHandle
from .signer import Signer, BaseSigner
from .signers import (
    MemorySigner,
    VaultSigner,
    PrivySigner,
    TurnkeySigner,
    AwsKmsSigner,
    FireblocksSigner,
)
from .keychain import KeychainSigner, SignerBackend, SIGNER_BACKENDS

__version__ = "0.1.0"

__all__ = [
    # Unified signer
    "KeychainSigner",
    "SignerBackend",
    "SIGNER_BACKENDS",
    # Contract and base class
    "Signer",
    "BaseSigner",
    "TransactionHandle",
    # Backends
    "MemorySigner",
    "VaultSigner",
    "PrivySigner",
    "TurnkeySigner",
    "AwsKmsSigner",
    "FireblocksSigner",
    # Config
    "SignerConfig",
    "MemorySignerConfig",
    "VaultSignerConfig",
    "PrivySignerConfig",
    "TurnkeySignerConfig",
    "AwsCredentials",
    "AwsKmsSignerConfig",
    "FireblocksSignerConfig",
    "parse_signer_config",
    # Exceptions
    "SignerErrorCode",
    "SignerError",
    "KeyFormatError",
    "SigningFailedError",
    "RemoteApiError",
    "SerializationError",
    "ConfigError",
    "NotInitializedError",
]
