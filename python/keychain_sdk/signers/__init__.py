"""
Location: python/keychain_sdk/signers/__init__.py

Summary:
    Signer backends for keychain-sdk. Provides a local in-memory signer
    and remote signers for Vault, Privy, Turnkey, AWS KMS and Fireblocks.

Usage:
    from keychain_sdk.signers import MemorySigner, VaultSigner, AwsKmsSigner
"""

from .memory import MemorySigner
from .vault import VaultSigner
from .privy import PrivySigner
from .turnkey import TurnkeySigner
from .kms import AwsKmsSigner
from .fireblocks import FireblocksSigner

__all__ = [
    "MemorySigner",
    "VaultSigner",
    "PrivySigner",
    "TurnkeySigner",
    "AwsKmsSigner",
    "FireblocksSigner",
]
