"""
Location: python/keychain_sdk/signers/memory.py

Summary:
    In-memory Ed25519 signer. Holds a Solana keypair locally and signs
    without any network access. Intended for development, tests and hot
    wallets where the key is already present on the host.

Usage:
    The private key may be given as a base58 string, a JSON array of 64
    byte values (the solana-keygen format) or a path to a keypair file.

Example:
    from keychain_sdk.signers import MemorySigner

    signer = MemorySigner(private_key="~/.config/solana/id.json")
    signature = await signer.sign_message(b"hello")
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..errors import KeyFormatError
from ..signer import BaseSigner
from ..types import MemorySignerConfig, load_config


logger = logging.getLogger(__name__)

KEYPAIR_LENGTH = 64
SECRET_LENGTH = 32


def _from_base58(value: str) -> Optional[bytes]:
    try:
        raw = base58.b58decode(value)
    except ValueError:
        return None
    return raw if len(raw) == KEYPAIR_LENGTH else None


def _from_json(value: str) -> Optional[bytes]:
    try:
        parsed = json.loads(value)
    except ValueError:
        return None
    if not isinstance(parsed, list):
        return None
    if not all(isinstance(b, int) and not isinstance(b, bool) for b in parsed):
        raise KeyFormatError("Keypair JSON array must contain only integers")
    try:
        return bytes(parsed)
    except ValueError as e:
        raise KeyFormatError("Keypair JSON array values must be in range 0-255") from e


def _from_file(value: str) -> Optional[bytes]:
    path = Path(value).expanduser()
    try:
        if not path.is_file():
            return None
        contents = path.read_text()
    except OSError as e:
        raise KeyFormatError(f"Failed to read keypair file: {type(e).__name__}") from e
    raw = _from_json(contents.strip())
    if raw is None:
        raise KeyFormatError("Keypair file does not contain a JSON byte array")
    return raw


def decode_private_key(value: str) -> bytes:
    """
    Decode a 64-byte keypair from its accepted text forms.

    Tried in order: base58, JSON byte array, path to a JSON keypair file.

    Args:
        value: Encoded keypair or file path

    Returns:
        The 64 keypair bytes (secret half followed by public half)

    Raises:
        KeyFormatError: If no form matches or the length is not 64
    """
    value = value.strip()
    if not value:
        raise KeyFormatError("Private key is empty")

    for decode in (_from_base58, _from_json, _from_file):
        raw = decode(value)
        if raw is not None:
            break
    else:
        raise KeyFormatError(
            "Private key must be base58, a JSON byte array, or a path to a keypair file"
        )

    if len(raw) != KEYPAIR_LENGTH:
        raise KeyFormatError(
            f"Invalid keypair length: expected {KEYPAIR_LENGTH} bytes, got {len(raw)}"
        )
    return raw


def keypair_from_bytes(raw: bytes) -> Keypair:
    """
    Build a Keypair from 64 bytes, checking the public half.

    Raises:
        KeyFormatError: If raw is not 64 bytes or the public half does not
                        belong to the secret half
    """
    if len(raw) != KEYPAIR_LENGTH:
        raise KeyFormatError(
            f"Invalid keypair length: expected {KEYPAIR_LENGTH} bytes, got {len(raw)}"
        )
    keypair = Keypair.from_seed(bytes(raw[:SECRET_LENGTH]))
    if bytes(keypair.pubkey()) != bytes(raw[SECRET_LENGTH:]):
        raise KeyFormatError("Keypair public key does not match its secret key")
    return keypair


class MemorySigner(BaseSigner):
    """
    Signer backed by a keypair held in process memory.

    Only the solders Keypair keeps the secret; decoded intermediate buffers
    are not retained on the signer.

    Attributes:
        config: The signer configuration (private key hidden from repr)
    """

    backend = "memory"

    def __init__(
        self,
        config: Union[MemorySignerConfig, dict, None] = None,
        **kwargs,
    ):
        """
        Initialize the memory signer.

        Args:
            config: MemorySignerConfig or equivalent mapping
            **kwargs: Config fields, when config is not given

        Raises:
            ConfigError: If the config is invalid
            KeyFormatError: If the private key cannot be decoded
        """
        self.config = load_config(MemorySignerConfig, config, kwargs)
        super().__init__(self.config.request_delay_ms)
        self._keypair = keypair_from_bytes(decode_private_key(self.config.private_key))

    @classmethod
    def from_bytes(cls, raw: bytes, request_delay_ms: int = 0) -> "MemorySigner":
        """Create a signer from 64 raw keypair bytes."""
        keypair = keypair_from_bytes(bytes(raw))
        return cls.from_keypair(keypair, request_delay_ms=request_delay_ms)

    @classmethod
    def from_keypair(cls, keypair: Keypair, request_delay_ms: int = 0) -> "MemorySigner":
        """Create a signer from an existing solders Keypair."""
        return cls(private_key=str(keypair), request_delay_ms=request_delay_ms)

    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    async def _sign_bytes(self, message: bytes) -> Signature:
        return self._keypair.sign_message(message)

    async def is_available(self) -> bool:
        return True
