"""
Location: python/keychain_sdk/encoding.py

Summary:
    Signature and public key decoding helpers. Every backend funnels the
    signature it receives (hex, base64, base58 or separate r/s components)
    through these functions so that callers only ever see a 64-byte
    solders Signature.

Usage:
    Used by the signer backends after parsing a remote response.

Example:
    from keychain_sdk.encoding import signature_from_components

    signature = signature_from_components(r_hex, s_hex)
"""

import base64
import binascii

import base58
from solders.pubkey import Pubkey
from solders.signature import Signature

from .errors import ConfigError, SerializationError, SigningFailedError


SIGNATURE_LENGTH = 64
COMPONENT_LENGTH = 32


def signature_from_bytes(raw: bytes, source: str = "signature") -> Signature:
    """
    Wrap raw signature bytes, enforcing the 64-byte length.

    Args:
        raw: Decoded signature bytes
        source: Name of the field the bytes came from (for error messages)

    Returns:
        The Signature

    Raises:
        SigningFailedError: If raw is not exactly 64 bytes
    """
    if len(raw) != SIGNATURE_LENGTH:
        raise SigningFailedError(
            f"Invalid {source} length: expected {SIGNATURE_LENGTH} bytes, got {len(raw)}"
        )
    return Signature.from_bytes(bytes(raw))


def decode_hex_signature(value: str, source: str = "signature") -> Signature:
    """Decode a hex signature (optional 0x prefix)."""
    cleaned = value[2:] if value.lower().startswith("0x") else value
    try:
        raw = bytes.fromhex(cleaned)
    except ValueError as e:
        raise SerializationError(f"Failed to decode hex {source}") from e
    return signature_from_bytes(raw, source)


def decode_base64_signature(value: str, source: str = "signature") -> Signature:
    """Decode a standard base64 signature."""
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SerializationError(f"Failed to decode base64 {source}") from e
    return signature_from_bytes(raw, source)


def decode_base58_signature(value: str, source: str = "signature") -> Signature:
    """Decode a base58 signature (Solana transaction signature form)."""
    try:
        raw = base58.b58decode(value)
    except ValueError as e:
        raise SerializationError(f"Failed to decode base58 {source}") from e
    return signature_from_bytes(raw, source)


def pad_component(value: str, name: str) -> bytes:
    """
    Decode one hex signature component to exactly 32 bytes.

    Remote APIs that encode components as big integers strip leading zero
    bytes (and sometimes a leading zero nibble), so a component may arrive
    shorter than 32 bytes. It is left-padded with zeros. Leading zero bytes
    beyond 32 are dropped; more than 32 significant bytes is an error.

    Args:
        value: Hex string of the component
        name: Component name ("r" or "s") for error messages

    Returns:
        32 bytes, big-endian

    Raises:
        SerializationError: If value is not hex
        SigningFailedError: If value is empty or has more than 32 significant bytes
    """
    cleaned = value[2:] if value.lower().startswith("0x") else value
    if not cleaned:
        raise SigningFailedError(f"Signature component {name} is empty")
    if len(cleaned) % 2:
        cleaned = "0" + cleaned
    try:
        raw = bytes.fromhex(cleaned)
    except ValueError as e:
        raise SerializationError(f"Failed to decode hex signature component {name}") from e

    if len(raw) > COMPONENT_LENGTH:
        significant = raw.lstrip(b"\x00")
        if len(significant) > COMPONENT_LENGTH:
            raise SigningFailedError(
                f"Signature component {name} is {len(significant)} bytes, expected at most {COMPONENT_LENGTH}"
            )
        raw = significant
    return raw.rjust(COMPONENT_LENGTH, b"\x00")


def signature_from_components(r: str, s: str) -> Signature:
    """
    Assemble a 64-byte signature from hex r and s components.

    Args:
        r: Hex R component (possibly shorter than 32 bytes)
        s: Hex S component (possibly shorter than 32 bytes)

    Returns:
        Signature of r || s, each left-padded to 32 bytes
    """
    return signature_from_bytes(pad_component(r, "r") + pad_component(s, "s"))


def parse_public_key(value: str) -> Pubkey:
    """
    Parse a base58 public key.

    Raises:
        ConfigError: If value is not a valid 32-byte base58 public key
    """
    if not value:
        raise ConfigError("Missing public key")
    try:
        return Pubkey.from_string(value)
    except ValueError as e:
        raise ConfigError("Invalid Solana public key format") from e
