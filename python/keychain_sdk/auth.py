"""
Location: python/keychain_sdk/auth.py

Summary:
    Outbound request authentication for the remote backends: HTTP Basic
    headers (Privy), Turnkey API stamps (P-256 ECDSA over the request body)
    and Fireblocks request JWTs (RS256 over uri, nonce and body hash).

Usage:
    Signers load their API key once at construction with the load_*
    helpers, then create a fresh stamp or JWT for every request.

Example:
    from keychain_sdk.auth import load_turnkey_api_key, create_turnkey_stamp

    key = load_turnkey_api_key(api_private_key, api_public_key)
    headers = {"X-Stamp": create_turnkey_stamp(body, key, api_public_key)}
"""

import base64
import hashlib
import json
import time
import uuid

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from .errors import ConfigError, KeyFormatError, SigningFailedError


TURNKEY_STAMP_SCHEME = "SIGNATURE_SCHEME_TK_API_P256"

# Fireblocks rejects tokens older than 30 seconds
FIREBLOCKS_JWT_TTL_SECONDS = 30


def basic_auth_header(username: str, password: str) -> str:
    """Build an HTTP Basic Authorization header value."""
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


def load_turnkey_api_key(api_private_key: str, api_public_key: str) -> ec.EllipticCurvePrivateKey:
    """
    Load a Turnkey P-256 API key pair from hex.

    Args:
        api_private_key: Private scalar as hex
        api_public_key: Compressed public key as hex

    Returns:
        The private key

    Raises:
        KeyFormatError: If the private key is not a valid P-256 scalar
        ConfigError: If the public key does not belong to the private key
    """
    try:
        key = ec.derive_private_key(int(api_private_key, 16), ec.SECP256R1())
    except ValueError as e:
        raise KeyFormatError("Invalid Turnkey API private key") from e

    derived = key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.CompressedPoint,
    ).hex()
    if derived != api_public_key.lower().removeprefix("0x"):
        raise ConfigError("Turnkey API public key does not match the API private key")
    return key


def create_turnkey_stamp(
    body: str,
    api_key: ec.EllipticCurvePrivateKey,
    api_public_key: str,
) -> str:
    """
    Create the X-Stamp header value for a Turnkey request.

    The stamp is base64url(JSON) without padding, carrying the API public
    key, the scheme and the DER-encoded ECDSA P-256/SHA-256 signature over
    the exact body string that is sent.

    Args:
        body: Serialized request body
        api_key: Loaded API private key
        api_public_key: Compressed API public key (hex)

    Returns:
        Stamp header value
    """
    signature = api_key.sign(body.encode(), ec.ECDSA(hashes.SHA256()))
    stamp = {
        "publicKey": api_public_key,
        "scheme": TURNKEY_STAMP_SCHEME,
        "signature": signature.hex(),
    }
    encoded = base64.urlsafe_b64encode(json.dumps(stamp, separators=(",", ":")).encode())
    return encoded.decode("ascii").rstrip("=")


def load_rsa_private_key(private_key_pem: str) -> rsa.RSAPrivateKey:
    """
    Load the RSA key Fireblocks request JWTs are signed with.

    Raises:
        KeyFormatError: If the PEM is not an unencrypted RSA private key
    """
    try:
        key = serialization.load_pem_private_key(private_key_pem.encode(), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyFormatError("Failed to parse RSA private key") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyFormatError("Fireblocks API key must be an RSA private key")
    return key


def create_fireblocks_jwt(
    api_key: str,
    private_key: rsa.RSAPrivateKey,
    uri: str,
    body: str = "",
) -> str:
    """
    Create the bearer JWT for one Fireblocks request.

    Args:
        api_key: Fireblocks API key (JWT subject)
        private_key: Loaded RSA private key
        uri: Request path including query (e.g. "/v1/transactions")
        body: Exact request body ("" for GET)

    Returns:
        RS256-signed JWT
    """
    now = int(time.time())
    claims = {
        "uri": uri,
        "nonce": str(uuid.uuid4()),
        "iat": now,
        "exp": now + FIREBLOCKS_JWT_TTL_SECONDS,
        "sub": api_key,
        "bodyHash": hashlib.sha256(body.encode()).hexdigest(),
    }
    try:
        return jwt.encode(claims, private_key, algorithm="RS256")
    except jwt.PyJWTError as e:
        raise SigningFailedError("Failed to create Fireblocks JWT") from e
