"""
Location: python/keychain_sdk/errors.py

Summary:
    Closed error taxonomy shared by every signer backend. Each failure a
    signer can report maps to exactly one SignerError subclass, identified
    by its SignerErrorCode.

Usage:
    Raised by signers, the transport helpers and the encoding helpers.
    Callers catch SignerError (or a specific subclass) around signing calls.

Example:
    from keychain_sdk.errors import RemoteApiError, SignerError

    try:
        signature = await signer.sign_message(b"hello")
    except RemoteApiError as e:
        print(e.status, e.response)
    except SignerError as e:
        print(e.code, e.message)
"""

from enum import Enum
from typing import Optional


class SignerErrorCode(str, Enum):
    """Kind of signer failure."""
    KEY_FORMAT = "KEY_FORMAT"
    SIGNING_FAILED = "SIGNING_FAILED"
    REMOTE_API_ERROR = "REMOTE_API_ERROR"
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"
    NOT_INITIALIZED = "NOT_INITIALIZED"


class SignerError(Exception):
    """
    Base exception for all signer failures.

    Attributes:
        code: The error kind
        message: Human readable description (never contains key material)
        status: HTTP status code of the failing remote call, when known
        response: Response body of the failing remote call, when known
    """

    code: SignerErrorCode = SignerErrorCode.SIGNING_FAILED

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        response: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.response = response

    def __repr__(self) -> str:
        if self.status is not None:
            return f"{self.__class__.__name__}({self.message!r}, status={self.status})"
        return f"{self.__class__.__name__}({self.message!r})"


class KeyFormatError(SignerError):
    """Local key material is malformed or has the wrong length."""
    code = SignerErrorCode.KEY_FORMAT


class SigningFailedError(SignerError):
    """
    Signing produced no usable signature.

    Raised for missing or wrong-length signatures, remote transactions that
    reach a terminal failure status, and exhausted polling budgets.
    """
    code = SignerErrorCode.SIGNING_FAILED


class RemoteApiError(SignerError):
    """Remote API returned a non-success status or could not be reached."""
    code = SignerErrorCode.REMOTE_API_ERROR


class SerializationError(SignerError):
    """A request or response body could not be encoded or decoded."""
    code = SignerErrorCode.SERIALIZATION_ERROR


class ConfigError(SignerError):
    """Invalid construction-time configuration."""
    code = SignerErrorCode.CONFIG_ERROR


class NotInitializedError(SignerError):
    """A method requiring init() was called before init() completed."""
    code = SignerErrorCode.NOT_INITIALIZED
