"""
Location: python/keychain_sdk/transport.py

Summary:
    Shared JSON-over-HTTP helpers for the remote signer backends. Maps
    transport failures and non-2xx statuses to RemoteApiError and
    unparsable or unexpected bodies to SerializationError.

Usage:
    Each remote backend builds its URL, headers and body (including its
    own authentication) and hands them to request_json(). Responses are
    then validated into pydantic models with parse_model().

Example:
    from keychain_sdk.transport import request_json, parse_model

    data = await request_json(
        http, "POST", url, service="Vault", headers=headers, json_body=body
    )
    result = parse_model(VaultSignResponse, data, service="Vault")
"""

import logging
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .errors import RemoteApiError, SerializationError


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_TIMEOUT = 30.0


def create_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Create the HTTP client a signer owns when none is injected."""
    return httpx.AsyncClient(timeout=timeout)


async def request_json(
    http: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    service: str,
    headers: Optional[dict[str, str]] = None,
    json_body: Optional[Any] = None,
    content: Optional[str] = None,
) -> Any:
    """
    Send a request and return the parsed JSON body.

    Pass content instead of json_body when the exact body string matters
    (for example when it was hashed or signed for authentication).

    Args:
        http: Client to send with
        method: HTTP method
        url: Absolute URL
        service: Backend name used in error and log messages
        headers: Request headers
        json_body: Body to JSON-encode
        content: Pre-encoded body

    Returns:
        Parsed JSON body

    Raises:
        RemoteApiError: On transport failure or a non-2xx status
        SerializationError: If the body is not valid JSON
    """
    try:
        response = await http.request(
            method,
            url,
            headers=headers,
            json=json_body,
            content=content,
        )
    except httpx.HTTPError as e:
        logger.error("%s request failed: %s", service, type(e).__name__)
        raise RemoteApiError(f"{service} request failed: {e}") from e

    ensure_success(response, service)

    try:
        return response.json()
    except ValueError as e:
        raise SerializationError(f"Failed to parse {service} response") from e


def ensure_success(response: httpx.Response, service: str) -> None:
    """
    Raise RemoteApiError for a non-2xx response.

    The body is attached to the error but never logged.
    """
    if response.is_success:
        return

    status = response.status_code
    logger.error("%s API error - status: %s", service, status)
    raise RemoteApiError(
        f"{service} API error: {status}", status=status, response=response.text
    )


def parse_model(model: type[ModelT], data: Any, service: str) -> ModelT:
    """
    Validate a parsed response body into a pydantic model.

    Raises:
        SerializationError: If the body does not have the expected shape
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise SerializationError(
            f"Unexpected {service} response format: {e.error_count()} invalid field(s)"
        ) from e
