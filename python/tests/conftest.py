"""
Shared pytest fixtures for keychain-sdk tests.

This module provides keypairs, sample legacy and versioned transactions,
API key material for the Turnkey and Fireblocks backends, and MockApi,
a small router over httpx.MockTransport used to fake the remote signer
services.
"""

import inspect
from typing import Any, Callable, Optional, Union

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction, VersionedTransaction

from keychain_sdk.transaction import TransactionHandle


MEMO_PROGRAM_ID = Pubkey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")


Route = Union[dict, list, Callable[[httpx.Request], Any]]


class MockApi:
    """
    Route table for httpx.MockTransport.

    Routes are keyed by (method, path). A route value is either a JSON
    body (returned with status 200), a list of JSON bodies returned one
    per call, or a handler taking the request and returning an
    httpx.Response (sync or async). Every request is recorded.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Route] = {}
        self.requests: list[httpx.Request] = []
        self._client: Optional[httpx.AsyncClient] = None

    def add(self, method: str, path: str, route: Route) -> None:
        self.routes[(method.upper(), path)] = route

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == path
        ]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            result = route(request)
            if inspect.isawaitable(result):
                result = await result
            return result
        if isinstance(route, list):
            return httpx.Response(200, json=route.pop(0))
        return httpx.Response(200, json=route)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=httpx.MockTransport(self))
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


@pytest.fixture
async def mock_api():
    """MockApi with its client closed after the test."""
    api = MockApi()
    yield api
    await api.aclose()


@pytest.fixture
def keypair():
    """Deterministic signer keypair."""
    return Keypair.from_seed(bytes(range(32)))


@pytest.fixture
def other_keypairs():
    """Two more deterministic keypairs for multi-signer transactions."""
    return [
        Keypair.from_seed(bytes([7] * 32)),
        Keypair.from_seed(bytes([9] * 32)),
    ]


def memo_instruction(signers: list[Pubkey], memo: bytes = b"keychain") -> Instruction:
    accounts = [AccountMeta(pubkey, is_signer=True, is_writable=False) for pubkey in signers]
    return Instruction(MEMO_PROGRAM_ID, memo, accounts)


@pytest.fixture
def make_legacy_transaction():
    """Factory for unsigned legacy transactions; the first signer pays."""
    def make(signers: list[Pubkey], memo: bytes = b"keychain") -> TransactionHandle:
        message = Message.new_with_blockhash(
            [memo_instruction(signers, memo)], signers[0], Hash.default()
        )
        return TransactionHandle(Transaction.new_unsigned(message))
    return make


@pytest.fixture
def make_versioned_transaction():
    """Factory for unsigned v0 transactions; the first signer pays."""
    def make(signers: list[Pubkey], memo: bytes = b"keychain") -> TransactionHandle:
        message = MessageV0.try_compile(
            signers[0], [memo_instruction(signers, memo)], [], Hash.default()
        )
        required = message.header.num_required_signatures
        return TransactionHandle(
            VersionedTransaction.populate(message, [Signature.default()] * required)
        )
    return make


@pytest.fixture
def turnkey_api_key():
    """P-256 API key pair as (private hex, compressed public hex, key)."""
    key = ec.generate_private_key(ec.SECP256R1())
    private_hex = format(key.private_numbers().private_value, "064x")
    public_hex = key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.CompressedPoint,
    ).hex()
    return private_hex, public_hex, key


@pytest.fixture(scope="session")
def rsa_private_key():
    """RSA key used to sign Fireblocks request JWTs."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_pem(rsa_private_key):
    """Unencrypted PKCS8 PEM of rsa_private_key."""
    return rsa_private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
