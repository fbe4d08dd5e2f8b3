"""
Location: python/keychain_sdk/transaction.py

Summary:
    TransactionHandle, the mutable transaction object that signers write
    their signature into. Wraps a solders legacy Transaction or a
    VersionedTransaction and exposes the canonical message bytes, the
    required signer slots and the wire encoding.

Usage:
    Callers wrap the transaction they built (or received as wire bytes)
    and pass the handle to sign_transaction(). The signer inserts its
    signature into the slot that belongs to its public key; every other
    slot is left untouched.

Example:
    from keychain_sdk.transaction import TransactionHandle

    handle = TransactionHandle(Transaction.new_unsigned(message))
    signature = await signer.sign_transaction(handle)
    wire = handle.to_base64()
"""

import base64
import binascii
from typing import Optional, Union

from solders.message import Message, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction, VersionedTransaction

from .errors import SerializationError, SigningFailedError


AnyTransaction = Union[Transaction, VersionedTransaction]


class TransactionHandle:
    """
    Mutable holder for a Solana transaction.

    solders transactions are immutable values, so adding a signature
    rebuilds the wrapped transaction and swaps it in place. Callers keep
    the same handle for the whole signing flow.

    Attributes:
        transaction: The current (possibly partially signed) transaction
    """

    def __init__(self, transaction: AnyTransaction):
        if not isinstance(transaction, (Transaction, VersionedTransaction)):
            raise TypeError(
                f"Expected Transaction or VersionedTransaction, got {type(transaction).__name__}"
            )
        self.transaction = transaction

    @classmethod
    def from_bytes(cls, raw: bytes) -> "TransactionHandle":
        """
        Parse a wire-format transaction.

        Legacy transactions come back as Transaction, v0 transactions as
        VersionedTransaction.

        Raises:
            SerializationError: If raw is not a valid transaction
        """
        try:
            versioned = VersionedTransaction.from_bytes(bytes(raw))
            if isinstance(versioned.message, Message):
                return cls(Transaction.from_bytes(bytes(raw)))
            return cls(versioned)
        except Exception as e:
            raise SerializationError("Failed to deserialize transaction") from e

    @classmethod
    def from_base64(cls, value: str) -> "TransactionHandle":
        """Parse a base64 wire-format transaction."""
        try:
            raw = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise SerializationError("Failed to decode base64 transaction") from e
        return cls.from_bytes(raw)

    @property
    def is_versioned(self) -> bool:
        return isinstance(self.transaction, VersionedTransaction)

    @property
    def signers(self) -> list[Pubkey]:
        """Public keys of the required signers, in signature slot order."""
        message = self.transaction.message
        required = message.header.num_required_signatures
        return list(message.account_keys[:required])

    def message_bytes(self) -> bytes:
        """Canonical bytes that every signer signs."""
        if isinstance(self.transaction, Transaction):
            return bytes(self.transaction.message_data())
        return bytes(to_bytes_versioned(self.transaction.message))

    def signer_index(self, pubkey: Pubkey) -> int:
        """
        Slot index of a required signer.

        Raises:
            SigningFailedError: If pubkey is not a required signer
        """
        try:
            return self.signers.index(pubkey)
        except ValueError:
            raise SigningFailedError(
                f"{pubkey} is not a required signer of this transaction"
            ) from None

    def get_signature(self, pubkey: Pubkey) -> Optional[Signature]:
        """Signature in pubkey's slot, or None when the slot is empty."""
        index = self.signer_index(pubkey)
        signatures = list(self.transaction.signatures)
        if index >= len(signatures) or signatures[index] == Signature.default():
            return None
        return signatures[index]

    def add_signature(self, pubkey: Pubkey, signature: Signature) -> None:
        """
        Write signature into pubkey's slot.

        Missing slots are filled with empty signatures first, so an
        unsigned transaction with no signature array can be signed.
        """
        index = self.signer_index(pubkey)
        required = self.transaction.message.header.num_required_signatures
        signatures = list(self.transaction.signatures)
        if len(signatures) < required:
            signatures.extend([Signature.default()] * (required - len(signatures)))
        signatures[index] = signature
        self.transaction = type(self.transaction).populate(self.transaction.message, signatures)

    def serialize(self) -> bytes:
        """Wire-format bytes."""
        return bytes(self.transaction)

    def to_base64(self) -> str:
        """Wire-format bytes, base64 encoded."""
        return base64.b64encode(self.serialize()).decode("ascii")

    def __repr__(self) -> str:
        kind = "versioned" if self.is_versioned else "legacy"
        return f"TransactionHandle({kind}, signers={len(self.signers)})"
