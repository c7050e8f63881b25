"""
Error taxonomy for the founder-spend tool.

Discovery-time errors (RemoteLookupError) are local to one project, investment or
transaction and never abort a pass. Assembly-time integrity errors (AddressMismatchError,
InsufficientValueError, TransactionVerificationError) are fatal to the spend attempt and
must never lead to a broadcast.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_SEED = "invalid_seed"
    INVALID_FOUNDER_KEY = "invalid_founder_key"
    INVALID_PAYOUT_ADDRESS = "invalid_payout_address"
    MISSING_FOUNDER_KEY = "missing_founder_key"
    ADDRESS_MISMATCH = "address_mismatch"
    INSUFFICIENT_VALUE = "insufficient_value"
    VERIFICATION_FAILED = "verification_failed"
    REMOTE_LOOKUP = "remote_lookup"
    CACHE_IO = "cache_io"
    BROADCAST = "broadcast"
    SIGNING = "signing"
    UNKNOWN = "unknown"


class AngorSpendError(Exception):
    kind: ErrorKind = ErrorKind.UNKNOWN


class InvalidSeedError(AngorSpendError):
    kind = ErrorKind.INVALID_SEED


class InvalidFounderKeyError(AngorSpendError):
    kind = ErrorKind.INVALID_FOUNDER_KEY


class InvalidPayoutAddressError(AngorSpendError):
    kind = ErrorKind.INVALID_PAYOUT_ADDRESS


class MissingFounderKeyError(AngorSpendError):
    kind = ErrorKind.MISSING_FOUNDER_KEY


class AddressMismatchError(AngorSpendError):
    """Derived key does not control the cached output address."""

    kind = ErrorKind.ADDRESS_MISMATCH

    def __init__(self, outpoint: str, derived: str, cached: str):
        self.outpoint = outpoint
        self.derived = derived
        self.cached = cached
        super().__init__(
            f"Address mismatch for UTXO {outpoint}: derived '{derived}', cached '{cached}'. "
            "Check the founder key or derivation settings."
        )


class InsufficientValueError(AngorSpendError):
    kind = ErrorKind.INSUFFICIENT_VALUE

    def __init__(self, total_input: int, fee: int):
        self.total_input = total_input
        self.fee = fee
        super().__init__(
            f"Inputs total {total_input} sats do not cover fee of {fee} sats"
        )


class TransactionVerificationError(AngorSpendError):
    kind = ErrorKind.VERIFICATION_FAILED


class SigningError(AngorSpendError):
    kind = ErrorKind.SIGNING


class RemoteLookupError(AngorSpendError):
    """Indexer request failed or returned an unexpected shape."""

    kind = ErrorKind.REMOTE_LOOKUP


class CacheIOError(AngorSpendError):
    kind = ErrorKind.CACHE_IO


class BroadcastError(AngorSpendError):
    """Broadcast rejected; the signed transaction is kept for out-of-band use."""

    kind = ErrorKind.BROADCAST

    def __init__(self, message: str, tx_hex: str = ""):
        self.tx_hex = tx_hex
        super().__init__(message)
