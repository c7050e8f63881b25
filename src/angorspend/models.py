"""
Core data models using Pydantic for validation and serialization.

Two families live here:
- the cached UTXO records (UnspentOutput, CacheSnapshot) and the in-memory UnspentSet
  that owns them,
- typed schemas for every indexer response, so shape mismatches fail at the boundary.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from angorspend.constants import (
    MAINNET_INDEXER_URL,
    TESTNET_INDEXER_URL,
)


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"

    @property
    def bech32_hrp(self) -> str:
        return "bc" if self == NetworkType.MAINNET else "tb"

    @property
    def currency_symbol(self) -> str:
        return "BTC" if self == NetworkType.MAINNET else "TBTC"

    @property
    def default_indexer_url(self) -> str:
        if self == NetworkType.MAINNET:
            return MAINNET_INDEXER_URL
        return TESTNET_INDEXER_URL


Outpoint = tuple[str, int]

TXID_PATTERN = re.compile(r"[0-9a-fA-F]{64}")


class UnspentOutput(BaseModel):
    """
    One candidate spendable output.

    (txid, vout) is the identity, compared case-insensitively; two records with the same
    pair are the same output. Serialized with the cache field names (TxId, Vout, ...),
    keeping values as loaded so a snapshot re-saves unchanged.
    """

    model_config = ConfigDict(populate_by_name=True)

    txid: str = Field(..., alias="TxId", pattern=r"^[0-9a-fA-F]{64}$")
    vout: int = Field(..., alias="Vout", ge=0)
    value: int = Field(..., alias="Value", ge=0, lt=2**64)
    address: str | None = Field(default="", alias="Address")
    script_type: str | None = Field(default="", alias="ScriptType")
    founder_key: str | None = Field(default="", alias="FounderKey")

    @property
    def outpoint(self) -> Outpoint:
        return (self.txid.lower(), self.vout)

    @property
    def output_id(self) -> str:
        return f"{self.txid}:{self.vout}"

    @property
    def has_founder_key(self) -> bool:
        return bool(self.founder_key and self.founder_key.strip())


class CacheSnapshot(BaseModel):
    """The persisted cache document: {"UnspentOutputs": [...]}. Totals are never stored."""

    model_config = ConfigDict(populate_by_name=True)

    unspent_outputs: list[UnspentOutput] = Field(default_factory=list, alias="UnspentOutputs")


class UnspentSet:
    """
    Authoritative mapping from outpoint to UnspentOutput.

    Inserting an outpoint that is already present replaces the stored record.
    The total is always recomputed from the records.
    """

    def __init__(self, outputs: Iterable[UnspentOutput] = ()):
        self._outputs: dict[Outpoint, UnspentOutput] = {}
        for output in outputs:
            self.upsert(output)

    @classmethod
    def from_snapshot(cls, snapshot: CacheSnapshot) -> UnspentSet:
        return cls(snapshot.unspent_outputs)

    def to_snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(unspent_outputs=[o.model_copy() for o in self._outputs.values()])

    def upsert(self, output: UnspentOutput) -> bool:
        """Insert or overwrite. Returns True if the outpoint was not present before."""
        is_new = output.outpoint not in self._outputs
        self._outputs[output.outpoint] = output
        return is_new

    def remove(self, txid: str, vout: int) -> UnspentOutput | None:
        return self._outputs.pop((txid.lower(), vout), None)

    def get(self, txid: str, vout: int) -> UnspentOutput | None:
        return self._outputs.get((txid.lower(), vout))

    def clear(self) -> None:
        self._outputs.clear()

    def outputs(self) -> list[UnspentOutput]:
        return list(self._outputs.values())

    def total_value(self) -> int:
        return sum(output.value for output in self._outputs.values())

    def __contains__(self, outpoint: object) -> bool:
        if not isinstance(outpoint, tuple) or len(outpoint) != 2:
            return False
        txid, vout = outpoint
        return (str(txid).lower(), vout) in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)

    def __iter__(self) -> Iterator[UnspentOutput]:
        return iter(list(self._outputs.values()))


# Indexer response schemas. Unknown fields are ignored; missing required ones fail fast.


class ProjectRecord(BaseModel):
    project_identifier: str = Field(..., alias="projectIdentifier", min_length=1)
    founder_key: str = Field(..., alias="founderKey", min_length=1)


class InvestmentRecord(BaseModel):
    """
    One investment listing entry.

    The txid is kept as received and checked per entry during discovery, so a malformed
    entry skips that investment only.
    """

    transaction_id: str | None = Field(default=None, alias="transactionId")

    @field_validator("transaction_id", mode="before")
    @classmethod
    def non_string_to_none(cls, v: object) -> str | None:
        return v if isinstance(v, str) else None

    def require_txid(self) -> str:
        if self.transaction_id is None or not TXID_PATTERN.fullmatch(self.transaction_id):
            raise ValueError(f"Invalid investment transaction id: {self.transaction_id!r}")
        return self.transaction_id


class TxOutputRecord(BaseModel):
    value: int = Field(..., ge=0)
    n: int | None = Field(default=None, ge=0)
    scriptpubkey: str = ""
    scriptpubkey_address: str = "unknown"
    scriptpubkey_type: str = "unknown"

    @field_validator("scriptpubkey_address", "scriptpubkey_type", mode="before")
    @classmethod
    def default_unknown(cls, v: str | None) -> str:
        return v or "unknown"

    @field_validator("scriptpubkey", mode="before")
    @classmethod
    def default_empty(cls, v: str | None) -> str:
        return v or ""


class TransactionRecord(BaseModel):
    txid: str | None = None
    vout: list[TxOutputRecord] = Field(default_factory=list)


class OutspendRecord(BaseModel):
    spent: bool
    txid: str | None = None
    vin: int | None = None
