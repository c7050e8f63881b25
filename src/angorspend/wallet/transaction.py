"""
SegWit transaction model and serialization for the consolidation transaction.

Inputs are P2WPKH founder outputs; the single output pays the operator's payout address.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field
from typing import Any

from angorspend.constants import TX_LOCKTIME, TX_SEQUENCE, TX_VERSION
from angorspend.models import NetworkType
from angorspend.wallet.address import scriptpubkey_to_address


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout)."""
    # txid is in display format (big-endian), reversed for raw tx
    return bytes.fromhex(txid)[::-1] + struct.pack("<I", vout)


@dataclass
class TxInput:
    """Spendable input: outpoint plus the value and locking script it commits to."""

    txid: str
    vout: int
    value: int
    scriptpubkey: bytes
    sequence: int = TX_SEQUENCE
    witness: list[bytes] = field(default_factory=list)

    @property
    def outpoint(self) -> bytes:
        return serialize_outpoint(self.txid, self.vout)


@dataclass
class TxOutput:
    value: int
    scriptpubkey: bytes


@dataclass
class Transaction:
    inputs: list[TxInput]
    outputs: list[TxOutput]
    version: int = TX_VERSION
    locktime: int = TX_LOCKTIME

    @property
    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def _serialize_body(self) -> tuple[bytes, bytes]:
        """Return (inputs+outputs section, witness section)."""
        body = varint(len(self.inputs))
        for inp in self.inputs:
            body += inp.outpoint
            # Empty scriptSig for native SegWit
            body += bytes([0x00])
            body += struct.pack("<I", inp.sequence)

        body += varint(len(self.outputs))
        for out in self.outputs:
            body += struct.pack("<Q", out.value)
            body += varint(len(out.scriptpubkey))
            body += out.scriptpubkey

        witness = b""
        for inp in self.inputs:
            witness += varint(len(inp.witness))
            for item in inp.witness:
                witness += varint(len(item))
                witness += item

        return body, witness

    def serialize(self) -> bytes:
        if not self.has_witness:
            return self.serialize_legacy()
        body, witness = self._serialize_body()
        return (
            struct.pack("<I", self.version)
            + bytes([0x00, 0x01])
            + body
            + witness
            + struct.pack("<I", self.locktime)
        )

    def serialize_legacy(self) -> bytes:
        """Serialization without witness data (txid preimage)."""
        body, _ = self._serialize_body()
        return struct.pack("<I", self.version) + body + struct.pack("<I", self.locktime)

    def to_hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        return hash256(self.serialize_legacy())[::-1].hex()

    @property
    def wtxid(self) -> str:
        return hash256(self.serialize())[::-1].hex()

    @property
    def size(self) -> int:
        return len(self.serialize())

    @property
    def vsize(self) -> int:
        base = len(self.serialize_legacy())
        total = self.size
        weight = base * 3 + total
        return (weight + 3) // 4

    def summary(self, network: NetworkType | str) -> dict[str, Any]:
        """Decoded view for operator review."""
        outputs = []
        for i, out in enumerate(self.outputs):
            try:
                address = scriptpubkey_to_address(out.scriptpubkey, network)
            except ValueError:
                address = "unknown"
            outputs.append(
                {
                    "n": i,
                    "value": out.value,
                    "address": address,
                    "scriptpubkey": out.scriptpubkey.hex(),
                }
            )

        return {
            "txid": self.txid,
            "wtxid": self.wtxid,
            "version": self.version,
            "locktime": self.locktime,
            "size": self.size,
            "vsize": self.vsize,
            "inputs": [
                {
                    "txid": inp.txid,
                    "vout": inp.vout,
                    "value": inp.value,
                    "sequence": inp.sequence,
                    "witness_items": len(inp.witness),
                }
                for inp in self.inputs
            ],
            "outputs": outputs,
        }
