"""
Shared fixtures: test mnemonic, an in-memory indexer and founder outputs whose addresses
are derived from the test mnemonic.
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest
from coincurve import PrivateKey

from angorspend.backends.base import IndexerGateway
from angorspend.errors import BroadcastError, RemoteLookupError
from angorspend.models import (
    InvestmentRecord,
    NetworkType,
    OutspendRecord,
    ProjectRecord,
    TransactionRecord,
    TxOutputRecord,
)
from angorspend.wallet.address import pubkey_to_p2wpkh_script
from angorspend.wallet.derivation import DerivationContext

TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)

# BIP173 testnet P2WPKH vector
TESTNET_PAYOUT = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"


def founder_pubkey(n: int) -> str:
    """Deterministic founder public key (hex) for tests."""
    return PrivateKey.from_int(n).public_key.format(compressed=True).hex()


def make_txid(n: int) -> str:
    return f"{n:064x}"


class FakeIndexer(IndexerGateway):
    """In-memory indexer. Any endpoint can be made to fail by key."""

    def __init__(self) -> None:
        self.projects: list[ProjectRecord] = []
        self.investments: dict[str, list[InvestmentRecord]] = {}
        self.transactions: dict[str, TransactionRecord] = {}
        self.outspends: dict[str, list[OutspendRecord]] = {}
        self.failing: set[str] = set()
        self.broadcast_error: str | None = None
        self.broadcasts: list[str] = []
        self.calls: list[str] = []
        self.closed = False

    def add_project(self, project_id: str, founder_key: str) -> None:
        self.projects.append(
            ProjectRecord.model_validate(
                {"projectIdentifier": project_id, "founderKey": founder_key}
            )
        )
        self.investments.setdefault(project_id, [])

    def add_investment(
        self,
        project_id: str,
        txid: str,
        value: int,
        address: str,
        scriptpubkey: str = "",
        spent: bool = False,
    ) -> None:
        self.investments.setdefault(project_id, []).append(
            InvestmentRecord.model_validate({"transactionId": txid})
        )
        self.transactions[txid] = TransactionRecord(
            txid=txid,
            vout=[
                TxOutputRecord(
                    value=value,
                    n=0,
                    scriptpubkey=scriptpubkey,
                    scriptpubkey_address=address,
                    scriptpubkey_type="v0_p2wpkh",
                ),
                TxOutputRecord(value=0, n=1, scriptpubkey="6a00", scriptpubkey_type="op_return"),
            ],
        )
        self.outspends[txid] = [OutspendRecord(spent=spent), OutspendRecord(spent=False)]

    def set_spent(self, txid: str, vout: int = 0, spent: bool = True) -> None:
        self.outspends[txid][vout] = OutspendRecord(spent=spent)

    def _check(self, key: str) -> None:
        self.calls.append(key)
        if key in self.failing:
            raise RemoteLookupError(f"simulated failure for {key}")

    async def list_projects(self, limit: int, offset: int) -> list[ProjectRecord]:
        self._check(f"projects:{offset}")
        return self.projects[offset : offset + limit]

    async def list_investments(self, project_id: str) -> list[InvestmentRecord]:
        self._check(f"investments:{project_id}")
        return list(self.investments.get(project_id, []))

    async def get_transaction(self, txid: str) -> TransactionRecord:
        self._check(f"tx:{txid}")
        if txid not in self.transactions:
            raise RemoteLookupError(f"Transaction {txid} not found")
        return self.transactions[txid]

    async def get_outspends(self, txid: str) -> list[OutspendRecord]:
        self._check(f"outspends:{txid}")
        if txid not in self.outspends:
            raise RemoteLookupError(f"No spend status for {txid}")
        return self.outspends[txid]

    async def broadcast_transaction(self, tx_hex: str) -> str:
        self.calls.append("broadcast")
        if self.broadcast_error:
            raise BroadcastError(self.broadcast_error, tx_hex=tx_hex)
        self.broadcasts.append(tx_hex)
        return "f" * 64

    async def close(self) -> None:
        self.closed = True


@dataclass
class FounderFixture:
    """A founder key with the address and script derived for it from the test mnemonic."""

    founder_key: str
    address: str
    scriptpubkey: str
    upi: int


@pytest.fixture
def sample_mnemonic() -> str:
    """Test mnemonic (BIP39 test vector, not for production use!)."""
    return TEST_MNEMONIC


@pytest.fixture
def derivation(sample_mnemonic: str) -> DerivationContext:
    return DerivationContext(seed_phrase=sample_mnemonic, network=NetworkType.TESTNET)


@pytest.fixture
def fake_indexer() -> FakeIndexer:
    return FakeIndexer()


@pytest.fixture
def founders(derivation: DerivationContext) -> list[FounderFixture]:
    result = []
    for n in (11, 22, 33):
        key = founder_pubkey(n)
        derived = derivation.derive_for_founder(key)
        pubkey = derived.private_key.public_key.format(compressed=True)
        result.append(
            FounderFixture(
                founder_key=key,
                address=derived.address,
                scriptpubkey=pubkey_to_p2wpkh_script(pubkey).hex(),
                upi=derived.upi,
            )
        )
    return result
