"""
Founder-spend session.

SpendSession owns everything one run needs: settings, the indexer gateway, the cache, the
live UnspentSet and the operator's decision provider. Operations take and mutate that
state explicitly; there are no module-level singletons.

Flow: load cache -> (rescan | use cache | auto-scan if empty) -> select -> assemble ->
review -> broadcast -> prune + persist.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from angorspend.assembler import CandidateTransaction, TransactionAssembler
from angorspend.backends.base import IndexerGateway
from angorspend.backends.indexer import HttpIndexer
from angorspend.cache import UtxoCache
from angorspend.config import SpendSettings
from angorspend.constants import SATS_PER_BTC
from angorspend.decisions import DecisionProvider
from angorspend.errors import AngorSpendError, BroadcastError, ErrorKind
from angorspend.models import UnspentOutput, UnspentSet
from angorspend.reconcile import DiscoveryReport, ReconciliationEngine
from angorspend.wallet.derivation import DerivationContext


class SpendStatus(str, Enum):
    NOTHING_TO_SPEND = "nothing_to_spend"
    NOT_REQUESTED = "not_requested"
    ABORTED = "aborted"
    DECLINED = "declined"
    BROADCAST_FAILED = "broadcast_failed"
    BROADCAST = "broadcast"


@dataclass
class SpendOutcome:
    status: SpendStatus
    candidate: CandidateTransaction | None = None
    txid: str | None = None
    error_kind: ErrorKind | None = None
    message: str = ""
    pruned: int = 0

    @property
    def signed_hex(self) -> str | None:
        return self.candidate.tx_hex if self.candidate else None


def format_amount(sats: int, symbol: str) -> str:
    return f"{sats:,} sats ({sats / SATS_PER_BTC:.8f} {symbol})"


class SpendSession:
    def __init__(
        self,
        settings: SpendSettings,
        gateway: IndexerGateway,
        decisions: DecisionProvider,
        cache: UtxoCache | None = None,
        derivation: DerivationContext | None = None,
    ):
        self.settings = settings
        self.gateway = gateway
        self.decisions = decisions
        self.cache = cache or UtxoCache(settings.cache_file)
        self.derivation = derivation or settings.derivation_context()
        self.unspent = UnspentSet()
        self.engine = ReconciliationEngine(gateway, self.cache, settings.page_size)
        self.assembler = TransactionAssembler(gateway, self.derivation, settings.payout_address)

    @classmethod
    def from_settings(cls, settings: SpendSettings, decisions: DecisionProvider) -> SpendSession:
        gateway = HttpIndexer(settings.effective_indexer_url, timeout=settings.request_timeout)
        return cls(settings, gateway, decisions)

    @property
    def total_value(self) -> int:
        return self.unspent.total_value()

    def load_cache(self) -> UnspentSet:
        self.unspent = self.cache.load()
        return self.unspent

    async def discover(self, clear_first: bool = False) -> DiscoveryReport:
        return await self.engine.discover(self.unspent, clear_first=clear_first)

    async def refresh(self, rescan: bool | None = None) -> DiscoveryReport | None:
        """
        Bring the UnspentSet up to date.

        An empty cache always triggers a pass. Otherwise `rescan` (or the decision
        provider when it is None) chooses between a cleared full pass and the cache as-is.
        """
        if len(self.unspent) == 0:
            logger.info("Cache is empty, running discovery")
            return await self.discover()

        if rescan is None:
            rescan = self.decisions.should_rescan(len(self.unspent), self.total_value)

        if rescan:
            return await self.discover(clear_first=True)

        logger.info(f"Using {len(self.unspent)} cached output(s)")
        return None

    def spendable_outputs(self) -> list[UnspentOutput]:
        """Outputs that can be re-derived; entries without a founder key are never offered."""
        return [o for o in self.unspent if o.has_founder_key]

    def select(self, count: int) -> list[UnspentOutput]:
        spendable = self.spendable_outputs()
        if not 1 <= count <= len(spendable):
            raise ValueError(f"Select between 1 and {len(spendable)} outputs, got {count}")
        return spendable[:count]

    async def spend(self, selection: list[UnspentOutput]) -> SpendOutcome:
        """
        Assemble, review and (if confirmed) broadcast a consolidation transaction.

        The UnspentSet changes only after a successful broadcast.
        """
        try:
            candidate = await self.assembler.assemble(selection)
        except AngorSpendError as e:
            logger.error(f"Transaction assembly aborted: {e}")
            return SpendOutcome(SpendStatus.ABORTED, error_kind=e.kind, message=str(e))
        except ValueError as e:
            logger.error(f"Transaction assembly aborted: {e}")
            return SpendOutcome(SpendStatus.ABORTED, message=str(e))

        if not self.decisions.confirm_broadcast(candidate.summary(), candidate.tx_hex):
            logger.info("Transaction not broadcast. The hex can be broadcast manually.")
            return SpendOutcome(SpendStatus.DECLINED, candidate=candidate)

        try:
            txid = await self.assembler.broadcast(candidate)
        except BroadcastError as e:
            logger.error(f"Broadcast failed: {e}. Cache left unchanged.")
            return SpendOutcome(
                SpendStatus.BROADCAST_FAILED,
                candidate=candidate,
                error_kind=e.kind,
                message=str(e),
            )

        logger.info(f"Transaction broadcast successfully: {txid}")
        pruned = self.engine.prune_spent(self.unspent, candidate.outpoints)
        return SpendOutcome(SpendStatus.BROADCAST, candidate=candidate, txid=txid, pruned=pruned)

    async def run(self, rescan: bool | None = None) -> SpendOutcome:
        """Full operator flow driven by the decision provider."""
        self.load_cache()
        await self.refresh(rescan)

        spendable = self.spendable_outputs()
        logger.info(
            f"Total unspent value: {format_amount(self.total_value, self.settings.currency_symbol)}"
            f" in {len(self.unspent)} output(s), {len(spendable)} spendable"
        )

        if not spendable:
            return SpendOutcome(SpendStatus.NOTHING_TO_SPEND)

        if not self.decisions.should_spend(len(spendable), sum(o.value for o in spendable)):
            logger.info("Transaction creation cancelled.")
            return SpendOutcome(SpendStatus.NOT_REQUESTED)

        count = self.decisions.select_count(len(spendable))
        try:
            selection = self.select(count)
        except ValueError as e:
            logger.error(str(e))
            return SpendOutcome(SpendStatus.ABORTED, message=str(e))

        return await self.spend(selection)

    async def close(self) -> None:
        await self.gateway.close()
