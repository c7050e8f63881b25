"""
UTXO reconciliation engine.

A discovery pass walks projects -> investments -> transactions through the indexer,
inspects the first output of every investment transaction and reconciles it against the
UnspentSet:
- unspent: insert or overwrite the entry for (txid, vout)
- spent: evict any cached entry for (txid, vout)

Failures are local. A failed investment listing, transaction or spend-status lookup skips
that item only; a failed project page stops paging but keeps everything found so far.
A full rescan that cannot list the first project page restores the previous entries and
leaves the cache file untouched.
The snapshot is persisted as soon as the pass (or a post-spend prune) mutates the set.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from loguru import logger

from angorspend.backends.base import IndexerGateway
from angorspend.cache import UtxoCache
from angorspend.constants import FOUNDER_OUTPUT_INDEX, PROJECTS_PAGE_SIZE
from angorspend.errors import AngorSpendError, CacheIOError, ErrorKind
from angorspend.models import Outpoint, ProjectRecord, UnspentOutput, UnspentSet


@dataclass
class SkippedItem:
    stage: str
    reference: str
    kind: ErrorKind
    message: str


@dataclass
class DiscoveryReport:
    """Outcome of one discovery pass."""

    projects: int = 0
    investments: int = 0
    transactions: int = 0
    unspent_found: int = 0
    spent_evicted: int = 0
    skipped: list[SkippedItem] = field(default_factory=list)
    pagination_aborted: bool = False
    persisted: bool = False
    total_value: int = 0
    output_count: int = 0

    def skip(self, stage: str, reference: str, error: Exception) -> None:
        kind = error.kind if isinstance(error, AngorSpendError) else ErrorKind.REMOTE_LOOKUP
        self.skipped.append(SkippedItem(stage, reference, kind, str(error)))


class ReconciliationEngine:
    """
    Keeps an UnspentSet in step with the indexer.

    One request is in flight at a time; the set has a single writer.
    """

    def __init__(
        self,
        gateway: IndexerGateway,
        cache: UtxoCache | None = None,
        page_size: int = PROJECTS_PAGE_SIZE,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.gateway = gateway
        self.cache = cache
        self.page_size = page_size

    async def discover(self, unspent: UnspentSet, clear_first: bool = False) -> DiscoveryReport:
        """Run a full discovery pass over every project page and persist the result."""
        report = DiscoveryReport()

        previous = unspent.outputs() if clear_first else []
        if clear_first:
            logger.info(f"Clearing {len(unspent)} cached output(s) before full rescan")
            unspent.clear()

        logger.info("Discovering Angor projects...")
        offset = 0

        while True:
            try:
                projects = await self.gateway.list_projects(self.page_size, offset)
            except AngorSpendError as e:
                logger.error(f"Error discovering projects at offset {offset}: {e}")
                report.skip("projects", f"offset={offset}", e)
                report.pagination_aborted = True
                break

            if not projects:
                if offset == 0:
                    logger.info("No projects found.")
                break

            logger.info(f"Found {len(projects)} projects in batch (offset {offset})")
            report.projects += len(projects)

            for project in projects:
                await self._process_project(project, unspent, report)

            if len(projects) < self.page_size:
                break
            offset += self.page_size

        if clear_first and report.pagination_aborted and report.projects == 0:
            logger.warning("Rescan could not list any project; restoring the previous cache")
            for output in previous:
                unspent.upsert(output)
        else:
            report.persisted = self._persist(unspent)

        report.total_value = unspent.total_value()
        report.output_count = len(unspent)

        logger.info(
            f"Discovery complete: {report.projects} projects, {report.investments} investments, "
            f"{report.unspent_found} unspent, {report.spent_evicted} evicted, "
            f"{len(report.skipped)} skipped; {report.output_count} cached outputs "
            f"totalling {report.total_value} sats"
        )
        return report

    async def _process_project(
        self, project: ProjectRecord, unspent: UnspentSet, report: DiscoveryReport
    ) -> None:
        project_id = project.project_identifier
        logger.info(f"Project: {project_id} (Founder: {project.founder_key})")

        try:
            investments = await self.gateway.list_investments(project_id)
        except AngorSpendError as e:
            logger.warning(f"Error fetching investments for project {project_id}: {e}")
            report.skip("investments", project_id, e)
            return

        if not investments:
            logger.debug(f"No investments found for project {project_id}")
            return

        logger.debug(f"Found {len(investments)} investments for project {project_id}")
        report.investments += len(investments)

        for investment in investments:
            txid = investment.transaction_id or "<missing>"
            try:
                txid = investment.require_txid()
                await self.check_transaction_output(txid, project.founder_key, unspent, report)
            except (AngorSpendError, ValueError) as e:
                logger.warning(
                    f"Error checking transaction {txid} (project {project_id}): {e}"
                )
                report.skip("transaction", txid, e)

    async def check_transaction_output(
        self,
        txid: str,
        founder_key: str,
        unspent: UnspentSet,
        report: DiscoveryReport | None = None,
    ) -> UnspentOutput | None:
        """
        Reconcile the founder output (first output) of one investment transaction.

        Returns the stored entry if the output is unspent, None if it is spent.
        """
        tx = await self.gateway.get_transaction(txid)
        if not tx.vout:
            raise ValueError(f"No outputs found for transaction {txid}")

        first_output = tx.vout[FOUNDER_OUTPUT_INDEX]
        vout = first_output.n if first_output.n is not None else FOUNDER_OUTPUT_INDEX

        spent = await self.gateway.is_output_spent(txid, vout)

        if report is not None:
            report.transactions += 1

        logger.info(
            f"Transaction {txid} output {vout}: {first_output.value} sats, "
            f"Address: {first_output.scriptpubkey_address}, "
            f"Type: {first_output.scriptpubkey_type}, Spent: {spent}"
        )

        if spent:
            if unspent.remove(txid, vout) is not None:
                logger.info(f"Evicted spent output {txid}:{vout} from cache")
                if report is not None:
                    report.spent_evicted += 1
            return None

        entry = UnspentOutput(
            txid=txid,
            vout=vout,
            value=first_output.value,
            address=first_output.scriptpubkey_address,
            script_type=first_output.scriptpubkey_type,
            founder_key=founder_key,
        )
        unspent.upsert(entry)
        if report is not None:
            report.unspent_found += 1
        return entry

    def prune_spent(self, unspent: UnspentSet, outpoints: Iterable[Outpoint]) -> int:
        """Remove outputs consumed by a broadcast transaction and persist immediately."""
        removed = 0
        for txid, vout in outpoints:
            if unspent.remove(txid, vout) is not None:
                removed += 1

        logger.info(
            f"Pruned {removed} spent output(s); {len(unspent)} remaining "
            f"totalling {unspent.total_value()} sats"
        )
        self._persist(unspent)
        return removed

    def _persist(self, unspent: UnspentSet) -> bool:
        if self.cache is None:
            return False
        try:
            self.cache.save(unspent)
        except CacheIOError as e:
            logger.error(f"{e}; in-memory UTXO set kept")
            return False
        return True
