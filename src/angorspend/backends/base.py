"""
Base indexer gateway interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from angorspend.errors import RemoteLookupError
from angorspend.models import (
    InvestmentRecord,
    OutspendRecord,
    ProjectRecord,
    TransactionRecord,
)


class IndexerGateway(ABC):
    """
    Read/broadcast access to the Angor indexer.

    Every method performs one request/response exchange. Implementations raise
    RemoteLookupError on transport or shape failures, BroadcastError on a rejected
    broadcast; they never retry.
    """

    @abstractmethod
    async def list_projects(self, limit: int, offset: int) -> list[ProjectRecord]:
        """One page of the project listing"""

    @abstractmethod
    async def list_investments(self, project_id: str) -> list[InvestmentRecord]:
        """All investments recorded for a project"""

    @abstractmethod
    async def get_transaction(self, txid: str) -> TransactionRecord:
        """Transaction with its decoded outputs"""

    @abstractmethod
    async def get_outspends(self, txid: str) -> list[OutspendRecord]:
        """Spend status of every output, aligned by output index"""

    @abstractmethod
    async def broadcast_transaction(self, tx_hex: str) -> str:
        """Broadcast raw transaction, returns txid"""

    async def is_output_spent(self, txid: str, vout: int) -> bool:
        """Spend status of a single output, taken from the aligned outspends array."""
        outspends = await self.get_outspends(txid)
        if vout >= len(outspends):
            raise RemoteLookupError(
                f"Outspends for {txid} has {len(outspends)} entries, no index {vout}"
            )
        return outspends[vout].spent

    async def close(self) -> None:
        """Close gateway connection"""
        pass
