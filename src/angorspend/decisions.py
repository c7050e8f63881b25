"""
Operator decision points.

The spend flow asks a DecisionProvider instead of reading a terminal, so the core runs
unchanged under the interactive CLI or in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class DecisionProvider(ABC):
    @abstractmethod
    def should_rescan(self, cached_count: int, cached_total: int) -> bool:
        """True to clear the cache and run a full pass, False to use the cache as-is"""

    @abstractmethod
    def should_spend(self, output_count: int, total_value: int) -> bool:
        """Whether to spend any of the discovered outputs"""

    @abstractmethod
    def select_count(self, available: int) -> int:
        """How many outputs (1..available) to spend, in cached order"""

    @abstractmethod
    def confirm_broadcast(self, summary: dict[str, Any], tx_hex: str) -> bool:
        """Review the signed transaction and decide whether to broadcast it"""


@dataclass
class ScriptedDecisions(DecisionProvider):
    """Fixed answers; records what it was shown."""

    rescan: bool = False
    spend: bool = True
    count: int | None = None
    broadcast: bool = True
    reviewed: list[tuple[dict[str, Any], str]] = field(default_factory=list)

    def should_rescan(self, cached_count: int, cached_total: int) -> bool:
        return self.rescan

    def should_spend(self, output_count: int, total_value: int) -> bool:
        return self.spend

    def select_count(self, available: int) -> int:
        return available if self.count is None else self.count

    def confirm_broadcast(self, summary: dict[str, Any], tx_hex: str) -> bool:
        self.reviewed.append((summary, tx_hex))
        return self.broadcast
