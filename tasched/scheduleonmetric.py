"""The scheduleonmetric strategy: its rule orders nodes when prioritizing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tasched.strategy import RuleStrategy

STRATEGY_TYPE = "scheduleonmetric"


@dataclass(eq=False)
class ScheduleOnMetricStrategy(RuleStrategy):
    """A strategy that never reports violations and enforces nothing."""

    def violated(self, cache: Any) -> set[str]:
        return set()

    def enforce(self, enforcer: Any, cache: Any) -> int:
        return 0

    def strategy_type(self) -> str:
        return STRATEGY_TYPE