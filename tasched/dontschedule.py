"""The dontschedule strategy: nodes violating its rules are filtered out."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tasched.strategy import RuleStrategy

STRATEGY_TYPE = "dontschedule"


@dataclass(eq=False)
class DontScheduleStrategy(RuleStrategy):
    """Marks nodes as violating when any of its rules holds for them."""

    def violated(self, cache: Any) -> set[str]:
        """Return the nodes for which any rule holds."""
        return self._violating_nodes(cache)

    def enforce(self, enforcer: Any, cache: Any) -> int:
        """Nothing is enforced for this strategy."""
        return 0

    def strategy_type(self) -> str:
        return STRATEGY_TYPE