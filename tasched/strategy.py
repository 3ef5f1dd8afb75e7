"""Common behaviour of strategies taken from a telemetry policy."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from tasched.operator import evaluate_rule
from tasched.policy import TASPolicyRule

logger = logging.getLogger(__name__)


class Strategy(ABC):
    """A strategy that can report the nodes violating it.

    The ``cache`` passed to :meth:`violated` must provide ``read_metric(name)``,
    returning node metrics keyed by node name and raising when the metric is
    unknown.
    """

    policy_name: str

    @abstractmethod
    def violated(self, cache: Any) -> set[str]:
        """Return the names of nodes currently violating this strategy."""

    @abstractmethod
    def strategy_type(self) -> str:
        """Return the strategy type name used to index the strategy."""

    @abstractmethod
    def equals(self, other: Strategy) -> bool:
        """Return whether this strategy is the same as ``other``."""


@dataclass(eq=False)
class RuleStrategy(Strategy):
    """A strategy made of the rules of one policy."""

    policy_name: str = ""
    rules: list[TASPolicyRule] = field(default_factory=list)

    def equals(self, other: Strategy) -> bool:
        """Same type, same policy name and the same non-empty list of rules."""
        return (
            type(other) is type(self)
            and other.policy_name == self.policy_name
            and bool(self.rules)
            and self.rules == other.rules
        )

    def _violating_nodes(self, cache: Any) -> set[str]:
        violating: set[str] = set()
        for rule in self.rules:
            try:
                node_metrics = cache.read_metric(rule.metricname)
            except Exception as exc:  # any cache failure skips the rule
                logger.info("%s", exc)
                continue
            for node_name, node_metric in node_metrics.items():
                logger.debug("%s %s = %s", node_name, rule.metricname, node_metric.value)
                if evaluate_rule(node_metric.value, rule):
                    logger.info(
                        "%s violating %s: %s",
                        node_name,
                        self.policy_name,
                        _rule_to_string(rule),
                    )
                    violating.add(node_name)
        return violating


def _rule_to_string(rule: TASPolicyRule) -> str:
    return f"{rule.metricname} {rule.operator} {rule.target}"


@dataclass(eq=False)
class MockStrategy(Strategy):
    """A strategy with no rules, for use in tests."""

    strategy_type_mock: str = ""
    policy_name: str = "mock-policy"

    def violated(self, cache: Any) -> set[str]:
        return set()

    def enforce(self, enforcer: Any, cache: Any) -> int:
        return 0

    def strategy_type(self) -> str:
        return self.strategy_type_mock

    def equals(self, other: Strategy) -> bool:
        return self.strategy_type() == other.strategy_type()