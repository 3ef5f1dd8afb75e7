"""Evaluating policy rules against metric values and ordering nodes by metric."""

from __future__ import annotations

import operator as _op
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from tasched.metrics import NodeMetric
from tasched.policy import TASPolicyRule

_COMPARISONS = {
    "LessThan": _op.lt,
    "GreaterThan": _op.gt,
    "Equals": _op.eq,
}


@dataclass(frozen=True)
class NodeSortableMetric:
    """A node name paired with its metric value."""

    node_name: str
    metric_value: Decimal


def evaluate_rule(value: Decimal | int, rule: TASPolicyRule) -> bool:
    """Return whether the value satisfies the rule's operator against its target."""
    try:
        compare = _COMPARISONS[rule.operator]
    except KeyError:
        raise ValueError(f"unknown operator: {rule.operator!r}") from None
    return compare(Decimal(value), Decimal(rule.target))


def ordered_list(
    metrics_info: Mapping[str, NodeMetric], operator: str
) -> list[NodeSortableMetric]:
    """Return nodes ordered by metric: descending for GreaterThan, ascending for LessThan."""
    items = [NodeSortableMetric(name, info.value) for name, info in metrics_info.items()]
    if operator == "GreaterThan":
        items.sort(key=lambda item: item.metric_value, reverse=True)
    elif operator == "LessThan":
        items.sort(key=lambda item: item.metric_value)
    return items