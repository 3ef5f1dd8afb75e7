"""The deschedule strategy: nodes violating its rules are labelled as violators.

Labelling is done through the enforcer's ``kube_client``, which must provide:

* ``list_nodes(label_selector=None)`` returning node objects in their API form,
  ``{"metadata": {"name": ..., "labels": {...}}, ...}``, optionally filtered by a
  ``key=value`` label selector;
* ``patch_node(name, patch)`` applying a list of JSON patch operations to the
  named node.

The labels can then be used elsewhere, for example by a descheduler, to act on
the violation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from tasched.strategy import RuleStrategy

logger = logging.getLogger(__name__)

STRATEGY_TYPE = "deschedule"
VIOLATING = "violating"
_LABEL_PATH = "/metadata/labels/"


class LabelError(Exception):
    """Raised when one or more nodes could not be labelled."""


def _node_name(node: Mapping[str, Any]) -> str:
    return (node.get("metadata") or {}).get("name", "") or ""


def _node_labels(node: Mapping[str, Any]) -> Mapping[str, str]:
    return (node.get("metadata") or {}).get("labels") or {}


def _add_label(policy_name: str, value: str) -> dict[str, str]:
    return {"op": "add", "path": _LABEL_PATH + policy_name, "value": value}


def _remove_label(policy_name: str) -> dict[str, str]:
    return {"op": "remove", "path": _LABEL_PATH + policy_name, "value": ""}


def _all_policies(enforcer: Any) -> dict[str, None]:
    """Names of all policies registered with the enforcer under this strategy type."""
    registered = enforcer.registered_strategies.get(STRATEGY_TYPE) or []
    return dict.fromkeys(strategy.policy_name for strategy in registered)


@dataclass(eq=False)
class DescheduleStrategy(RuleStrategy):
    """Labels nodes for which any of its rules holds as violating its policy."""

    def violated(self, cache: Any) -> set[str]:
        """Return the nodes whose metrics satisfy any of the rules."""
        return self._violating_nodes(cache)

    def strategy_type(self) -> str:
        return STRATEGY_TYPE

    def cleanup(self, enforcer: Any, policy_name: str) -> None:
        """Remove the violating label of the policy from every node carrying it."""
        try:
            nodes = enforcer.kube_client.list_nodes(
                label_selector=f"{policy_name}={VIOLATING}"
            )
        except Exception as exc:
            logger.info("cannot list nodes: %s", exc)
            raise
        for node in nodes:
            payload = []
            if policy_name in _node_labels(node):
                payload.append(_remove_label(policy_name))
            try:
                self._patch_node(enforcer, _node_name(node), payload)
            except Exception as exc:
                logger.info("%s", exc)
        logger.info("Remove the node label on policy %s deletion", policy_name)

    def enforce(self, enforcer: Any, cache: Any) -> int:
        """Label violating nodes and relabel the others; return the count of non-violations."""
        try:
            nodes = enforcer.kube_client.list_nodes()
        except Exception as exc:
            logger.info("cannot list nodes: %s", exc)
            raise
        violations = self._node_status(enforcer, cache)
        return self._update_node_labels(enforcer, violations, nodes)

    @staticmethod
    def _patch_node(enforcer: Any, node_name: str, payload: list[dict[str, str]]) -> None:
        enforcer.kube_client.patch_node(node_name, payload)

    def _update_node_labels(
        self,
        enforcer: Any,
        violations: Mapping[str, list[str]],
        nodes: Iterable[Mapping[str, Any]],
    ) -> int:
        total = 0
        failures: list[str] = []
        for node in nodes:
            name = _node_name(node)
            labels = _node_labels(node)
            non_violated = _all_policies(enforcer)
            violated = violations.get(name, [])
            payload: list[dict[str, str]] = []
            for policy_name in violated:
                non_violated.pop(policy_name, None)
                payload.append(_add_label(policy_name, VIOLATING))
            for policy_name in non_violated:
                if policy_name in labels:
                    # Removed and re-added as "null" so the label stays on the node.
                    payload.append(_remove_label(policy_name))
                    payload.append(_add_label(policy_name, "null"))
                total += 1
            violated_text = "".join(f"{policy_name}, " for policy_name in violated)
            try:
                self._patch_node(enforcer, name, payload)
            except Exception as exc:
                logger.debug("%s", exc)
                failures.append(f"{name}: [ {violated_text} ]; ")
            if violated_text:
                logger.info("Node %s violating %s", name, violated_text)
        if failures:
            raise LabelError("could not label: " + "".join(failures))
        return total

    @staticmethod
    def _node_status(enforcer: Any, cache: Any) -> dict[str, list[str]]:
        """Map each violating node to the names of the policies it violates."""
        violations: dict[str, list[str]] = {}
        for strategy in list(enforcer.registered_strategies.get(STRATEGY_TYPE) or []):
            logger.info("Evaluating %s", strategy.policy_name)
            for node_name in strategy.violated(cache):
                violations.setdefault(node_name, []).append(strategy.policy_name)
        return violations