"""Scheduler extender endpoints: prioritizing and filtering nodes by telemetry policy.

The ``cache`` given to :class:`MetricsExtender` must provide
``read_policy(namespace, name)``, which returns a
:class:`~tasched.policy.TASPolicy`, and ``read_metric(name)``, which returns node
metrics keyed by node name. Both raise when nothing is stored under the name.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from tasched.dontschedule import STRATEGY_TYPE as DONTSCHEDULE
from tasched.dontschedule import DontScheduleStrategy
from tasched.operator import ordered_list
from tasched.policy import TASPolicy, TASPolicyRule
from tasched.scheduleonmetric import STRATEGY_TYPE as SCHEDULEONMETRIC

logger = logging.getLogger(__name__)

TAS_POLICY_LABEL = "telemetry-policy"
MAX_SCORE = 10

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404


class ExtenderRequestError(Exception):
    """Raised when a scheduler request cannot be decoded."""


@dataclass(frozen=True)
class HostPriority:
    """A node name and its score; higher scores are preferred."""

    host: str
    score: int


@dataclass
class FilterResult:
    """Outcome of a filter call: the nodes that pass and those that fail."""

    nodes: list[dict[str, Any]] = field(default_factory=list)
    node_names: list[str] = field(default_factory=list)
    failed_nodes: dict[str, str] = field(default_factory=dict)
    error: str = ""


@dataclass
class ExtenderArgs:
    """Arguments the scheduler sends: the pod and the candidate nodes."""

    pod: dict[str, Any] = field(default_factory=dict)
    nodes: list[dict[str, Any]] | None = None
    node_names: list[str] | None = None


@dataclass(frozen=True)
class Response:
    """An HTTP response to send back to the scheduler."""

    status: int = HTTP_OK
    body: bytes = b""


def _field(data: Mapping[str, Any], key: str) -> Any:
    """Look a key up the way a case-insensitive JSON decoder would."""
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if name.lower() == lowered:
            return value
    return None


def _metadata(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    meta = _field(obj, "metadata")
    return meta if isinstance(meta, Mapping) else {}


def _name_of(obj: Mapping[str, Any]) -> str:
    return _field(_metadata(obj), "name") or ""


def _encode(payload: Any) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode() + b"\n"


def _priorities_payload(priorities: list[HostPriority]) -> list[dict[str, Any]]:
    return [{"host": item.host, "score": item.score} for item in priorities]


def _filter_payload(result: FilterResult | None) -> Any:
    if result is None:
        return None
    payload: dict[str, Any] = {
        "nodes": {"metadata": {}, "items": result.nodes or None},
        "nodenames": result.node_names,
    }
    if result.failed_nodes:
        payload["failedNodes"] = result.failed_nodes
    if result.error:
        payload["error"] = result.error
    return payload


class MetricsExtender:
    """Answers the scheduler's prioritize, filter and bind calls from a cache."""

    def __init__(self, cache: Any) -> None:
        self.cache = cache

    def decode_extender_request(self, body: bytes | str | None) -> ExtenderArgs:
        """Parse a request body into :class:`ExtenderArgs`."""
        if body is None:
            raise ExtenderRequestError("request body empty")
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise ExtenderRequestError(f"error decoding request: {exc}") from exc
        if not isinstance(data, Mapping):
            raise ExtenderRequestError("error decoding request: expected a JSON object")
        raw_nodes = _field(data, "nodes")
        if raw_nodes is None:
            raise ExtenderRequestError("no nodes in list")
        if not isinstance(raw_nodes, Mapping):
            raise ExtenderRequestError("error decoding request: nodes is not a node list")
        pod = _field(data, "pod")
        node_names = _field(data, "nodenames")
        return ExtenderArgs(
            pod=dict(pod) if isinstance(pod, Mapping) else {},
            nodes=list(_field(raw_nodes, "items") or []),
            node_names=list(node_names) if node_names is not None else None,
        )

    def prioritize(self, body: bytes | str | None) -> Response:
        """Handle a prioritize call, scoring nodes by the pod's scheduling rule."""
        logger.info("Received prioritize request")
        try:
            args = self.decode_extender_request(body)
        except ExtenderRequestError as exc:
            logger.info("failed to prioritize: %s", exc)
            return Response()
        if not args.nodes:
            logger.info("bad extender arguments. No nodes in list")
            return Response()
        status = HTTP_OK
        if TAS_POLICY_LABEL not in self._pod_labels(args.pod):
            logger.info("no policy associated with pod")
            status = HTTP_BAD_REQUEST
        priorities = self._prioritize_nodes(args)
        return Response(status, _encode(_priorities_payload(priorities)))

    def filter(self, body: bytes | str | None) -> Response:
        """Handle a filter call, dropping nodes that violate the pod's dontschedule rules."""
        logger.info("Filter request received")
        try:
            args = self.decode_extender_request(body)
        except ExtenderRequestError as exc:
            logger.info("cannot filter %s", exc)
            return Response()
        result = self._filter_nodes(args)
        status = HTTP_OK
        if result is None:
            logger.info("No filtered nodes returned")
            status = HTTP_NOT_FOUND
        return Response(status, _encode(_filter_payload(result)))

    def bind(self, body: bytes | str | None) -> Response:
        """Binding is not provided; always answers not found."""
        return Response(HTTP_NOT_FOUND)

    @staticmethod
    def _pod_labels(pod: Mapping[str, Any]) -> Mapping[str, str]:
        labels = _field(_metadata(pod), "labels")
        return labels if isinstance(labels, Mapping) else {}

    def _policy_from_pod(self, pod: Mapping[str, Any]) -> TASPolicy:
        labels = self._pod_labels(pod)
        if TAS_POLICY_LABEL not in labels:
            raise LookupError(f"no policy found in pod spec for pod {_name_of(pod)}")
        namespace = _field(_metadata(pod), "namespace") or ""
        return self.cache.read_policy(namespace, labels[TAS_POLICY_LABEL])

    @staticmethod
    def _scheduling_rule(policy: TASPolicy) -> TASPolicyRule:
        strategy = policy.spec.strategies.get(SCHEDULEONMETRIC)
        if strategy is not None and strategy.rules and strategy.rules[0].metricname:
            return strategy.rules[0]
        raise LookupError("no scheduling rule found")

    def _prioritize_nodes(self, args: ExtenderArgs) -> list[HostPriority]:
        try:
            policy = self._policy_from_pod(args.pod)
        except Exception as exc:
            logger.info("get policy from pod failed: %s", exc)
            return []
        try:
            rule = self._scheduling_rule(policy)
        except LookupError as exc:
            logger.info("get scheduling rule from policy failed: %s", exc)
            return []
        try:
            chosen = self._prioritize_for_rule(rule, args.nodes or [])
        except Exception as exc:
            logger.info("failed to prioritize: %s, %s", exc, rule.metricname)
            return []
        logger.info("node priorities returned: %s", chosen)
        return chosen

    def _prioritize_for_rule(
        self, rule: TASPolicyRule, nodes: list[dict[str, Any]]
    ) -> list[HostPriority]:
        node_data = self.cache.read_metric(rule.metricname)
        requested = {_name_of(node) for node in nodes}
        filtered = {name: metric for name, metric in node_data.items() if name in requested}
        ordered = ordered_list(filtered, rule.operator)
        logger.info(
            "%s for nodes: %s",
            rule.metricname,
            " ".join(f"[ {item.node_name} :{item.metric_value}]" for item in ordered),
        )
        return [
            HostPriority(host=item.node_name, score=MAX_SCORE - position)
            for position, item in enumerate(ordered)
        ]

    def _filter_nodes(self, args: ExtenderArgs) -> FilterResult | None:
        try:
            policy = self._policy_from_pod(args.pod)
        except Exception as exc:
            logger.info("get policy from pod failed %s", exc)
            return None
        raw = policy.spec.strategies.get(DONTSCHEDULE)
        if raw is None or not raw.rules:
            logger.info("Don't scheduler strategy failed no dontschedule strategy found")
            return None
        strategy = DontScheduleStrategy(policy_name=raw.policy_name, rules=list(raw.rules))
        violating = strategy.violated(self.cache)
        if not args.nodes:
            logger.info("No nodes to compare")
            return None
        passed: list[dict[str, Any]] = []
        failed: dict[str, str] = {}
        available = ""
        for node in args.nodes:
            name = _name_of(node)
            if name in violating:
                failed[name] = "Node violates"
            else:
                passed.append(node)
                available += name + " "
        if available:
            logger.info("Filtered nodes for %s: %s", policy.name, available)
        return FilterResult(
            nodes=passed,
            node_names=available.split(" "),
            failed_nodes=failed,
        )