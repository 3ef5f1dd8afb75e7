"""Reading node metrics from the custom metrics API."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict

DEFAULT_WINDOW = timedelta(minutes=1)

_SUFFIX_MULTIPLIERS = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
    "Ki": Decimal(2**10),
    "Mi": Decimal(2**20),
    "Gi": Decimal(2**30),
    "Ti": Decimal(2**40),
    "Pi": Decimal(2**50),
    "Ei": Decimal(2**60),
}

_QUANTITY = re.compile(
    r"^(?P<number>[+-]?(?:\d+\.?\d*|\.\d+))"
    r"(?:(?P<exponent>[eE][+-]?\d+)|(?P<suffix>Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE])?)$"
)


class MetricsError(Exception):
    """Raised when metrics cannot be fetched or are missing."""


@dataclass(frozen=True)
class NodeMetric:
    """A single piece of telemetry data for one node."""

    timestamp: datetime | None
    window: timedelta
    value: Decimal


NodeMetricsInfo = Dict[str, NodeMetric]


def _parse_quantity(raw: Any) -> Decimal:
    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, (int, float)):
        return Decimal(str(raw))
    match = _QUANTITY.match(str(raw).strip())
    if match is None:
        raise MetricsError(f"invalid quantity: {raw!r}")
    number = Decimal(match["number"])
    if match["exponent"]:
        return number.scaleb(int(match["exponent"][1:]))
    return number * _SUFFIX_MULTIPLIERS[match["suffix"] or ""]


def _parse_timestamp(raw: Any) -> datetime | None:
    if raw is None or isinstance(raw, datetime):
        return raw
    text = str(raw)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise MetricsError(f"invalid timestamp: {raw!r}") from exc


def wrap_metrics(metric_value_list: Mapping[str, Any]) -> NodeMetricsInfo:
    """Turn a custom metrics API MetricValueList into metrics keyed by node name."""
    result: NodeMetricsInfo = {}
    for item in metric_value_list.get("items") or []:
        window_seconds = item.get("windowSeconds")
        window = DEFAULT_WINDOW if window_seconds is None else timedelta(seconds=window_seconds)
        name = (item.get("describedObject") or {}).get("name", "")
        result[name] = NodeMetric(
            timestamp=_parse_timestamp(item.get("timestamp")),
            window=window,
            value=_parse_quantity(item.get("value", 0)),
        )
    return result


class CustomMetricsClient:
    """Queries node metrics through a fetch function for the custom metrics API.

    ``fetch`` takes a metric name and returns the MetricValueList for all nodes.
    """

    def __init__(self, fetch: Callable[[str], Mapping[str, Any]]) -> None:
        self._fetch = fetch

    def get_node_metric(self, metric_name: str) -> NodeMetricsInfo:
        """Return the named metric, its window and timestamp for each node."""
        try:
            metrics = self._fetch(metric_name)
        except Exception as exc:
            raise MetricsError(
                "unable to fetch metrics from custom metrics API: " + str(exc)
            ) from exc
        if not metrics or not metrics.get("items"):
            raise MetricsError("no metrics returned from custom metrics API")
        return wrap_metrics(metrics)


class DummyMetricsClient:
    """Metrics client answering from an in-memory store."""

    def __init__(self, store: Mapping[str, NodeMetricsInfo]) -> None:
        self._store = store

    def get_node_metric(self, metric_name: str) -> NodeMetricsInfo:
        try:
            return self._store[metric_name]
        except KeyError:
            raise MetricsError("metric not found") from None


def node_metric_custom_info(node_names: Sequence[str], numbers: Sequence[int]) -> NodeMetricsInfo:
    """Build node metrics pairing each node name with the number at the same position."""
    if len(numbers) < len(node_names):
        raise ValueError("fewer numbers than node names")
    timestamp = datetime.fromtimestamp(100, tz=timezone.utc)
    return {
        name: NodeMetric(timestamp=timestamp, window=timedelta(seconds=1), value=Decimal(number))
        for name, number in zip(node_names, numbers)
    }


INSTANCE_OF_MOCK_METRIC_CLIENT_MAP: dict[str, NodeMetricsInfo] = {
    name: node_metric_custom_info(["node A", "node B"], [50, 30])
    for name in ("dummyMetric1", "dummyMetric2", "dummyMetric3")
}