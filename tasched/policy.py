"""Data model of the telemetry policy custom resource."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PLURAL = "taspolicies"
GROUP = "telemetry.intel.com"
VERSION = "v1alpha1"
API_VERSION = f"{GROUP}/{VERSION}"
KIND = "TASPolicy"
LIST_KIND = "TASPolicyList"


@dataclass
class TASPolicyRule:
    """A single rule: a metric name, an operator and a target value."""

    metricname: str = ""
    operator: str = ""
    target: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TASPolicyRule:
        data = data or {}
        return cls(
            metricname=data.get("metricname", "") or "",
            operator=data.get("operator", "") or "",
            target=int(data.get("target", 0) or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "metricname": self.metricname,
            "operator": self.operator,
            "target": self.target,
        }


@dataclass
class TASPolicyStrategy:
    """A named set of rules making up one strategy of a policy."""

    policy_name: str = ""
    rules: list[TASPolicyRule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TASPolicyStrategy:
        data = data or {}
        return cls(
            policy_name=data.get("policyName", "") or "",
            rules=[TASPolicyRule.from_dict(rule) for rule in data.get("rules") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "policyName": self.policy_name,
            "rules": [rule.to_dict() for rule in self.rules],
        }


@dataclass
class TASPolicySpec:
    """Strategies of a policy, keyed by strategy type name."""

    strategies: dict[str, TASPolicyStrategy] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TASPolicySpec:
        data = data or {}
        return cls(
            strategies={
                name: TASPolicyStrategy.from_dict(raw)
                for name, raw in (data.get("strategies") or {}).items()
            }
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategies": {
                name: strategy.to_dict() for name, strategy in self.strategies.items()
            }
        }


@dataclass
class TASPolicy:
    """A telemetry policy object as stored in the cluster API."""

    name: str = ""
    namespace: str = ""
    spec: TASPolicySpec = field(default_factory=TASPolicySpec)
    labels: dict[str, str] = field(default_factory=dict)
    resource_version: str = ""
    api_version: str = API_VERSION
    kind: str = KIND

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TASPolicy:
        data = data or {}
        metadata = data.get("metadata") or {}
        return cls(
            name=metadata.get("name", "") or "",
            namespace=metadata.get("namespace", "") or "",
            spec=TASPolicySpec.from_dict(data.get("spec")),
            labels=dict(metadata.get("labels") or {}),
            resource_version=metadata.get("resourceVersion", "") or "",
            api_version=data.get("apiVersion", API_VERSION) or API_VERSION,
            kind=data.get("kind", KIND) or KIND,
        )

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        if self.name:
            metadata["name"] = self.name
        if self.namespace:
            metadata["namespace"] = self.namespace
        if self.labels:
            metadata["labels"] = dict(self.labels)
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": metadata,
            "spec": self.spec.to_dict(),
            "status": {},
        }


@dataclass
class TASPolicyList:
    """A list of telemetry policies."""

    items: list[TASPolicy] = field(default_factory=list)
    resource_version: str = ""
    api_version: str = API_VERSION
    kind: str = LIST_KIND

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TASPolicyList:
        data = data or {}
        metadata = data.get("metadata") or {}
        return cls(
            items=[TASPolicy.from_dict(item) for item in data.get("items") or []],
            resource_version=metadata.get("resourceVersion", "") or "",
            api_version=data.get("apiVersion", API_VERSION) or API_VERSION,
            kind=data.get("kind", LIST_KIND) or LIST_KIND,
        )

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": metadata,
            "items": [item.to_dict() for item in self.items],
        }