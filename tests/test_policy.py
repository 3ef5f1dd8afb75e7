from tasched.policy import (
    API_VERSION,
    GROUP,
    PLURAL,
    VERSION,
    TASPolicy,
    TASPolicyList,
    TASPolicyRule,
    TASPolicySpec,
    TASPolicyStrategy,
)


def _policy():
    return TASPolicy(
        name="test-policy",
        namespace="default",
        spec=TASPolicySpec(
            strategies={
                "scheduleonmetric": TASPolicyStrategy(
                    policy_name="test-policy",
                    rules=[TASPolicyRule("dummyMetric1", "GreaterThan", 0)],
                ),
                "dontschedule": TASPolicyStrategy(
                    policy_name="test-policy",
                    rules=[TASPolicyRule("dummyMetric1", "GreaterThan", 40)],
                ),
            }
        ),
    )


def test_constants_used_in_serialised_policy():
    assert (PLURAL, GROUP, VERSION) == ("taspolicies", "telemetry.intel.com", "v1alpha1")
    assert API_VERSION == "telemetry.intel.com/v1alpha1"
    data = TASPolicy(name="x").to_dict()
    assert data["apiVersion"] == "telemetry.intel.com/v1alpha1"


def test_rule_json_keys():
    rule = TASPolicyRule("memory", "LessThan", 10)
    assert rule.to_dict() == {"metricname": "memory", "operator": "LessThan", "target": 10}


def test_rule_round_trip():
    rule = TASPolicyRule("cpu", "Equals", 1)
    assert TASPolicyRule.from_dict(rule.to_dict()) == rule


def test_rule_defaults_for_missing_fields():
    assert TASPolicyRule.from_dict({}) == TASPolicyRule()


def test_strategy_uses_policy_name_key():
    strategy = TASPolicyStrategy.from_dict(
        {"policyName": "p", "rules": [{"metricname": "m", "operator": "Equals", "target": 3}]}
    )
    assert strategy.policy_name == "p"
    assert strategy.rules == [TASPolicyRule("m", "Equals", 3)]


def test_strategy_null_rules_become_empty():
    assert TASPolicyStrategy.from_dict({"policyName": "p", "rules": None}).rules == []


def test_policy_round_trip():
    policy = _policy()
    assert TASPolicy.from_dict(policy.to_dict()) == policy


def test_policy_to_dict_layout():
    data = _policy().to_dict()
    assert data["apiVersion"] == API_VERSION
    assert data["metadata"] == {"name": "test-policy", "namespace": "default"}
    assert data["spec"]["strategies"]["dontschedule"]["rules"][0]["target"] == 40


def test_policy_from_dict_reads_metadata():
    policy = TASPolicy.from_dict(
        {
            "metadata": {"name": "test-policy", "namespace": "default", "labels": {"a": "b"}},
            "spec": {"strategies": {}},
        }
    )
    assert policy.name == "test-policy"
    assert policy.namespace == "default"
    assert policy.labels == {"a": "b"}
    assert policy.spec.strategies == {}


def test_policy_list_round_trip():
    policies = TASPolicyList(items=[_policy(), TASPolicy(name="other-policy")])
    restored = TASPolicyList.from_dict(policies.to_dict())
    assert restored == policies
    assert [item.name for item in restored.items] == ["test-policy", "other-policy"]


def test_policy_list_empty():
    assert TASPolicyList.from_dict({"items": None}).items == []