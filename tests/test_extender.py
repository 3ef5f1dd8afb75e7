import json

import pytest

from tasched.extender import (
    ExtenderArgs,
    ExtenderRequestError,
    MetricsExtender,
    Response,
)
from tasched.metrics import node_metric_custom_info
from tasched.policy import TASPolicy, TASPolicyRule, TASPolicySpec, TASPolicyStrategy


class FakeCache:
    def __init__(self):
        self.policies = {}
        self.metrics = {}

    def write_policy(self, namespace, name, policy):
        self.policies[(namespace, name)] = policy

    def write_metric(self, name, data):
        self.metrics[name] = data

    def read_policy(self, namespace, name):
        try:
            return self.policies[(namespace, name)]
        except KeyError:
            raise LookupError("policy not found") from None

    def read_metric(self, name):
        try:
            return self.metrics[name]
        except KeyError:
            raise LookupError("metric not found") from None


def make_policy(name, schedule_op="GreaterThan", dontschedule=True):
    strategies = {
        "scheduleonmetric": TASPolicyStrategy(
            policy_name="test-policy",
            rules=[TASPolicyRule("dummyMetric1", schedule_op, 0)],
        )
    }
    if dontschedule:
        strategies["dontschedule"] = TASPolicyStrategy(
            policy_name="test-policy",
            rules=[TASPolicyRule("dummyMetric1", "GreaterThan", 40)],
        )
    return TASPolicy(name=name, namespace="default", spec=TASPolicySpec(strategies))


def request_body(node_names, labels=None):
    if labels is None:
        labels = {"telemetry-policy": "test-policy"}
    return json.dumps(
        {
            "pod": {"metadata": {"name": "big pod", "namespace": "default", "labels": labels}},
            "nodes": {"items": [{"metadata": {"name": name}} for name in node_names]},
            "nodenames": ["node A", "node B"],
        }
    )


def setup(policy, metric):
    cache = FakeCache()
    cache.write_policy(policy.namespace, policy.name, policy)
    cache.write_metric("dummyMetric1", metric)
    return MetricsExtender(cache)


def priorities(response):
    return [(item["host"], item["score"]) for item in json.loads(response.body)]


def test_prioritize_get_and_return_nodes():
    extender = setup(make_policy("test-policy"), node_metric_custom_info(["node A", "node B"], [100, 90]))
    response = extender.prioritize(request_body(["node A", "node B"]))
    assert response.status == 200
    assert priorities(response) == [("node A", 10), ("node B", 9)]


def test_prioritize_policy_not_found():
    extender = setup(make_policy("other-policy"), node_metric_custom_info(["node A", "node B"], [90, 100]))
    response = extender.prioritize(request_body(["node A", "node B"]))
    assert response.status == 200
    assert priorities(response) == []


def test_prioritize_only_requested_nodes():
    extender = setup(make_policy("test-policy"), node_metric_custom_info(["node A", "node B"], [100, 200]))
    response = extender.prioritize(request_body(["node A"]))
    assert priorities(response) == [("node A", 10)]


def test_prioritize_less_than_orders_ascending():
    extender = setup(
        make_policy("test-policy", schedule_op="LessThan"),
        node_metric_custom_info(["node A", "node B", "node C"], [100, 200, 10]),
    )
    response = extender.prioritize(request_body(["node A", "node B", "node C"]))
    assert priorities(response) == [("node C", 10), ("node A", 9), ("node B", 8)]


def test_prioritize_missing_metric_returns_empty_list():
    cache = FakeCache()
    policy = make_policy("test-policy")
    cache.write_policy("default", "test-policy", policy)
    response = MetricsExtender(cache).prioritize(request_body(["node A"]))
    assert response == Response(200, b"[]\n")


def test_prioritize_missing_scheduling_rule_returns_empty_list():
    policy = TASPolicy(name="test-policy", namespace="default", spec=TASPolicySpec({}))
    extender = setup(policy, node_metric_custom_info(["node A"], [1]))
    assert extender.prioritize(request_body(["node A"])).body == b"[]\n"


def test_prioritize_malformed_arguments_write_nothing():
    extender = setup(make_policy("test-policy"), node_metric_custom_info(["node A"], [100]))
    response = extender.prioritize(json.dumps({"pod": {"metadata": {}}, "nodes": None}))
    assert response == Response(200, b"")


def test_prioritize_no_nodes_writes_nothing():
    extender = setup(make_policy("test-policy"), node_metric_custom_info(["node A"], [100]))
    assert extender.prioritize(request_body([])) == Response(200, b"")


def test_prioritize_unlabelled_pod_is_bad_request():
    extender = setup(make_policy("test-policy"), node_metric_custom_info(["node A", "node B"], [100, 90]))
    response = extender.prioritize(request_body(["node A"], labels={"useless-label": "test-policy"}))
    assert response.status == 400
    assert priorities(response) == []


def test_filter_keeps_all_nodes_below_target():
    extender = setup(make_policy("test-policy"), node_metric_custom_info(["node A", "node B"], [10, 30]))
    response = extender.filter(request_body(["node A", "node B"]))
    assert response.status == 200
    result = json.loads(response.body)
    assert result.get("failedNodes", {}) == {}
    assert [node["metadata"]["name"] for node in result["nodes"]["items"]] == ["node A", "node B"]
    assert result["nodenames"] == ["node", "A", "node", "B", ""]


def test_filter_out_one_node():
    extender = setup(make_policy("test-policy"), node_metric_custom_info(["node A", "node B"], [50, 30]))
    result = json.loads(extender.filter(request_body(["node A", "node B"])).body)
    assert result["failedNodes"] == {"node A": "Node violates"}
    assert [node["metadata"]["name"] for node in result["nodes"]["items"]] == ["node B"]


def test_filter_without_policy_label_is_not_found():
    extender = setup(make_policy("test-policy"), node_metric_custom_info(["node A"], [50]))
    response = extender.filter(request_body(["node A"], labels={}))
    assert response == Response(404, b"null\n")


def test_filter_without_dontschedule_strategy_is_not_found():
    extender = setup(
        make_policy("test-policy", dontschedule=False),
        node_metric_custom_info(["node A"], [50]),
    )
    assert extender.filter(request_body(["node A"])).status == 404


def test_filter_with_no_nodes_is_not_found():
    extender = setup(make_policy("test-policy"), node_metric_custom_info(["node A"], [50]))
    assert extender.filter(request_body([])) == Response(404, b"null\n")


def test_filter_bad_body_writes_nothing():
    extender = setup(make_policy("test-policy"), node_metric_custom_info(["node A"], [50]))
    assert extender.filter(b"{not json") == Response(200, b"")


def test_bind_is_not_found():
    assert MetricsExtender(FakeCache()).bind(b"{}") == Response(404, b"")


def test_decode_request():
    args = MetricsExtender(FakeCache()).decode_extender_request(request_body(["node A", "node B"]))
    assert args == ExtenderArgs(
        pod={
            "metadata": {
                "name": "big pod",
                "namespace": "default",
                "labels": {"telemetry-policy": "test-policy"},
            }
        },
        nodes=[{"metadata": {"name": "node A"}}, {"metadata": {"name": "node B"}}],
        node_names=["node A", "node B"],
    )


def test_decode_request_accepts_capitalised_keys():
    body = json.dumps({"Pod": {}, "Nodes": {"Items": [{"metadata": {"name": "n"}}]}})
    args = MetricsExtender(FakeCache()).decode_extender_request(body)
    assert args.nodes == [{"metadata": {"name": "n"}}]
    assert args.node_names is None


@pytest.mark.parametrize(
    "body, message",
    [
        (None, "request body empty"),
        (b"", "error decoding request"),
        (b"[1, 2]", "error decoding request"),
        (b'{"pod": {}}', "no nodes in list"),
    ],
)
def test_decode_request_errors(body, message):
    with pytest.raises(ExtenderRequestError, match=message):
        MetricsExtender(FakeCache()).decode_extender_request(body)