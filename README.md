# tasched

Telemetry-aware scheduling building blocks. `tasched` evaluates telemetry
policies against per-node metrics and turns the result into scheduling
decisions: which nodes a workload must avoid, how the remaining nodes rank,
and which nodes should be labelled as violating a policy.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `tasched.policy`

Dataclasses for the telemetry policy resource (`telemetry.intel.com/v1alpha1`,
plural `taspolicies`):

- `TASPolicyRule`: `metricname`, `operator` (`LessThan`, `GreaterThan`,
  `Equals`) and an integer `target`.
- `TASPolicyStrategy`: a `policy_name` and a list of rules.
- `TASPolicySpec`: `strategies`, a dict of strategy type name to
  `TASPolicyStrategy`.
- `TASPolicy` and `TASPolicyList`: the resource and a list of resources.

Each class converts to and from the API's JSON form with `from_dict` and
`to_dict`.

### `tasched.policy_client`

`PolicyClient(server, namespace, session)` talks to the cluster API over HTTP
with `requests`. It offers `create(policy)`, `update(policy)`,
`get(name, namespace)`, `delete(name, options)` and `list(label_selector)`.
Failed requests, error statuses and invalid JSON are raised as
`PolicyClientError`, which carries the HTTP `status_code` when there is one.

```python
from tasched.policy_client import PolicyClient

client = PolicyClient("http://localhost:8080", "default", None)
policy = client.get("demo-policy", "default")
```

### `tasched.metrics`

- `NodeMetric`: `timestamp`, `window` (a `timedelta`) and `value` (a
  `Decimal`).
- `wrap_metrics(metric_value_list)`: turns a custom metrics API
  `MetricValueList` dictionary into a dict of node name to `NodeMetric`.
  Quantity strings with SI, binary or exponent suffixes are accepted; the
  window defaults to one minute.
- `CustomMetricsClient(fetch)`: `fetch` is any callable that takes a metric
  name and returns a `MetricValueList` dictionary. `get_node_metric(name)`
  raises `MetricsError` when fetching fails or no items come back.
- `DummyMetricsClient(store)`: answers `get_node_metric` from an in-memory
  mapping and raises `MetricsError` for unknown metrics.
- `node_metric_custom_info(node_names, numbers)`: builds node metrics from
  parallel lists.

### `tasched.operator`

- `evaluate_rule(value, rule)`: whether the value satisfies the rule; an
  unknown operator raises `ValueError`.
- `ordered_list(metrics_info, operator)`: a list of `NodeSortableMetric`
  (`node_name`, `metric_value`), descending for `GreaterThan`, ascending for
  `LessThan`, unsorted otherwise.

```python
from tasched.operator import evaluate_rule, ordered_list
from tasched.metrics import node_metric_custom_info
from tasched.policy import TASPolicyRule

rule = TASPolicyRule(metricname="memory", operator="LessThan", target=1000)
print(evaluate_rule(100, rule))  # True

info = node_metric_custom_info(["node A", "node B", "node C"], [100, 200, 10])
for entry in ordered_list(info, "GreaterThan"):
    print(entry.node_name, entry.metric_value)
```

### Strategies

`tasched.strategy` defines the abstract `Strategy` (`violated`,
`strategy_type`, `equals`), `RuleStrategy` (a `policy_name` plus `rules`; two
are equal when they have the same type, the same policy name and the same
non-empty rules) and `MockStrategy` for tests.

- `DontScheduleStrategy` (`tasched.dontschedule`): `violated(cache)` returns
  the set of nodes for which any rule holds. `enforce` does nothing and
  returns 0.
- `ScheduleOnMetricStrategy` (`tasched.scheduleonmetric`): never reports
  violations and enforces nothing.
- `DescheduleStrategy` (`tasched.deschedule`): `violated(cache)` works like
  the dontschedule strategy. `enforce(enforcer, cache)` labels each violating
  node with `<policy>=violating` through JSON patches, resets the label of
  non-violating nodes to `null`, and raises `LabelError` if any node could not
  be patched. `cleanup(enforcer, policy_name)` removes the label from every
  node carrying it.

The `cache` given to `violated` must provide `read_metric(name)`, returning
node metrics keyed by node name and raising when the metric is unknown.
`DescheduleStrategy` needs the enforcer's `kube_client` to provide
`list_nodes(label_selector=None)` and `patch_node(name, patch)`.

### `tasched.enforcer`

`MetricEnforcer(kube_client)` keeps a thread-safe registry of strategies by
type: `register_strategy_type`, `unregister_strategy_type`, `is_registered`,
`registered_strategy_types`, `add_strategy` and `remove_strategy`. Only
strategies that have both `enforce` and `cleanup` are added, and duplicates
are skipped. `enforce_strategy(strategy_type, cache)` runs each registered
strategy's `enforce` once; `enforce_registered_strategies(cache, interval,
stop_event)` does so for every type every `interval` seconds, each in its own
thread, until `stop_event` is set.

### `tasched.extender`

`MetricsExtender(cache)` handles scheduler extender calls. Each handler takes
the raw request body and returns a `Response` with a `status` and a JSON
`body`:

- `prioritize(body)`: reads the policy named by the pod's `telemetry-policy`
  label, takes the first `scheduleonmetric` rule and scores the requested
  nodes that have that metric, 10 for the best and one less for each next
  node. A pod without the label gets status 400.
- `filter(body)`: drops nodes violating the policy's `dontschedule` rules and
  reports them under `failedNodes`; status 404 when no result can be built.
- `bind(body)`: always status 404.

`decode_extender_request(body)` parses a body into `ExtenderArgs` and raises
`ExtenderRequestError` for empty, malformed or node-less requests. The cache
must provide `read_policy(namespace, name)` returning a `TASPolicy`, and
`read_metric(name)`.

## What the package does not do

- It has no command and runs no HTTP server: the extender handlers must be
  mounted in a web server of your choice.
- It includes no metrics or policy cache; you supply an object with
  `read_metric` and `read_policy`.
- It includes no cluster node client for the deschedule strategy; you supply
  a `kube_client` with `list_nodes` and `patch_node`.
- `CustomMetricsClient` does not reach the custom metrics API by itself; the
  `fetch` callable does.