# flagdkit

Building blocks for an operator that runs flagd feature-flag daemons next to
workloads and keeps a shared `flagd-proxy` deployment in shape. Cluster
objects are plain dictionaries shaped like Kubernetes manifests.

## Modules

- `flagdkit.config`
  - `EnvConfig` holds the operator settings, with their defaults.
    `EnvConfig.from_environ(environ=None)` reads them from a mapping
    (`os.environ` by default) and raises `ValueError` for a value that cannot
    be read as the field's boolean or integer type.
  - `SourceConfig` describes one flagd sync source; `to_dict()` gives its wire
    form, leaving out empty optional fields.
  - `encode_sources(sources)` produces the compact JSON array flagd takes in
    its `--sources` argument.
- `flagdkit.common`
  - Shared constants such as `MANAGED_BY_ANNOTATION_KEY`,
    `OPERATOR_DEPLOYMENT_NAME` and `CLUSTER_ROLE_BINDING_NAME`.
  - `feature_flag_source_index`, `find_flag_config`, `shared_ownership` and
    `is_managed_by_ofo` work on object dictionaries.
  - `InMemoryClient` is a thread-safe object store keyed by kind, namespace
    and name, with `get`, `create` and `update`. Writes set
    `metadata.resourceVersion` ("1" on create, incremented on update); a
    missing object raises `NotFoundError`, a duplicate create or a stale
    resource version raises `ConflictError`.
  - `retry_on_conflict(func, attempts=5)` calls `func` again while it raises
    `ConflictError`.
  - `FlagdProxyNotReadyError` and `UnrecognizedSyncProviderError` are error
    types for callers that inject flagd into workloads.
- `flagdkit.flagdproxy`
  - `FlagdProxyConfiguration` and `new_flagd_proxy_configuration(env,
    image_pull_secrets, labels, annotations)` build the proxy settings from
    an `EnvConfig`.
  - `FlagdProxyHandler.handle_flagd_proxy()` creates or updates the proxy
    Deployment, Service and PodDisruptionBudget, owned by the operator's own
    deployment. An existing object is updated only when its `spec` differs,
    and one not labelled as managed by the operator raises `RuntimeError`.
  - `spec_differs(a, b)` compares the specs of two Deployments, Services or
    PodDisruptionBudgets.
- `flagdkit.utils`
  - `parse_annotation`, `feature_flag_id`, `feature_flag_config_map_key`,
    `contains_string` and `ExponentialBackoff`.

## Installation

```
pip install flagdkit
```

The package has no runtime dependencies.

## Example

```python
import logging

from flagdkit.common import InMemoryClient
from flagdkit.config import EnvConfig, SourceConfig, encode_sources
from flagdkit.flagdproxy import FlagdProxyHandler, new_flagd_proxy_configuration

env = EnvConfig.from_environ({"POD_NAMESPACE": "ns"})
config = new_flagd_proxy_configuration(env, ["pull-secret"], {}, {})

client = InMemoryClient()
client.create({
    "kind": "Deployment",
    "apiVersion": "apps/v1",
    "metadata": {"name": "open-feature-operator-controller-manager", "namespace": "ns"},
})

handler = FlagdProxyHandler(config, client, logging.getLogger("flagd-proxy"))
handler.handle_flagd_proxy()

print(encode_sources([SourceConfig(uri="ns/my-flags", provider="kubernetes")]))
# [{"uri":"ns/my-flags","provider":"kubernetes"}]
```

Retry delays double up to a ceiling:

```python
from datetime import timedelta
from flagdkit.utils import ExponentialBackoff

backoff = ExponentialBackoff(start_delay=timedelta(seconds=1), max_delay=timedelta(seconds=5))
backoff.next()  # 1 s, then 2 s, 4 s, 5 s, 5 s, ...
backoff.reset()
```

## What it does not do

- It does not talk to a real cluster. `FlagdProxyHandler` works with any
  object that offers `get`, `create` and `update` like `InMemoryClient`; only
  the in-memory store is included.
- It does not inject flagd sidecars into pods or manage cluster role
  bindings; only the error types for those cases are defined.
- It has no command-line program, controller loop or webhook server.

## Running the tests

```
pip install -e ".[test]"
pytest
```