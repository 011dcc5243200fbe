"""Shared constants, errors and object helpers for the operator."""

from __future__ import annotations

import copy
import threading
import time
from datetime import timedelta

RECONCILE_ERROR_INTERVAL = timedelta(seconds=10)
RECONCILE_SUCCESS_INTERVAL = timedelta(seconds=120)
FINALIZER_NAME = "featureflag.core.openfeature.dev/finalizer"
OPEN_FEATURE_ANNOTATION_PATH = "spec.template.metadata.annotations.openfeature.dev/openfeature.dev"
OPEN_FEATURE_ANNOTATION_ROOT = "openfeature.dev"
FLAGD_IMAGE_PULL_POLICY = "Always"
CLUSTER_ROLE_BINDING_NAME = "open-feature-operator-flagd-kubernetes-sync"
ALLOW_KUBERNETES_SYNC_ANNOTATION = "allowkubernetessync"
OPEN_FEATURE_ANNOTATION_PREFIX = "openfeature.dev"
POD_OPEN_FEATURE_ANNOTATION_PATH = "metadata.annotations.openfeature.dev"
SOURCE_CONFIG_PARAM = "--sources"
PROBE_READINESS = "/readyz"
PROBE_LIVENESS = "/healthz"
PROBE_INITIAL_DELAY = 5
FEATURE_FLAG_SOURCE_ANNOTATION = "featureflagsource"
ENABLED_ANNOTATION = "enabled"
MANAGED_BY_ANNOTATION_KEY = "app.kubernetes.io/managed-by"
MANAGED_BY_ANNOTATION_VALUE = "open-feature-operator"
OPERATOR_DEPLOYMENT_NAME = "open-feature-operator-controller-manager"
IN_PROCESS_CONFIGURATION_ANNOTATION = "inprocessconfiguration"
FLAGD_GRPC_SERVICE = "flagd.evaluation.v1.Service"
FLAGD_GRPC_SERVICE_PATH = "/" + FLAGD_GRPC_SERVICE
SYNC_GRPC_SERVICE = "flagd.sync.v1.Service"
SYNC_GRPC_SERVICE_PATH = "/" + SYNC_GRPC_SERVICE
OFREP_HTTP_SERVICE_PATH = "/ofrep"

FEATURE_FLAG_KIND = "FeatureFlag"


class FlagdProxyNotReadyError(Exception):
    """The flagd-proxy is not ready yet."""

    def __init__(self, message="flagd-proxy is not ready, deferring pod admission"):
        super().__init__(message)


class UnrecognizedSyncProviderError(Exception):
    """A flag source names a sync provider that is not known."""

    def __init__(self, message="unrecognized sync provider"):
        super().__init__(message)


class NotFoundError(LookupError):
    """The requested object does not exist."""

    def __init__(self, kind, namespace, name):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f'{kind} "{name}" not found')


class ConflictError(Exception):
    """A write clashed with the stored state of an object."""


def _metadata(obj):
    return obj.setdefault("metadata", {})


def _key(obj):
    meta = obj.get("metadata", {})
    return obj.get("kind", ""), meta.get("namespace", ""), meta.get("name", "")


class InMemoryClient:
    """A thread-safe object store keyed by kind, namespace and name.

    Objects are plain manifest dictionaries; stored and returned values are
    copies, and every write bumps ``metadata.resourceVersion``.
    """

    def __init__(self, objects=()):
        self._objects = {}
        self._lock = threading.Lock()
        for obj in objects:
            self.create(obj)

    def get(self, kind, namespace, name):
        """Return a copy of the stored object or raise NotFoundError."""
        with self._lock:
            try:
                return copy.deepcopy(self._objects[(kind, namespace or "", name)])
            except KeyError:
                raise NotFoundError(kind, namespace, name) from None

    def create(self, obj):
        """Store a new object; its resourceVersion becomes "1"."""
        meta = _metadata(obj)
        if meta.get("resourceVersion"):
            raise ValueError("resourceVersion can not be set for create requests")
        key = _key(obj)
        with self._lock:
            if key in self._objects:
                raise ConflictError(f'{key[0]} "{key[2]}" already exists')
            meta["resourceVersion"] = "1"
            self._objects[key] = copy.deepcopy(obj)

    def update(self, obj):
        """Replace a stored object, refusing a stale resourceVersion."""
        meta = _metadata(obj)
        key = _key(obj)
        with self._lock:
            stored = self._objects.get(key)
            if stored is None:
                raise NotFoundError(*key)
            current = stored["metadata"]["resourceVersion"]
            wanted = meta.get("resourceVersion")
            if wanted and wanted != current:
                raise ConflictError(
                    f'{key[0]} "{key[2]}": the object has been modified; '
                    "please apply your changes to the latest version and try again"
                )
            meta["resourceVersion"] = str(int(current) + 1)
            self._objects[key] = copy.deepcopy(obj)


def retry_on_conflict(func, attempts=5):
    """Call ``func`` until it stops raising ConflictError, at most ``attempts`` times."""
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    for attempt in range(attempts):
        try:
            return func()
        except ConflictError:
            if attempt == attempts - 1:
                raise
            time.sleep(0.01)
    raise AssertionError("unreachable")


def feature_flag_source_index(obj):
    """Index value telling whether a deployment carries a flag source annotation."""
    if obj.get("kind") != "Deployment":
        return ["false"]
    annotations = (
        obj.get("spec", {}).get("template", {}).get("metadata", {}).get("annotations")
    )
    if not annotations:
        return ["false"]
    if f"openfeature.dev/{FEATURE_FLAG_SOURCE_ANNOTATION}" in annotations:
        return ["true"]
    return ["false"]


def find_flag_config(client, namespace, name):
    """Fetch a FeatureFlag object; raises NotFoundError if it is missing."""
    return client.get(FEATURE_FLAG_KIND, namespace, name)


def shared_ownership(owner_references1, owner_references2):
    """Return True if any owner reference UID appears in both lists."""
    uids = {ref.get("uid", "") for ref in owner_references2}
    return any(ref.get("uid", "") in uids for ref in owner_references1)


def is_managed_by_ofo(obj):
    """Return True if the object is labelled as managed by the operator."""
    labels = obj.get("metadata", {}).get("labels") or {}
    return labels.get(MANAGED_BY_ANNOTATION_KEY) == MANAGED_BY_ANNOTATION_VALUE