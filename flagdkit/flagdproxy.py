"""Reconciliation of the flagd-proxy deployment, service and disruption budget."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from flagdkit.common import (
    MANAGED_BY_ANNOTATION_KEY,
    MANAGED_BY_ANNOTATION_VALUE,
    OPERATOR_DEPLOYMENT_NAME,
    NotFoundError,
    is_managed_by_ofo,
    retry_on_conflict,
)

FLAGD_PROXY_DEPLOYMENT_NAME = "flagd-proxy"
FLAGD_PROXY_SERVICE_ACCOUNT_NAME = "open-feature-operator-flagd-proxy"
FLAGD_PROXY_SERVICE_NAME = "flagd-proxy-svc"
FLAGD_PROXY_POD_DISRUPTION_BUDGET_NAME = "flagd-proxy-pdb"

_SUPPORTED_KINDS = frozenset({"Service", "Deployment", "PodDisruptionBudget"})


@dataclass
class FlagdProxyConfiguration:
    """Settings that shape the flagd-proxy resources."""

    port: int = 0
    management_port: int = 0
    debug_logging: bool = False
    image: str = ""
    tag: str = ""
    replicas: int = 0
    namespace: str = ""
    operator_deployment_name: str = ""
    image_pull_secrets: list = field(default_factory=list)
    labels: dict = field(default_factory=dict)
    annotations: dict = field(default_factory=dict)


def new_flagd_proxy_configuration(env, image_pull_secrets, labels, annotations):
    """Build a proxy configuration from the operator environment settings."""
    return FlagdProxyConfiguration(
        port=env.flagd_proxy_port,
        management_port=env.flagd_proxy_management_port,
        debug_logging=env.flagd_proxy_debug_logging,
        image=env.flagd_proxy_image,
        tag=env.flagd_proxy_tag,
        replicas=env.flagd_proxy_replica_count,
        namespace=env.pod_namespace,
        operator_deployment_name=OPERATOR_DEPLOYMENT_NAME,
        image_pull_secrets=list(image_pull_secrets) if image_pull_secrets is not None else [],
        labels=dict(labels) if labels is not None else {},
        annotations=dict(annotations) if annotations is not None else {},
    )


def spec_differs(a, b):
    """Return True if the specs of two objects of a supported kind differ.

    Raises ValueError if either object is missing or of an unsupported kind.
    """
    if a is None or b is None:
        raise ValueError("object is nil")
    if a.get("kind") not in _SUPPORTED_KINDS or b.get("kind") != a.get("kind"):
        raise ValueError("unsupported object type")
    return a.get("spec") != b.get("spec")


def _managed_selector():
    return {
        "app.kubernetes.io/name": FLAGD_PROXY_DEPLOYMENT_NAME,
        MANAGED_BY_ANNOTATION_KEY: MANAGED_BY_ANNOTATION_VALUE,
    }


class FlagdProxyHandler:
    """Keeps the flagd-proxy resources in the cluster matching the configuration."""

    def __init__(self, config, client, logger=None):
        self._config = config
        self.client = client
        self.log = logger if logger is not None else logging.getLogger(__name__)

    def config(self):
        """Return the proxy configuration this handler works with."""
        return self._config

    def handle_flagd_proxy(self):
        """Ensure the proxy deployment, service and disruption budget exist and are current."""
        owner = self.owner_reference()
        self.ensure_resource(self.new_deployment(owner))
        self.ensure_resource(self.new_service(owner))
        self.ensure_resource(self.new_pod_disruption_budget(owner))

    def ensure_resource(self, obj):
        """Create ``obj`` if missing, or update it when its spec has drifted.

        Raises RuntimeError if an object of that name exists but is not
        managed by the operator.
        """
        if obj is None:
            raise ValueError("object is nil")
        kind = obj.get("kind", "")
        meta = obj.setdefault("metadata", {})
        name = meta.get("name", "")
        namespace = meta.get("namespace", "")

        def attempt():
            self.log.info("Ensuring object exists name=%s namespace=%s", name, namespace)
            try:
                old = self.client.get(kind, namespace, name)
            except NotFoundError:
                self.client.create(obj)
                return
            if not is_managed_by_ofo(old):
                raise RuntimeError(f"{name} not managed by OFO")
            if spec_differs(obj, old):
                meta["resourceVersion"] = old.get("metadata", {}).get("resourceVersion", "")
                self.client.update(obj)

        retry_on_conflict(attempt)

    def owner_reference(self):
        """Return an owner reference pointing at the operator's own deployment."""
        try:
            deployment = self.client.get(
                "Deployment",
                self._config.namespace,
                self._config.operator_deployment_name,
            )
        except NotFoundError:
            self.log.error(
                "unable to create owner reference for open-feature-operator: "
                "unable to fetch operator deployment"
            )
            raise
        meta = deployment.get("metadata", {})
        return {
            "apiVersion": deployment.get("apiVersion", ""),
            "kind": deployment.get("kind", ""),
            "name": meta.get("name", ""),
            "uid": meta.get("uid", ""),
        }

    def _object_metadata(self, name, owner_reference, labels):
        return {
            "name": name,
            "namespace": self._config.namespace,
            "labels": labels,
            "ownerReferences": [dict(owner_reference)],
        }

    def new_deployment(self, owner_reference):
        """Build the flagd-proxy Deployment manifest."""
        cfg = self._config
        args = ["start", "--management-port", str(cfg.management_port)]
        if cfg.debug_logging:
            args.append("--debug")
        pod_labels = {
            "app": FLAGD_PROXY_DEPLOYMENT_NAME,
            "app.kubernetes.io/name": FLAGD_PROXY_DEPLOYMENT_NAME,
            MANAGED_BY_ANNOTATION_KEY: MANAGED_BY_ANNOTATION_VALUE,
            "app.kubernetes.io/version": cfg.tag,
        }
        pod_labels.update(cfg.labels or {})
        return {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": self._object_metadata(
                FLAGD_PROXY_DEPLOYMENT_NAME,
                owner_reference,
                {
                    "app": FLAGD_PROXY_DEPLOYMENT_NAME,
                    MANAGED_BY_ANNOTATION_KEY: MANAGED_BY_ANNOTATION_VALUE,
                    "app.kubernetes.io/version": cfg.tag,
                },
            ),
            "spec": {
                "replicas": cfg.replicas,
                "selector": {"matchLabels": {"app": FLAGD_PROXY_DEPLOYMENT_NAME}},
                "template": {
                    "metadata": {
                        "labels": pod_labels,
                        "annotations": dict(cfg.annotations or {}),
                    },
                    "spec": {
                        "serviceAccountName": FLAGD_PROXY_SERVICE_ACCOUNT_NAME,
                        "imagePullSecrets": [
                            {"name": secret} for secret in cfg.image_pull_secrets or ()
                        ],
                        "containers": [
                            {
                                "image": f"{cfg.image}:{cfg.tag}",
                                "name": FLAGD_PROXY_DEPLOYMENT_NAME,
                                "ports": [
                                    {"name": "port", "containerPort": cfg.port},
                                    {
                                        "name": "management-port",
                                        "containerPort": cfg.management_port,
                                    },
                                ],
                                "args": args,
                            }
                        ],
                        "topologySpreadConstraints": [
                            {
                                "maxSkew": 1,
                                "topologyKey": "kubernetes.io/hostname",
                                "whenUnsatisfiable": "DoNotSchedule",
                                "labelSelector": {"matchLabels": _managed_selector()},
                            }
                        ],
                    },
                },
            },
        }

    def new_service(self, owner_reference):
        """Build the flagd-proxy Service manifest."""
        port = self._config.port
        return {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": self._object_metadata(
                FLAGD_PROXY_SERVICE_NAME,
                owner_reference,
                {MANAGED_BY_ANNOTATION_KEY: MANAGED_BY_ANNOTATION_VALUE},
            ),
            "spec": {
                "selector": _managed_selector(),
                "ports": [{"name": "flagd-proxy", "port": port, "targetPort": port}],
            },
        }

    def new_pod_disruption_budget(self, owner_reference):
        """Build the PodDisruptionBudget; pods are only required in an HA setup."""
        replicas = self._config.replicas
        min_available = replicas // 2 if replicas > 1 else 0
        return {
            "apiVersion": "policy/v1",
            "kind": "PodDisruptionBudget",
            "metadata": self._object_metadata(
                FLAGD_PROXY_POD_DISRUPTION_BUDGET_NAME,
                owner_reference,
                {MANAGED_BY_ANNOTATION_KEY: MANAGED_BY_ANNOTATION_VALUE},
            ),
            "spec": {
                "minAvailable": min_available,
                "selector": {"matchLabels": _managed_selector()},
            },
        }