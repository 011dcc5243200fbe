"""Operator environment settings and flagd source configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields


def _env(name, default):
    return field(default=default, metadata={"env": name})


_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def _parse_bool(name, raw):
    if raw in _TRUE_WORDS:
        return True
    if raw in _FALSE_WORDS:
        return False
    raise ValueError(f"{name}: invalid boolean value {raw!r}")


def _parse_int(name, raw):
    try:
        return int(raw, 0)
    except ValueError:
        pass
    digits = raw.lstrip("+-")
    if len(digits) > 1 and digits.startswith("0"):
        try:
            return int(raw, 8)
        except ValueError:
            pass
    raise ValueError(f"{name}: invalid integer value {raw!r}")


@dataclass
class EnvConfig:
    """Operator settings read from environment variables."""

    pod_namespace: str = _env("POD_NAMESPACE", "open-feature-operator-system")
    flagd_proxy_image: str = _env("FLAGD_PROXY_IMAGE", "ghcr.io/open-feature/flagd-proxy")
    flags_validation_enabled: bool = _env("FLAGS_VALIDATION_ENABLED", True)
    flagd_proxy_replica_count: int = _env("FLAGD_PROXY_REPLICA_COUNT", 1)
    flagd_proxy_tag: str = _env("FLAGD_PROXY_TAG", "v0.7.4")
    flagd_proxy_port: int = _env("FLAGD_PROXY_PORT", 8015)
    flagd_proxy_management_port: int = _env("FLAGD_PROXY_MANAGEMENT_PORT", 8016)
    flagd_proxy_debug_logging: bool = _env("FLAGD_PROXY_DEBUG_LOGGING", False)

    flagd_image: str = _env("FLAGD_IMAGE", "ghcr.io/open-feature/flagd")
    flagd_tag: str = _env("FLAGD_TAG", "v0.12.4")
    flagd_port: int = _env("FLAGD_PORT", 8013)
    flagd_ofrep_port: int = _env("FLAGD_OFREP_PORT", 8016)
    flagd_sync_port: int = _env("FLAGD_SYNC_PORT", 8015)
    flagd_management_port: int = _env("FLAGD_MANAGEMENT_PORT", 8014)
    flagd_debug_logging: bool = _env("FLAGD_DEBUG_LOGGING", False)

    sidecar_env_var_prefix: str = _env("SIDECAR_ENV_VAR_PREFIX", "FLAGD")
    sidecar_management_port: int = _env("SIDECAR_MANAGEMENT_PORT", 8014)
    sidecar_port: int = _env("SIDECAR_PORT", 8013)
    sidecar_image: str = _env("SIDECAR_IMAGE", "ghcr.io/open-feature/flagd")
    sidecar_tag: str = _env("SIDECAR_TAG", "v0.12.4")
    sidecar_socket_path: str = _env("SIDECAR_SOCKET_PATH", "")
    sidecar_evaluator: str = _env("SIDECAR_EVALUATOR", "json")
    sidecar_provider_args: str = _env("SIDECAR_PROVIDER_ARGS", "")
    sidecar_sync_provider: str = _env("SIDECAR_SYNC_PROVIDER", "kubernetes")
    sidecar_log_format: str = _env("SIDECAR_LOG_FORMAT", "json")
    sidecar_probes_enabled: bool = _env("SIDECAR_PROBES_ENABLED", True)

    in_process_port: int = _env("IN_PROCESS_PORT", 8015)
    in_process_socket_path: str = _env("IN_PROCESS_SOCKET_PATH", "")
    in_process_host: str = _env("IN_PROCESS_HOST", "localhost")
    in_process_tls: bool = _env("IN_PROCESS_TLS", False)
    in_process_offline_flag_source_path: str = _env("IN_PROCESS_OFFLINE_FLAG_SOURCE_PATH", "")
    in_process_selector: str = _env("IN_PROCESS_SELECTOR", "")
    in_process_cache: str = _env("IN_PROCESS_CACHE", "lru")
    in_process_env_var_prefix: str = _env("IN_PROCESS_ENV_VAR_PREFIX", "FLAGD")
    in_process_cache_max_size: int = _env("IN_PROCESS_CACHE_MAX_SIZE", 1000)

    @classmethod
    def from_environ(cls, environ=None):
        """Build a configuration from ``environ`` (``os.environ`` by default).

        Raises ValueError when a variable cannot be converted to its field's type.
        """
        if environ is None:
            environ = os.environ
        values = {}
        for f in fields(cls):
            name = f.metadata["env"]
            raw = environ.get(name)
            if raw is None:
                continue
            if isinstance(f.default, bool):
                values[f.name] = _parse_bool(name, raw)
            elif isinstance(f.default, int):
                values[f.name] = _parse_int(name, raw)
            else:
                values[f.name] = raw
        return cls(**values)


@dataclass
class SourceConfig:
    """A flagd sync source; its JSON encoding becomes a flagd startup argument."""

    uri: str
    provider: str
    bearer_token: str = ""
    cert_path: str = ""
    tls: bool = False
    provider_id: str = ""
    selector: str = ""
    interval: int = 0

    def to_dict(self):
        """Return the flagd wire form, leaving out empty optional fields."""
        data = {"uri": self.uri, "provider": self.provider}
        optional = (
            ("bearerToken", self.bearer_token),
            ("certPath", self.cert_path),
            ("tls", self.tls),
            ("providerID", self.provider_id),
            ("selector", self.selector),
            ("interval", self.interval),
        )
        data.update((key, value) for key, value in optional if value)
        return data


_HTML_ESCAPES = str.maketrans(
    {"<": "\\u003c", ">": "\\u003e", "&": "\\u0026", "\u2028": "\\u2028", "\u2029": "\\u2029"}
)


def encode_sources(sources):
    """Encode source configs as the compact JSON array flagd expects."""
    text = json.dumps(
        [source.to_dict() for source in sources],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return text.translate(_HTML_ESCAPES)