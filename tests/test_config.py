import json

import pytest

from flagdkit.config import EnvConfig, SourceConfig, encode_sources


def test_env_config_defaults():
    env = EnvConfig()
    assert env.pod_namespace == "open-feature-operator-system"
    assert env.flagd_proxy_tag == "v0.7.4"
    assert env.flagd_proxy_port == 8015
    assert env.sidecar_sync_provider == "kubernetes"
    assert env.flags_validation_enabled is True


def test_from_environ_without_variables_matches_defaults():
    assert EnvConfig.from_environ({}) == EnvConfig()


def test_from_environ_overrides_values():
    env = EnvConfig.from_environ(
        {
            "POD_NAMESPACE": "my-namespace",
            "FLAGD_PROXY_PORT": "8080",
            "FLAGD_PROXY_DEBUG_LOGGING": "true",
            "IN_PROCESS_TLS": "1",
        }
    )
    assert env.pod_namespace == "my-namespace"
    assert env.flagd_proxy_port == 8080
    assert env.flagd_proxy_debug_logging is True
    assert env.in_process_tls is True
    assert env.flagd_proxy_management_port == EnvConfig().flagd_proxy_management_port


def test_from_environ_rejects_bad_integer():
    with pytest.raises(ValueError, match="FLAGD_PORT"):
        EnvConfig.from_environ({"FLAGD_PORT": "not-a-number"})


def test_from_environ_rejects_bad_boolean():
    with pytest.raises(ValueError, match="SIDECAR_PROBES_ENABLED"):
        EnvConfig.from_environ({"SIDECAR_PROBES_ENABLED": "maybe"})


def test_encode_minimal_source():
    assert encode_sources([SourceConfig(uri="", provider="grpc")]) == '[{"uri":"","provider":"grpc"}]'


def test_encode_http_source():
    source = SourceConfig(
        uri="http://localhost:8013", provider="http", bearer_token="token", interval=8
    )
    assert (
        encode_sources([source])
        == '[{"uri":"http://localhost:8013","provider":"http","bearerToken":"token","interval":8}]'
    )


def test_encode_grpc_source_field_order():
    source = SourceConfig(
        uri="grpc://localhost:8013",
        provider="grpc",
        tls=True,
        cert_path="cert-path",
        provider_id="provider-id",
        selector="selector",
    )
    assert encode_sources([source]) == (
        '[{"uri":"grpc://localhost:8013","provider":"grpc","certPath":"cert-path",'
        '"tls":true,"providerID":"provider-id","selector":"selector"}]'
    )


def test_encode_escapes_html_characters():
    text = encode_sources([SourceConfig(uri="a<b&c>", provider="http")])
    assert "<" not in text and ">" not in text and "&" not in text
    assert json.loads(text) == [{"uri": "a<b&c>", "provider": "http"}]


def test_to_dict_round_trips_through_json():
    source = SourceConfig(uri="ns/name", provider="kubernetes", selector="sel")
    decoded = json.loads(encode_sources([source, source]))
    assert decoded == [source.to_dict(), source.to_dict()]


def test_to_dict_omits_empty_optionals():
    assert set(SourceConfig(uri="u", provider="file").to_dict()) == {"uri", "provider"}