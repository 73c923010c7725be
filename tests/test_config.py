import pytest

from pod_restarter.config import (
    DEFAULT_MESSAGE,
    DEFAULT_REASON,
    ConfigError,
    ReconcilerConfig,
    build_config,
)


def test_defaults():
    cfg = build_config(environ={})
    assert cfg.reason == DEFAULT_REASON
    assert cfg.message == DEFAULT_MESSAGE
    assert cfg.namespace == ""
    assert cfg.polling_interval == 30
    assert cfg.grace_period == 5
    assert cfg.dry_run is False


def test_yaml_then_env_then_flags(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "reason: BackOff\n"
        "error-message: Back-off pulling image\n"
        "namespace: team-a\n"
        "polling-interval: 60\n"
        "dry-run: true\n"
    )
    environ = {"POD_RESTARTER_NAMESPACE": "team-b", "POD_RESTARTER_POLLING_INTERVAL": "45"}

    cfg = build_config(config_file=str(path), environ=environ, overrides={"polling_interval": 20, "reason": None})

    assert cfg.reason == "BackOff"
    assert cfg.message == "Back-off pulling image"
    assert cfg.namespace == "team-b"
    assert cfg.polling_interval == 20
    assert cfg.dry_run is True


def test_env_dry_run_parsing():
    assert build_config(environ={"POD_RESTARTER_DRY_RUN": "true"}).dry_run is True
    assert build_config(environ={"POD_RESTARTER_DRY_RUN": "0"}).dry_run is False


def test_kubeconfig_env():
    cfg = build_config(environ={"KUBECONFIG": "/etc/kube/admin.conf"})
    assert cfg.kubeconfig == "/etc/kube/admin.conf"


@pytest.mark.parametrize("overrides", [
    {"polling_interval": 0},
    {"grace_period": -1},
    {"reason": ""},
    {"request_timeout": 0},
])
def test_invalid_values(overrides):
    with pytest.raises(ConfigError):
        build_config(environ={}, overrides=overrides)


def test_non_numeric_interval():
    with pytest.raises(ConfigError):
        build_config(environ={"POD_RESTARTER_POLLING_INTERVAL": "soon"})


def test_unknown_yaml_key(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("pollingInterval: 10\n")
    with pytest.raises(ConfigError):
        build_config(config_file=str(path), environ={})


def test_yaml_must_be_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        build_config(config_file=str(path), environ={})


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError):
        build_config(config_file=str(tmp_path / "missing.yaml"), environ={})


def test_validate_returns_config():
    cfg = ReconcilerConfig()
    assert cfg.validate() is cfg


def test_polling_interval_shorter_than_grace_period():
    cfg = build_config(environ={}, overrides={"polling_interval": 3})
    assert cfg.polling_interval == 3
    assert cfg.grace_period == 5


def test_empty_namespace_env_selects_all_namespaces(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("namespace: team-a\n")
    environ = {"POD_RESTARTER_NAMESPACE": ""}
    assert build_config(config_file=str(path), environ=environ).namespace == ""
    assert build_config(config_file=str(path), environ={}).namespace == "team-a"


def test_other_empty_env_values_are_ignored():
    cfg = build_config(environ={"POD_RESTARTER_REASON": "", "POD_RESTARTER_POLLING_INTERVAL": ""})
    assert cfg.reason == DEFAULT_REASON
    assert cfg.polling_interval == 30
