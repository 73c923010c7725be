"""
Configuration for the pod restarter.

Values are layered, lowest precedence first: built-in defaults, an
optional YAML file, environment variables, then command line flags.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_REASON = "FailedCreatePodSandBox"
DEFAULT_MESSAGE = "container veth name provided (eth0) already exists"
DEFAULT_POLLING_INTERVAL = 30
DEFAULT_GRACE_PERIOD = 5  # allow Pending Pods time to self heal


class ConfigError(ValueError):
    """Raised for missing or invalid configuration values"""


def default_kubeconfig() -> Optional[str]:
    home = os.path.expanduser("~")
    if home and home != "~":
        return os.path.join(home, ".kube", "config")
    return None


@dataclass
class ReconcilerConfig:
    reason: str = DEFAULT_REASON
    message: str = DEFAULT_MESSAGE
    namespace: str = ""
    polling_interval: float = DEFAULT_POLLING_INTERVAL
    grace_period: float = DEFAULT_GRACE_PERIOD
    dry_run: bool = False
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    request_timeout: float = 30
    log_level: str = "INFO"

    def validate(self) -> "ReconcilerConfig":
        if not self.reason:
            raise ConfigError("event reason must not be empty")
        if self.polling_interval <= 0:
            raise ConfigError(f"polling interval must be positive, got {self.polling_interval}")
        if self.grace_period < 0:
            raise ConfigError(f"grace period must not be negative, got {self.grace_period}")
        if self.request_timeout <= 0:
            raise ConfigError(f"request timeout must be positive, got {self.request_timeout}")
        return self


ENV_VARS = {
    'POD_RESTARTER_REASON': 'reason',
    'POD_RESTARTER_MESSAGE': 'message',
    'POD_RESTARTER_NAMESPACE': 'namespace',
    'POD_RESTARTER_POLLING_INTERVAL': 'polling_interval',
    'POD_RESTARTER_GRACE_PERIOD': 'grace_period',
    'POD_RESTARTER_DRY_RUN': 'dry_run',
    'POD_RESTARTER_REQUEST_TIMEOUT': 'request_timeout',
    'KUBECONFIG': 'kubeconfig',
    'LOG_LEVEL': 'log_level',
}

_FIELDS = {f.name for f in fields(ReconcilerConfig)}
_NUMERIC = {'polling_interval', 'grace_period', 'request_timeout'}
# file keys named after the command line flags
_ALIASES = {'error_message': 'message'}
# an empty namespace selects all namespaces
_ALLOW_EMPTY = {'namespace'}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _coerce(name: str, value: Any) -> Any:
    if name not in _FIELDS:
        raise ConfigError(f"unknown configuration key: {name}")
    if name == 'dry_run':
        return _to_bool(value)
    if name in _NUMERIC:
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name} must be a number, got {value!r}") from e
    return str(value)


def load_yaml_config(path: str) -> Dict[str, Any]:
    """Read a YAML mapping of config keys (dashes or underscores)"""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    values = {}
    for key, value in data.items():
        key = str(key).replace('-', '_')
        values[_ALIASES.get(key, key)] = value
    return values


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    values = {}
    for var, field in ENV_VARS.items():
        if environ.get(var) or (field in _ALLOW_EMPTY and var in environ):
            values[field] = environ[var]
    return values


def build_config(config_file: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None,
                 overrides: Optional[Mapping[str, Any]] = None) -> ReconcilerConfig:
    cfg = ReconcilerConfig(kubeconfig=default_kubeconfig())
    layers = []
    if config_file:
        layers.append(load_yaml_config(config_file))
    layers.append(env_overrides(environ))
    layers.append(dict(overrides or {}))

    for layer in layers:
        cfg = replace(cfg, **{k: _coerce(k, v) for k, v in layer.items() if v is not None})
    return cfg.validate()
