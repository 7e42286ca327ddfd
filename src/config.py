"""Driver configuration management.

Configuration is loaded from a single YAML file:
- --config PATH on the command line
- $CHART_DRIVER_CONFIG
- ~/.config/chart-driver/config.yaml (optional)

Example:

    kubeconfig: ~/.kube/config
    context: staging
    namespace: apps
    hook_wait_timeout: 30m
    deletion_wait_timeout: 10m
    field_manager: chart-driver

The merge order is: defaults -> file -> environment -> CLI flags.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from common import parse_duration

# Timeout used for hooks without a wait-timeout annotation and for deletion
# waits, unless configured otherwise.
DEFAULT_WAIT_TIMEOUT = 24 * 3600.0

DEFAULT_NAMESPACE = 'default'
DEFAULT_FIELD_MANAGER = 'chart-driver'

CONFIG_ENV = 'CHART_DRIVER_CONFIG'
NAMESPACE_ENV = 'CHART_DRIVER_NAMESPACE'
CONTEXT_ENV = 'CHART_DRIVER_CONTEXT'


class ConfigError(Exception):
    """Configuration error."""


@dataclass
class DriverConfig:
    """Configuration for talking to a cluster and driving lifecycles.

    Attributes:
        config_file: YAML file the values were read from (None = defaults)
        kubeconfig: kubeconfig path ('' = in-cluster or default kubeconfig)
        context: kubeconfig context ('' = current context)
        namespace: Default namespace for resources without one
        hook_wait_timeout: Seconds to wait for hooks without wait-timeout
        deletion_wait_timeout: Seconds to wait for deleted resources to vanish
        field_manager: Field manager name for server-side apply
    """
    config_file: Optional[Path] = None
    kubeconfig: str = ''
    context: str = ''
    namespace: str = DEFAULT_NAMESPACE
    hook_wait_timeout: float = DEFAULT_WAIT_TIMEOUT
    deletion_wait_timeout: float = DEFAULT_WAIT_TIMEOUT
    field_manager: str = DEFAULT_FIELD_MANAGER

    def __post_init__(self):
        if isinstance(self.config_file, str):
            self.config_file = Path(self.config_file)

        if self.config_file is not None and self.config_file.exists():
            self._load_from_yaml()

        self._apply_env()

    def _load_from_yaml(self):
        """Load values from the config file."""
        data = _parse_yaml(self.config_file)
        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_file}: expected a mapping at top level")

        if kubeconfig := data.get('kubeconfig'):
            self.kubeconfig = str(Path(kubeconfig).expanduser())
        if context := data.get('context'):
            self.context = str(context)
        if namespace := data.get('namespace'):
            self.namespace = str(namespace)
        if field_manager := data.get('field_manager'):
            self.field_manager = str(field_manager)

        self.hook_wait_timeout = _duration(data, 'hook_wait_timeout', self.hook_wait_timeout)
        self.deletion_wait_timeout = _duration(data, 'deletion_wait_timeout', self.deletion_wait_timeout)

    def _apply_env(self):
        if namespace := os.environ.get(NAMESPACE_ENV):
            self.namespace = namespace
        if context := os.environ.get(CONTEXT_ENV):
            self.context = context


def _duration(data: dict, key: str, default: float) -> float:
    if key not in data or data[key] is None:
        return default
    try:
        value = parse_duration(data[key])
    except ValueError as e:
        raise ConfigError(f"Invalid {key}: {e}") from e
    if value <= 0:
        raise ConfigError(f"Invalid {key}: must be positive, got {data[key]!r}")
    return value


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e


def default_config_path() -> Path:
    return Path.home() / '.config' / 'chart-driver' / 'config.yaml'


def load_config(path: Optional[str] = None) -> DriverConfig:
    """Load driver configuration.

    Resolution order:
    1. Explicit path (must exist)
    2. $CHART_DRIVER_CONFIG (must exist)
    3. ~/.config/chart-driver/config.yaml (optional)

    Raises:
        ConfigError: If an explicitly requested file is missing or invalid
    """
    if path:
        config_file = Path(path).expanduser()
        if not config_file.exists():
            raise ConfigError(f"Config file {config_file} does not exist")
        return DriverConfig(config_file=config_file)

    if env_path := os.environ.get(CONFIG_ENV):
        config_file = Path(env_path).expanduser()
        if not config_file.exists():
            raise ConfigError(f"{CONFIG_ENV}={env_path} does not exist")
        return DriverConfig(config_file=config_file)

    config_file = default_config_path()
    if config_file.exists():
        return DriverConfig(config_file=config_file)
    return DriverConfig()
