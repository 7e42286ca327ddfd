#!/usr/bin/env python3
"""Tests for config.py - driver configuration.

Tests verify:
1. Defaults without a config file
2. YAML loading and duration parsing
3. Environment overrides
4. Config file resolution order and errors
"""

import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from config import (
    DEFAULT_WAIT_TIMEOUT,
    ConfigError,
    DriverConfig,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove driver environment variables."""
    for var in ('CHART_DRIVER_CONFIG', 'CHART_DRIVER_NAMESPACE', 'CHART_DRIVER_CONTEXT'):
        monkeypatch.delenv(var, raising=False)


class TestDriverConfig:
    """Test DriverConfig dataclass."""

    def test_defaults(self):
        """Should use defaults when no file is given."""
        config = DriverConfig()
        assert config.namespace == 'default'
        assert config.hook_wait_timeout == DEFAULT_WAIT_TIMEOUT
        assert config.deletion_wait_timeout == 24 * 3600
        assert config.field_manager == 'chart-driver'
        assert config.kubeconfig == ''

    def test_loads_yaml(self, tmp_path):
        """Should read values and durations from YAML."""
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("""
kubeconfig: /etc/kube/config
context: staging
namespace: apps
hook_wait_timeout: 30m
deletion_wait_timeout: 90
field_manager: ci
""")
        config = DriverConfig(config_file=config_file)
        assert config.kubeconfig == '/etc/kube/config'
        assert config.context == 'staging'
        assert config.namespace == 'apps'
        assert config.hook_wait_timeout == 1800.0
        assert config.deletion_wait_timeout == 90.0
        assert config.field_manager == 'ci'

    def test_string_path_accepted(self, tmp_path):
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("namespace: apps\n")
        config = DriverConfig(config_file=str(config_file))
        assert config.config_file == config_file
        assert config.namespace == 'apps'

    def test_invalid_duration(self, tmp_path):
        """Should reject unparseable timeouts."""
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("hook_wait_timeout: soon\n")
        with pytest.raises(ConfigError, match='hook_wait_timeout'):
            DriverConfig(config_file=config_file)

    def test_infinite_duration(self, tmp_path):
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("hook_wait_timeout: .inf\n")
        with pytest.raises(ConfigError, match='Invalid hook_wait_timeout'):
            DriverConfig(config_file=config_file)

    def test_non_positive_duration(self, tmp_path):
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("deletion_wait_timeout: 0s\n")
        with pytest.raises(ConfigError, match='must be positive'):
            DriverConfig(config_file=config_file)

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("namespace: [unclosed\n")
        with pytest.raises(ConfigError, match='Failed to parse'):
            DriverConfig(config_file=config_file)

    def test_non_mapping(self, tmp_path):
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match='expected a mapping'):
            DriverConfig(config_file=config_file)

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Environment should win over file values."""
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("namespace: apps\ncontext: staging\n")
        monkeypatch.setenv('CHART_DRIVER_NAMESPACE', 'other')
        monkeypatch.setenv('CHART_DRIVER_CONTEXT', 'prod')
        config = DriverConfig(config_file=config_file)
        assert config.namespace == 'other'
        assert config.context == 'prod'


class TestLoadConfig:
    """Test config file resolution."""

    def test_explicit_path(self, tmp_path):
        config_file = tmp_path / 'driver.yaml'
        config_file.write_text("namespace: explicit\n")
        assert load_config(str(config_file)).namespace == 'explicit'

    def test_explicit_path_missing(self, tmp_path):
        with pytest.raises(ConfigError, match='does not exist'):
            load_config(str(tmp_path / 'missing.yaml'))

    def test_env_path(self, tmp_path, monkeypatch):
        config_file = tmp_path / 'env.yaml'
        config_file.write_text("namespace: from-env-file\n")
        monkeypatch.setenv('CHART_DRIVER_CONFIG', str(config_file))
        assert load_config().namespace == 'from-env-file'

    def test_env_path_missing(self, tmp_path, monkeypatch):
        monkeypatch.setenv('CHART_DRIVER_CONFIG', str(tmp_path / 'nope.yaml'))
        with pytest.raises(ConfigError, match='CHART_DRIVER_CONFIG'):
            load_config()

    def test_default_path_optional(self, tmp_path):
        """Missing default file should yield defaults."""
        with patch('config.default_config_path', return_value=tmp_path / 'absent.yaml'):
            config = load_config()
        assert config.config_file is None
        assert config.namespace == 'default'

    def test_default_path_used(self, tmp_path):
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("field_manager: from-default\n")
        with patch('config.default_config_path', return_value=config_file):
            assert load_config().field_manager == 'from-default'
