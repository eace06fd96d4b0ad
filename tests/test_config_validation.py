"""Tests for configuration validation with Pydantic."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from fleetbench.domain.config import (
    AppConfig,
    DockerConfig,
    FleetConfig,
    KibanaConfig,
    RetryPolicyConfig,
)
from fleetbench.infrastructure.config.config_manager import (
    ENV_OVERRIDES,
    ConfigManager,
    ConfigurationError,
)


class TestRetryPolicyConfigValidation:
    """Tests for RetryPolicyConfig validation."""

    def test_defaults(self):
        config = RetryPolicyConfig()
        assert config.initial_interval == 0.5
        assert config.max_elapsed_time == 15.0

    def test_multiplier_must_exceed_one(self):
        with pytest.raises(ValidationError, match="multiplier"):
            RetryPolicyConfig(multiplier=1.0)

    def test_randomization_factor_below_one(self):
        with pytest.raises(ValidationError, match="randomization_factor"):
            RetryPolicyConfig(randomization_factor=1.0)

    def test_initial_interval_positive(self):
        with pytest.raises(ValidationError, match="initial_interval"):
            RetryPolicyConfig(initial_interval=0)

    def test_max_interval_below_initial(self):
        with pytest.raises(ValidationError, match="max_interval"):
            RetryPolicyConfig(initial_interval=2.0, max_interval=1.0)

    def test_max_elapsed_time_below_initial(self):
        with pytest.raises(ValidationError, match="max_elapsed_time"):
            RetryPolicyConfig(initial_interval=2.0, max_elapsed_time=1.0)

    def test_unbounded_elapsed_time(self):
        assert RetryPolicyConfig(max_elapsed_time=0).max_elapsed_time == 0
        assert RetryPolicyConfig(max_elapsed_time=None).max_elapsed_time is None


class TestSectionValidation:
    """Tests for the other configuration sections."""

    def test_docker_defaults(self):
        config = DockerConfig()
        assert config.api_version == "1.39"
        assert config.network_name == "elastic-dev-network"

    def test_empty_network_name(self):
        with pytest.raises(ValidationError, match="network_name"):
            DockerConfig(network_name="")

    def test_fleet_port_out_of_range(self):
        with pytest.raises(ValidationError, match="elasticsearch_port"):
            FleetConfig(elasticsearch_port=70000)

    def test_kibana_max_attempts(self):
        with pytest.raises(ValidationError, match="max_attempts"):
            KibanaConfig(max_attempts=0)

    def test_app_config_rejects_unknown_section(self):
        with pytest.raises(ValidationError):
            AppConfig(unknown={})

    def test_validate_assignment(self):
        config = AppConfig()
        with pytest.raises(ValidationError):
            config.tag_image = {"multiplier": 0.5}


class TestConfigManager:
    """Tests for ConfigManager loading."""

    @pytest.fixture(autouse=True)
    def _isolate(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ENV_OVERRIDES:
            monkeypatch.delenv(name, raising=False)

    def _write(self, path: Path, data) -> Path:
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return path

    def test_defaults_without_file(self):
        manager = ConfigManager()
        assert manager.config_path is None
        assert manager.get_docker_config().network_name == "elastic-dev-network"
        assert manager.get_tag_image_config().max_interval == 5.0

    def test_load_from_file(self, tmp_path):
        path = self._write(
            tmp_path / "custom.yml",
            {"docker": {"network_name": "fleet-net"}, "tag_image": {"max_elapsed_time": 30}},
        )
        manager = ConfigManager(config_path=path)
        assert manager.get_docker_config().network_name == "fleet-net"
        # merged, not replaced
        assert manager.get_docker_config().api_version == "1.39"
        assert manager.get_tag_image_config().max_elapsed_time == 30.0

    def test_file_found_in_parent_directory(self, tmp_path, monkeypatch):
        self._write(tmp_path / ".fleetbench.yml", {"fleet": {"kibana_uri": "kb"}})
        child = tmp_path / "a" / "b"
        child.mkdir(parents=True)
        monkeypatch.chdir(child)

        manager = ConfigManager()
        assert manager.config_path == tmp_path / ".fleetbench.yml"
        assert manager.get_fleet_config().kibana_uri == "kb"

    def test_accepts_string_path(self, tmp_path):
        path = self._write(tmp_path / "c.yml", {"kibana": {"timeout": 5}})
        assert ConfigManager(config_path=str(path)).get_kibana_config().timeout == 5.0

    def test_invalid_value_raises_configuration_error(self, tmp_path):
        path = self._write(tmp_path / "bad.yml", {"tag_image": {"multiplier": 0.5}})
        with pytest.raises(ConfigurationError, match="tag_image.multiplier"):
            ConfigManager(config_path=path)

    def test_unknown_key_raises_configuration_error(self, tmp_path):
        path = self._write(tmp_path / "bad.yml", {"dockr": {"network_name": "x"}})
        with pytest.raises(ConfigurationError, match="dockr"):
            ConfigManager(config_path=path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yml"
        path.write_text("docker: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ConfigManager(config_path=path)

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="mapping"):
            ConfigManager(config_path=path)

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = self._write(tmp_path / "c.yml", {"docker": {"network_name": "from-file"}})
        monkeypatch.setenv("FLEETBENCH_NETWORK", "from-env")
        monkeypatch.setenv("FLEETBENCH_KIBANA_URL", "http://kibana:5601")

        manager = ConfigManager(config_path=path)
        assert manager.get_docker_config().network_name == "from-env"
        assert manager.get_kibana_config().url == "http://kibana:5601"
