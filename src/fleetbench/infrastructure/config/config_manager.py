"""Configuration manager for loading and validating .fleetbench.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from fleetbench.domain.config import (
    AppConfig,
    DockerConfig,
    FleetConfig,
    KibanaConfig,
    RetryPolicyConfig,
)

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".fleetbench.yml"

# env var -> (section, key)
ENV_OVERRIDES = {
    "FLEETBENCH_DOCKER_API_VERSION": ("docker", "api_version"),
    "FLEETBENCH_NETWORK": ("docker", "network_name"),
    "FLEETBENCH_ELASTICSEARCH_URI": ("fleet", "elasticsearch_uri"),
    "FLEETBENCH_ELASTICSEARCH_CREDENTIALS": ("fleet", "elasticsearch_credentials"),
    "FLEETBENCH_KIBANA_URI": ("fleet", "kibana_uri"),
    "FLEETBENCH_AGENT_BINARY": ("fleet", "agent_binary"),
    "FLEETBENCH_KIBANA_URL": ("kibana", "url"),
    "FLEETBENCH_KIBANA_USERNAME": ("kibana", "username"),
    "FLEETBENCH_KIBANA_PASSWORD": ("kibana", "password"),
}


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


class ConfigManager:
    """Manages configuration from .fleetbench.yml and environment variables

    Configuration priority:
    1. Default values (defined in Pydantic models)
    2. .fleetbench.yml file (searched from current directory upwards)
    3. Environment variables (FLEETBENCH_*)
    4. CLI arguments (handled by CLI layer)
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager

        Args:
            config_path: Path to .fleetbench.yml (searches from current dir if None)

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                errors.append(f"  - {field}: {error['msg']}")
            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(errors)
            ) from e

    def _find_config_file(self) -> Optional[Path]:
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Returns:
            Validated AppConfig instance

        Raises:
            ValidationError: If configuration is invalid
            ConfigurationError: If the file is not valid YAML
        """
        config_dict = copy.deepcopy(AppConfig().model_dump())

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(f"{self.config_path} must contain a mapping")
            config_dict = self._merge_config(config_dict, file_config)
            logger.info(f"Loaded configuration from {self.config_path}")

        config_dict = self._apply_env_overrides(config_dict)
        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                config.setdefault(section, {})[key] = value
        return config

    def get_docker_config(self) -> DockerConfig:
        return self.config.docker

    def get_fleet_config(self) -> FleetConfig:
        return self.config.fleet

    def get_kibana_config(self) -> KibanaConfig:
        return self.config.kibana

    def get_tag_image_config(self) -> RetryPolicyConfig:
        """Get the backoff policy used when tagging images

        Returns:
            Retry policy configuration model
        """
        return self.config.tag_image
