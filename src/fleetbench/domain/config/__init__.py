"""Configuration models with Pydantic validation."""

from fleetbench.domain.config.app import AppConfig
from fleetbench.domain.config.docker import DockerConfig
from fleetbench.domain.config.fleet import FleetConfig
from fleetbench.domain.config.kibana import KibanaConfig
from fleetbench.domain.config.retry import RetryPolicyConfig

__all__ = [
    "AppConfig",
    "DockerConfig",
    "FleetConfig",
    "KibanaConfig",
    "RetryPolicyConfig",
]
