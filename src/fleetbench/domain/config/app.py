"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from fleetbench.domain.config.docker import DockerConfig
from fleetbench.domain.config.fleet import FleetConfig
from fleetbench.domain.config.kibana import KibanaConfig
from fleetbench.domain.config.retry import RetryPolicyConfig


class AppConfig(BaseModel):
    """Main application configuration.

    This is the root configuration model that aggregates all configuration sections.
    Validation is performed at load time to fail fast on configuration errors.

    Attributes:
        docker: Container runtime configuration
        fleet: Fleet enrollment defaults
        kibana: Kibana Fleet API configuration
        tag_image: Backoff policy for image tagging
    """

    docker: DockerConfig = Field(default_factory=DockerConfig)
    fleet: FleetConfig = Field(default_factory=FleetConfig)
    kibana: KibanaConfig = Field(default_factory=KibanaConfig)
    tag_image: RetryPolicyConfig = Field(default_factory=RetryPolicyConfig)

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on attribute assignment
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "docker": {
                    "api_version": "1.39",
                    "network_name": "elastic-dev-network",
                },
                "fleet": {
                    "elasticsearch_uri": "elasticsearch",
                    "elasticsearch_port": 9200,
                    "kibana_uri": "kibana",
                    "kibana_port": 5601,
                },
                "kibana": {
                    "url": "http://localhost:5601",
                },
                "tag_image": {
                    "initial_interval": 0.5,
                    "multiplier": 2.0,
                    "randomization_factor": 0.5,
                    "max_interval": 5.0,
                    "max_elapsed_time": 15.0,
                },
            }
        },
    )
