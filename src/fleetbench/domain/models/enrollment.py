"""FleetEnrollment model - settings used to build agent enrollment flags"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from fleetbench.domain.config.fleet import FleetConfig

logger = logging.getLogger(__name__)


@dataclass
class FleetEnrollment:
    """Configuration for enrolling an agent into Fleet"""

    enrollment_token: str = ""
    elasticsearch_uri: str = "elasticsearch"
    elasticsearch_port: int = 9200
    elasticsearch_credentials: str = "elastic:changeme"
    kibana_uri: str = "kibana"
    kibana_port: int = 5601
    bootstrap_fleet_server: bool = False  # Enroll the initial Fleet Server itself
    server_policy_id: Optional[str] = None  # Set when the agent also runs Fleet Server

    @property
    def elasticsearch_url(self) -> str:
        return (
            f"http://{self.elasticsearch_credentials}@"
            f"{self.elasticsearch_uri}:{self.elasticsearch_port}"
        )

    @property
    def kibana_url(self) -> str:
        return f"http://{self.elasticsearch_credentials}@{self.kibana_uri}:{self.kibana_port}"

    def flags(self) -> List[str]:
        """Build the CLI flags for `install` / `enroll`"""
        if self.bootstrap_fleet_server:
            return ["--force", "--fleet-server-es", self.elasticsearch_url]

        flags = ["-e", "-v", "--force", "--insecure", f"--enrollment-token={self.enrollment_token}"]
        if self.server_policy_id:
            flags += [
                "--fleet-server-insecure-http",
                "--fleet-server", self.elasticsearch_url,
                "--fleet-server-host=http://0.0.0.0",
                "--fleet-server-policy", self.server_policy_id,
            ]
        return flags + ["--kibana-url", self.kibana_url]


def new_fleet_enrollment(
    token: str,
    bootstrap_fleet_server: bool = False,
    fleet_server_mode: bool = False,
    policy_lookup: Optional[Callable[[str], dict]] = None,
    fleet_config: Optional[FleetConfig] = None,
) -> FleetEnrollment:
    """Create enrollment settings from the Fleet defaults

    Args:
        token: Enrollment token
        bootstrap_fleet_server: Build settings for the initial Fleet Server
        fleet_server_mode: Agent also runs Fleet Server; resolves the default
            Fleet Server policy through ``policy_lookup``
        policy_lookup: Returns the first policy whose given field is true
        fleet_config: Connection defaults (model defaults if None)

    Raises:
        ValueError: If fleet_server_mode is set without a policy_lookup
        LookupError: If no default Fleet Server policy exists
    """
    fleet_config = fleet_config or FleetConfig()
    enrollment = FleetEnrollment(
        enrollment_token=token,
        elasticsearch_uri=fleet_config.elasticsearch_uri,
        elasticsearch_port=fleet_config.elasticsearch_port,
        elasticsearch_credentials=fleet_config.elasticsearch_credentials,
        kibana_uri=fleet_config.kibana_uri,
        kibana_port=fleet_config.kibana_port,
        bootstrap_fleet_server=bootstrap_fleet_server,
    )

    if fleet_server_mode:
        if policy_lookup is None:
            raise ValueError("fleet_server_mode requires a policy lookup")
        policy = policy_lookup("is_default_fleet_server")
        enrollment.server_policy_id = policy["id"]
        logger.debug(
            f"Fleet Server enrollment created (elasticsearch={enrollment.elasticsearch_uri}:"
            f"{enrollment.elasticsearch_port}, policy={enrollment.server_policy_id})"
        )

    return enrollment
