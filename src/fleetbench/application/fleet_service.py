"""Service for bootstrapping Fleet Server and enrolling agents"""

import logging
from typing import Optional

from fleetbench.domain.models.enrollment import FleetEnrollment
from fleetbench.infrastructure.agent.launcher import AgentCommandError, AgentLauncher
from fleetbench.infrastructure.container.runtime import ContainerRuntime

logger = logging.getLogger(__name__)


class FleetService:
    """Test steps that put agents under Fleet management"""

    def __init__(
        self,
        runtime: ContainerRuntime,
        launcher: Optional[AgentLauncher] = None,
    ):
        """Initialize Fleet service

        Args:
            runtime: Container runtime
            launcher: Agent launcher (creates a default one on `runtime` if None)
        """
        self.runtime = runtime
        self.launcher = launcher or AgentLauncher(runtime)

    def bootstrap_fleet_server(self, container: str, enrollment: FleetEnrollment) -> str:
        """Install the agent as the initial Fleet Server

        Raises:
            AgentCommandError: If the install fails
        """
        logger.debug("Bootstrapping Fleet Server")
        args = [
            "-f",
            "--fleet-server-insecure-http",
            "--fleet-server", enrollment.elasticsearch_url,
        ]
        try:
            return self.launcher.run(container, "install", args)
        except AgentCommandError as e:
            raise AgentCommandError(f"Failed to install the agent with subcommand: {e}") from e

    def enroll_agent(
        self,
        container: str,
        enrollment: FleetEnrollment,
        subcommand: str = "install",
    ) -> str:
        """Install or enroll an agent with the flags derived from `enrollment`"""
        logger.info(f"Enrolling agent in {container} with `{subcommand}`")
        return self.launcher.run(container, subcommand, enrollment.flags())

    def deploy_agent(
        self,
        image: str,
        target_image: str,
        container: str,
        enrollment: FleetEnrollment,
        subcommand: str = "install",
    ) -> str:
        """Tag the agent image, then enroll the agent running in `container`

        Raises:
            ImageTagError: If the image could not be tagged
            AgentCommandError: If enrollment fails
        """
        self.runtime.tag_image(image, target_image)
        return self.enroll_agent(container, enrollment, subcommand)
