"""Runs the agent binary inside a container"""

import logging
from typing import List, Optional

from fleetbench.infrastructure.container.runtime import ContainerRuntime, ContainerRuntimeError

logger = logging.getLogger(__name__)


class AgentCommandError(RuntimeError):
    """An agent subcommand could not be run"""


class AgentLauncher:
    """Launches agent subcommands (install, enroll, ...) through the container runtime"""

    def __init__(
        self,
        runtime: ContainerRuntime,
        binary: str = "elastic-agent",
        user: str = "root",
    ):
        self.runtime = runtime
        self.binary = binary
        self.user = user

    def build_command(self, subcommand: str, args: Optional[List[str]] = None) -> List[str]:
        return [self.binary, subcommand, *(args or [])]

    def run(
        self,
        container: str,
        subcommand: str,
        args: Optional[List[str]] = None,
        env: Optional[List[str]] = None,
    ) -> str:
        """Run `<binary> <subcommand> args...` inside a container

        Returns:
            Command output

        Raises:
            AgentCommandError: If the command cannot be executed
        """
        cmd = self.build_command(subcommand, args)
        logger.info(f"Running {self.binary} {subcommand} in {container}")
        try:
            output = self.runtime.exec_command(container, self.user, cmd, env)
        except ContainerRuntimeError as e:
            raise AgentCommandError(f"{self.binary} {subcommand} failed in {container}: {e}") from e
        logger.debug(f"{self.binary} {subcommand} output: {output}")
        return output
