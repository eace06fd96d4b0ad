"""Container runtime client built on the Docker SDK"""

import gzip
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import docker
import requests
from docker.errors import DockerException, NotFound
from docker.utils import parse_repository_tag

from fleetbench.domain.config.docker import DockerConfig
from fleetbench.domain.models.outcome import CancelledNoAttempt
from fleetbench.infrastructure.retry import (
    LoggingRetryObserver,
    RetryExecutor,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

# An unreachable engine surfaces as a requests error rather than a DockerException
ENGINE_ERRORS = (DockerException, requests.exceptions.RequestException)

# Stream header fragments that leak into non-TTY exec output
OUTPUT_PREFIXES = (
    "\x01\x00\x00\x00\x00\x00\x00\r",
    "\x01\x00\x00\x00\x00\x00\x00)",
)


class ContainerRuntimeError(RuntimeError):
    """A container engine call failed"""


class ContainerNotFoundError(ContainerRuntimeError):
    """No managed container matches the requested name"""


class ImageTagError(ContainerRuntimeError):
    """Tagging gave up after retrying"""

    def __init__(self, message: str, outcome: Any):
        super().__init__(message)
        self.outcome = outcome


def create_docker_client(config: Optional[DockerConfig] = None) -> docker.DockerClient:
    """Build a Docker client pinned to the configured API version

    Raises:
        ContainerRuntimeError: If the engine is not reachable
    """
    config = config or DockerConfig()
    try:
        if config.base_url:
            return docker.DockerClient(
                base_url=config.base_url, version=config.api_version, timeout=config.timeout
            )
        return docker.from_env(version=config.api_version, timeout=config.timeout)
    except ENGINE_ERRORS as e:
        logger.error(f"Cannot get Docker client (API {config.api_version}): {e}")
        raise ContainerRuntimeError(f"Cannot get Docker client: {e}") from e


def sanitize_output(output: str) -> str:
    """Drop newlines and a leading stream header from exec output"""
    output = output.replace("\n", "")
    for prefix in OUTPUT_PREFIXES:
        if output.startswith(prefix):
            output = output.replace(prefix, "")
            logger.debug(f"Output has been sanitized: {output}")
    return output


class ContainerRuntime:
    """Start, inspect and remove containers; load and tag images; manage the test network"""

    def __init__(
        self,
        client: docker.DockerClient,
        config: Optional[DockerConfig] = None,
        tag_policy: Optional[RetryPolicy] = None,
        executor: Optional[RetryExecutor] = None,
    ):
        """Initialize runtime

        Args:
            client: Docker client (see create_docker_client)
            config: Docker configuration (defaults if None)
            tag_policy: Backoff policy for tag_image (defaults if None)
            executor: Retry executor for tag_image (logs through this module if None)
        """
        self.client = client
        self.config = config or DockerConfig()
        self.tag_policy = tag_policy or RetryPolicy()
        self.executor = executor or RetryExecutor(
            observer=LoggingRetryObserver("tag image", logger)
        )

    @property
    def network_name(self) -> str:
        return self.config.network_name

    def exec_command(
        self,
        container_name: str,
        user: str,
        cmd: List[str],
        env: Optional[List[str]] = None,
    ) -> str:
        """Execute a command, as a user, inside a container

        Args:
            container_name: Container name or ID
            user: User to run the command as
            cmd: Command and its arguments
            env: KEY=VALUE environment entries

        Returns:
            Command output with newlines removed

        Raises:
            ContainerRuntimeError: If the command cannot be executed
        """
        env = env or []
        logger.debug(f"Executing {cmd} in {container_name} as {user!r} (env={env})")
        try:
            container = self.client.containers.get(container_name)
            result = container.exec_run(
                cmd,
                user=user,
                environment=env,
                stdout=True,
                stderr=True,
                tty=False,
                detach=False,
            )
        except ENGINE_ERRORS as e:
            logger.warning(f"Could not execute {cmd} in container {container_name}: {e}")
            raise ContainerRuntimeError(
                f"Could not execute command in container {container_name}: {e}"
            ) from e

        raw = result.output or b""
        output = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
        if result.exit_code:
            logger.warning(f"Command {cmd} in {container_name} exited with {result.exit_code}")
        else:
            logger.debug(f"Command {cmd} successfully executed in {container_name}")
        return sanitize_output(output)

    def inspect_container(self, name: str) -> Dict[str, Any]:
        """Return the inspection attributes of a managed container

        Raises:
            ContainerNotFoundError: If no managed container has that name
            ContainerRuntimeError: If the engine call fails
        """
        labels = [self.config.owner_label, f"service.container.name={name}"]
        try:
            containers = self.client.containers.list(all=True, filters={"label": labels})
        except ENGINE_ERRORS as e:
            logger.error(f"Cannot list containers with labels {labels}: {e}")
            raise ContainerRuntimeError(f"Cannot list containers: {e}") from e

        if not containers:
            raise ContainerNotFoundError(f"No container found for service {name}")

        try:
            container = self.client.containers.get(containers[0].id)
        except ENGINE_ERRORS as e:
            raise ContainerRuntimeError(f"Cannot inspect container {name}: {e}") from e
        return container.attrs

    def remove_container(self, name: str) -> None:
        """Force-remove a container and its volumes"""
        try:
            self.client.containers.get(name).remove(force=True, v=True)
        except ENGINE_ERRORS as e:
            logger.warning(f"Service {name} could not be removed: {e}")
            raise ContainerRuntimeError(f"Service {name} could not be removed: {e}") from e
        logger.info(f"Service {name} has been removed")

    def load_image(self, image_path: Path) -> List[Any]:
        """Load a gzip-compressed image tarball into the engine

        Returns:
            Loaded images

        Raises:
            FileNotFoundError: If the tarball does not exist
            ContainerRuntimeError: If the engine rejects the image
        """
        path = Path(image_path).resolve()
        if not path.is_file():
            raise FileNotFoundError(f"Image file not found: {path}")

        try:
            with gzip.open(path, "rb") as f:
                data = f.read()
            images = self.client.images.load(data)
        except (OSError, *ENGINE_ERRORS) as e:
            logger.error(f"Could not load the Docker image {path}: {e}")
            raise ContainerRuntimeError(f"Could not load the Docker image {path}: {e}") from e

        logger.debug(f"Docker image {path} loaded successfully: {images}")
        return images

    def tag_image(self, src: str, target: str, cancel: Optional[threading.Event] = None) -> None:
        """Tag an existing image, retrying while the engine catches up

        Raises:
            ImageTagError: If tagging did not succeed within the policy
        """
        repository, tag = parse_repository_tag(target)

        def _tag() -> bool:
            if not self.client.api.tag(src, repository, tag=tag):
                raise ContainerRuntimeError(f"Engine refused to tag {src} as {target}")
            return True

        outcome = self.executor.run(_tag, self.tag_policy, cancel)
        if isinstance(outcome, CancelledNoAttempt):
            raise ImageTagError(
                f"Could not tag {src} as {target}: cancelled before the first attempt", outcome
            )
        if not outcome.is_success:
            raise ImageTagError(
                f"Could not tag {src} as {target} after {outcome.attempts} attempt(s) "
                f"({outcome.elapsed:.1f}s): {outcome.error}",
                outcome,
            )
        logger.debug(f"Docker image {src} tagged as {target} ({outcome.attempts} attempt(s))")

    def ensure_network(self) -> Any:
        """Create the test network unless it already exists"""
        name = self.network_name
        try:
            existing = self.client.networks.list(names=[name])
            if existing:
                logger.debug(f"Network {name} already exists")
                return existing[0]
            network = self.client.networks.create(name, driver="bridge")
        except ENGINE_ERRORS as e:
            raise ContainerRuntimeError(f"Could not create network {name}: {e}") from e
        logger.info(f"Network {name} has been created")
        return network

    def remove_network(self) -> None:
        """Remove the test network; a missing network is not an error"""
        name = self.network_name
        logger.debug(f"Removing network {name}...")
        try:
            self.client.networks.get(name).remove()
        except NotFound:
            logger.debug(f"Network {name} does not exist")
            return
        except ENGINE_ERRORS as e:
            raise ContainerRuntimeError(f"Could not remove network {name}: {e}") from e
        logger.debug(f"Network {name} has been removed")
