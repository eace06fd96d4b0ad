"""Docker configuration model."""

from typing import Optional

from pydantic import BaseModel, Field


class DockerConfig(BaseModel):
    """Configuration for the container runtime.

    Attributes:
        api_version: Docker Engine API version to pin the client to
        base_url: Engine URL (None = from DOCKER_HOST env or the local socket)
        network_name: Test-private network shared by all services
        owner_label: Label that marks containers managed by the test suite
        timeout: Engine call timeout in seconds
    """

    api_version: str = "1.39"
    base_url: Optional[str] = None
    network_name: str = Field("elastic-dev-network", min_length=1)
    owner_label: str = "service.owner=co.elastic.observability"
    timeout: int = Field(60, gt=0)
