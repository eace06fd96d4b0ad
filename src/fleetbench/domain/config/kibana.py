"""Kibana configuration model."""

from pydantic import BaseModel, Field


class KibanaConfig(BaseModel):
    """Configuration for the Kibana Fleet API.

    Attributes:
        url: Kibana base URL as seen from the test runner
        username: Basic auth user
        password: Basic auth password
        timeout: Request timeout in seconds
        max_attempts: HTTP retry attempts
        initial_delay: First HTTP retry delay in seconds
        backoff_multiplier: Growth factor between HTTP retry delays
        jitter: Relative random spread applied to HTTP retry delays
    """

    url: str = "http://localhost:5601"
    username: str = "elastic"
    password: str = "changeme"
    timeout: float = Field(30.0, gt=0.0)
    max_attempts: int = Field(3, gt=0, le=10)
    initial_delay: float = Field(1.0, ge=0.0)
    backoff_multiplier: float = Field(2.0, ge=1.0)
    jitter: float = Field(0.1, ge=0.0, le=1.0)
