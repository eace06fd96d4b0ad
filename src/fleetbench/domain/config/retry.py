"""Retry policy configuration model."""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class RetryPolicyConfig(BaseModel):
    """Configuration for exponential backoff with jitter.

    All durations are in seconds.

    Attributes:
        initial_interval: First wait between attempts
        multiplier: Growth factor applied to the interval after each wait
        randomization_factor: Jitter factor; each wait lies in interval * (1 +/- factor)
        max_interval: Cap for the un-jittered interval
        max_elapsed_time: Total wait budget (None or 0 = retry until cancelled)
    """

    initial_interval: float = Field(0.5, gt=0.0)
    multiplier: float = Field(2.0, gt=1.0)
    randomization_factor: float = Field(0.5, ge=0.0, lt=1.0)
    max_interval: float = Field(5.0, gt=0.0)
    max_elapsed_time: Optional[float] = Field(15.0, ge=0.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "RetryPolicyConfig":
        if self.max_interval < self.initial_interval:
            raise ValueError("max_interval must be >= initial_interval")
        if self.max_elapsed_time and self.max_elapsed_time < self.initial_interval:
            raise ValueError("max_elapsed_time must be >= initial_interval (or 0 for unbounded)")
        return self
