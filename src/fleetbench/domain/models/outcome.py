"""Outcome model - the tagged result of a retried operation"""

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Success:
    """Operation succeeded"""

    value: Any
    attempts: int = 1
    elapsed: float = 0.0

    @property
    def is_success(self) -> bool:
        return True

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Retrying stopped early: cancelled, or the operation reported a permanent error"""

    error: Optional[BaseException]
    attempts: int
    elapsed: float
    cancelled: bool = False

    @property
    def is_success(self) -> bool:
        return False

    def unwrap(self) -> Any:
        if self.error is None:
            raise RuntimeError("Operation was cancelled")
        raise self.error


@dataclass(frozen=True)
class Exhausted:
    """Retry budget consumed without success"""

    last_error: BaseException
    attempts: int
    elapsed: float

    @property
    def is_success(self) -> bool:
        return False

    @property
    def error(self) -> BaseException:
        return self.last_error

    def unwrap(self) -> Any:
        raise self.last_error


@dataclass(frozen=True)
class CancelledNoAttempt:
    """Cancelled before the first attempt ran"""

    attempts: int = 0
    elapsed: float = 0.0

    @property
    def is_success(self) -> bool:
        return False

    @property
    def error(self) -> None:
        return None

    def unwrap(self) -> Any:
        raise RuntimeError("Operation was cancelled before the first attempt")


Outcome = Union[Success, Failure, Exhausted, CancelledNoAttempt]
