"""Shared HTTP client utilities (requests + retry/backoff).

We keep HTTP logic centralized so every caller retries the same way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests
from tenacity import (
    before_sleep_log,
    retry as tenacity_retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from fleetbench.infrastructure.retry import _should_retry_http_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpRetryConfig:
    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.1  # +/-10% by default


def http_retry_config_from_dict(config: Dict[str, Any]) -> HttpRetryConfig:
    """Parse HTTP retry config from dict, clamping invalid values to defaults."""
    try:
        max_attempts = int(config.get("max_attempts", 3))
    except (TypeError, ValueError):
        max_attempts = 3

    try:
        initial_delay = float(config.get("initial_delay", 1.0))
    except (TypeError, ValueError):
        initial_delay = 1.0

    try:
        backoff_multiplier = float(config.get("backoff_multiplier", 2.0))
    except (TypeError, ValueError):
        backoff_multiplier = 2.0

    try:
        jitter = float(config.get("jitter", 0.1))
    except (TypeError, ValueError):
        jitter = 0.1

    return HttpRetryConfig(
        max_attempts=max(max_attempts, 1),
        initial_delay=max(initial_delay, 0.0),
        backoff_multiplier=max(backoff_multiplier, 1.0),
        jitter=max(jitter, 0.0),
    )


def get_json_with_retries(
    url: str,
    *,
    headers: Dict[str, str],
    timeout: float,
    retry: HttpRetryConfig,
    auth: Optional[Tuple[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
) -> Any:
    """GET a JSON document with retry on network errors, 429 and 5xx."""

    def _retry_condition(exception: BaseException) -> bool:
        if isinstance(exception, requests.exceptions.HTTPError):
            return _should_retry_http_error(exception)
        # Retry network errors
        return isinstance(exception, requests.exceptions.RequestException)

    wait = wait_exponential(
        multiplier=retry.initial_delay,
        exp_base=retry.backoff_multiplier,
        min=retry.initial_delay,
        max=60.0,
    )
    if retry.jitter > 0:
        jitter_amount = retry.initial_delay * retry.jitter
        wait = wait + wait_random(-jitter_amount, jitter_amount)

    @tenacity_retry(
        stop=stop_after_attempt(retry.max_attempts),
        wait=wait,
        retry=retry_if_exception(_retry_condition),
        reraise=True,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    def _request_with_retry() -> requests.Response:
        logger.debug(f"HTTP GET {url}")
        resp = requests.get(url, headers=headers, auth=auth, params=params, timeout=timeout)
        resp.raise_for_status()
        return resp

    try:
        return _request_with_retry().json()
    except requests.exceptions.HTTPError:
        raise
    except Exception as e:
        raise RuntimeError(f"HTTP request failed: {e}") from e
