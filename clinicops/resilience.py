"""
Retry with exponential backoff for store writes and metrics fetches.

Provides:
- RetryConfig: Configuration for retry behavior
- is_retryable: Classify an error as transient
- retry_with_backoff: Exponential backoff with jitter
"""

import logging
import random
import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

from clinicops.config import RetrySettings

T = TypeVar("T")

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})
RETRYABLE_MARKERS = ("rate limit", "timeout", "timed out", "database is locked", "busy")


@dataclass
class RetryConfig:
    """Configuration for retry behavior with exponential backoff."""

    max_retries: int = 3
    base_delay: float = 0.5  # seconds
    max_delay: float = 10.0  # seconds
    exponential_base: float = 2.0

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryConfig":
        return cls(
            max_retries=settings.max_retries,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
        )


def is_retryable(error: Exception) -> bool:
    """
    Decide whether an error is worth another attempt.

    Locked/busy SQLite, HTTP 429 and 5xx, timeouts and rate-limit messages
    are transient. Everything else fails immediately.
    """
    if isinstance(error, sqlite3.OperationalError):
        return True
    if isinstance(error, httpx.TimeoutException):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS
    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


def retry_with_backoff(
    func: Callable[[], T],
    config: RetryConfig,
    logger_: logging.Logger | None = None,
    retryable: Callable[[Exception], bool] = is_retryable,
) -> T:
    """
    Execute a function with exponential backoff and jitter.

    Args:
        func: Callable to execute
        config: RetryConfig with max_retries, base_delay, max_delay, exponential_base
        logger_: Optional logger for retry attempts
        retryable: Predicate; non-retryable errors are raised on first failure

    Returns:
        Result of successful function call

    Raises:
        Last exception if all retries exhausted
    """
    last_error: Exception | None = None

    for attempt in range(config.max_retries + 1):
        try:
            return func()
        except Exception as e:
            if not retryable(e):
                raise
            last_error = e

            if attempt < config.max_retries:
                delay = min(
                    config.base_delay * (config.exponential_base**attempt),
                    config.max_delay,
                )
                # Jitter up to 10% of delay
                jitter = random.uniform(0, delay * 0.1)  # noqa: S311
                actual_delay = delay + jitter

                if logger_:
                    logger_.warning(
                        f"Attempt {attempt + 1} failed: {e}. Retrying in {actual_delay:.1f}s"
                    )
                time.sleep(actual_delay)

    if logger_ and last_error:
        logger_.error(f"All {config.max_retries + 1} attempts failed")

    if last_error is not None:
        raise last_error
    raise RuntimeError("All retries exhausted with no captured exception")
