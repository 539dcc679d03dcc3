"""Convergence polling for asynchronously reconciled cluster state.

The controller under test reconciles resources in the background, so every
observation of derived state has to be polled. This module provides the one
polling loop the harness uses.

Functions:
    wait_until: Poll a condition until it holds, fails fatally, or times out
    is_fatal_error: Default classifier for errors raised by a condition

A condition is a zero-argument callable. Returning True means done. Returning
False means not yet. Raising means the condition could not be evaluated.
Raised errors are transient (keep polling) unless the classifier flags them
fatal, in which case they propagate at once. When the budget runs out,
PollingTimeoutError carries the last transient error for diagnostics.

Example:
    from runtime_e2e.config import PollConfig
    from runtime_e2e.fixtures.polling import wait_until

    wait_until(
        lambda: client.get_deployment("example").is_ready(1),
        PollConfig(retry_interval=5.0, timeout=240.0, description="deployment ready"),
    )
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from runtime_e2e.errors import PollingTimeoutError

if TYPE_CHECKING:
    from runtime_e2e.config import PollConfig

logger = structlog.get_logger(__name__)


def is_fatal_error(error: Exception) -> bool:
    """Return True if an error raised by a condition must stop polling.

    Harness errors declare this through their ``fatal`` class attribute.
    Anything else (including NotFoundError and NotConvergedError) is
    treated as transient.
    """
    return bool(getattr(error, "fatal", False))


def wait_until(
    condition: Callable[[], bool],
    config: PollConfig,
    *,
    is_fatal: Callable[[Exception], bool] = is_fatal_error,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll until condition is True, a fatal error occurs, or timeout.

    The condition is evaluated immediately, then every
    ``config.retry_interval`` seconds. At least one evaluation always takes
    place, even when the budget is already spent by the time it returns.
    Sleeps are clamped to the remaining budget, so the call never blocks
    longer than the timeout plus one evaluation.

    Args:
        condition: Callable returning True when the awaited state is reached.
        config: Interval, timeout and description for this wait.
        is_fatal: Classifier deciding whether an error raised by the
            condition aborts polling. Defaults to is_fatal_error.
        clock: Monotonic clock in seconds. Injectable for tests.
        sleep: Sleep function. Injectable for tests.

    Raises:
        PollingTimeoutError: If the condition never returned True within
            ``config.timeout``. ``last_error`` holds the last transient error.
        Exception: Any error raised by the condition that is_fatal flags.

    Example:
        >>> wait_until(lambda: True, PollConfig(retry_interval=0.1, timeout=1.0))
    """
    start_time = clock()
    last_error: Exception | None = None
    attempts = 0

    while True:
        attempts += 1
        try:
            if condition():
                logger.debug(
                    "condition_met",
                    description=config.description,
                    attempts=attempts,
                    elapsed=round(clock() - start_time, 3),
                )
                return
        except Exception as e:
            if is_fatal(e):
                logger.debug(
                    "condition_failed",
                    description=config.description,
                    attempts=attempts,
                    error=str(e),
                )
                raise
            last_error = e
            logger.debug(
                "condition_error",
                description=config.description,
                attempts=attempts,
                error=str(e),
            )

        elapsed = clock() - start_time
        if elapsed >= config.timeout:
            logger.warning(
                "condition_timeout",
                description=config.description,
                attempts=attempts,
                timeout=config.timeout,
                last_error=str(last_error) if last_error else None,
            )
            raise PollingTimeoutError(
                config.description,
                config.timeout,
                last_error,
                attempts=attempts,
            )

        # Sleep for interval, but don't exceed remaining time
        remaining = config.timeout - elapsed
        sleep_time = min(config.retry_interval, remaining)
        if sleep_time > 0:
            sleep(sleep_time)


__all__ = [
    "is_fatal_error",
    "wait_until",
]
