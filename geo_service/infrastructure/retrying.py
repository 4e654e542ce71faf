"""
Retry policy for network operations.

Refresh failures are normally retried on the next scheduled tick, so the
default is a single attempt; `geoip.retry_attempts` allows a few immediate
attempts for flaky links.
"""

import logging

import httpx
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

logger = logging.getLogger(__name__)

# --- Constants for Retry Logic ---
_RETRY_MIN_WAIT_SECONDS = 1
_RETRY_MAX_WAIT_SECONDS = 10

_RETRYABLE_ERRORS = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.HTTPStatusError,
)


def _log_before_retry(retry_state):
    """Log the retry attempt with details about the exception and wait time."""
    exception = retry_state.outcome.exception()
    next_attempt_in = retry_state.next_action.sleep
    logger.warning(
        f"Retrying download in {next_attempt_in:.2f}s due to "
        f"{type(exception).__name__} (attempt {retry_state.attempt_number})..."
    )


def network_retrying(attempts: int) -> AsyncRetrying:
    """
    Build an async retry controller for network operations.

    The last exception is re-raised unchanged once attempts are exhausted.

    Usage:
        async for attempt in network_retrying(3):
            with attempt:
                await do_request()
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, int(attempts))),
        wait=wait_exponential(
            multiplier=1,
            min=_RETRY_MIN_WAIT_SECONDS,
            max=_RETRY_MAX_WAIT_SECONDS,
        ),
        retry=retry_if_exception_type(_RETRYABLE_ERRORS),
        before_sleep=_log_before_retry,
        reraise=True,
    )
