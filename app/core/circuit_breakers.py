"""
Circuit Breakers and Retry Logic
Generic retry policy for CRM calls (search, associations, batch reads)
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryError,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from app.core.exceptions import AuthError, FetchExhausted, TransientFetchError

logger = logging.getLogger(__name__)

# Upper bound for a single backoff sleep
MAX_BACKOFF_SECONDS = 60


# ============================================================================
# CRM RETRY POLICY
# ============================================================================

async def call_with_retry(
    operation: Callable[[], Awaitable[Any]],
    operation_name: str,
    attempts: int,
    delay: float,
    before_retry: Optional[Callable[[], Awaitable[Any]]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    """
    Run a CRM call with exponential backoff retry.

    Retries on:
    - TransientFetchError (any failed search / association / batch read)
    - AuthError (token refresh failed inside the attempt)

    Strategy:
    - At most `attempts` calls of `operation`
    - Backoff: delay, 2*delay, 4*delay, ... (capped at 60s)
    - `before_retry` runs at the start of every attempt after the first,
      so it is awaited at most `attempts - 1` times

    Args:
        operation: Zero-argument coroutine factory performing the call
        operation_name: Human readable name used in logs and errors
        attempts: Maximum number of attempts
        delay: Backoff base in seconds
        before_retry: Optional hook (token expiry check) run before a retry
        sleep: Sleep coroutine used between attempts

    Returns:
        Whatever `operation` returns

    Raises:
        FetchExhausted: If every attempt failed
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception_type((TransientFetchError, AuthError)),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=delay, max=MAX_BACKOFF_SECONDS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
    )

    try:
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1 and before_retry is not None:
                    await before_retry()
                return await operation()
    except RetryError as e:
        last_error = e.last_attempt.exception()
        logger.error(f"❌ {operation_name} failed after {attempts} attempts: {last_error}")
        raise FetchExhausted(operation_name, attempts, last_error) from last_error
