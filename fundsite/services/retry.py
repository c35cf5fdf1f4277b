"""Bounded retry-with-backoff policy shared by every content-source call."""

import logging

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def is_retryable_error(exception: BaseException) -> bool:
    """Return True for transient errors that should be retried.

    Retries on timeouts, connection errors and HTTP 429/5xx.  Permanent
    client errors (400, 401, 403, 404) fail immediately.
    """
    if isinstance(exception, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in _RETRYABLE_STATUS
    return False


def retrying(attempts: int = 3, multiplier: float = 0.5, max_wait: float = 8.0) -> Retrying:
    """Return a :class:`tenacity.Retrying` controller for one external call.

    Usage::

        for attempt in retrying(config.fetch_attempts):
            with attempt:
                response = client.get(url)
    """
    return Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=multiplier, max=max_wait),
        retry=retry_if_exception(is_retryable_error),
        reraise=True,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
