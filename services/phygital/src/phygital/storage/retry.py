"""Retry helper for transient storage failures."""

from __future__ import annotations

import time
from typing import Callable, Optional, Set, TypeVar

import httpx
import urllib3
from minio.error import S3Error
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

from common.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")

# S3 error codes a server sends when the request body arrived too slowly.
S3_TIMEOUT_CODES = frozenset({"RequestTimeout"})


def is_timeout_error(exc: BaseException, _seen: Optional[Set[int]] = None) -> bool:
    """True for timeout-class transport failures, judged by exception type or S3 code.

    urllib3 reports a socket timeout during the request body as
    ``ProtocolError("Connection aborted.", TimeoutError(...))``, so wrapped
    causes are checked with the same rule.
    """

    seen = _seen if _seen is not None else set()
    if id(exc) in seen:
        return False
    seen.add(id(exc))

    if isinstance(exc, (TimeoutError, urllib3.exceptions.TimeoutError, httpx.TimeoutException)):
        return True
    if isinstance(exc, S3Error):
        return exc.code in S3_TIMEOUT_CODES
    if isinstance(exc, urllib3.exceptions.MaxRetryError) and exc.reason is not None:
        return is_timeout_error(exc.reason, seen)
    if isinstance(exc, urllib3.exceptions.ProtocolError):
        causes = [arg for arg in exc.args[1:] if isinstance(arg, BaseException)]
        causes += [cause for cause in (exc.__cause__, exc.__context__) if cause is not None]
        return any(is_timeout_error(cause, seen) for cause in causes)
    return False


def linear_backoff(step: float = 2.0) -> Callable[[int], float]:
    """Delay of ``attempt * step`` seconds after the given failed attempt."""

    return lambda attempt: attempt * step


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    LOGGER.warning(
        "Retrying after transient failure",
        attempt=retry_state.attempt_number,
        delay=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(outcome.exception()) if outcome else None,
    )


def with_retry(
    operation: Callable[[], T],
    *,
    max_attempts: int = 3,
    is_retryable: Callable[[BaseException], bool] = is_timeout_error,
    backoff: Callable[[int], float] = linear_backoff(),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying only failures ``is_retryable`` accepts.

    Non-retryable failures propagate on the first attempt; once
    ``max_attempts`` is spent the last failure is re-raised.
    """

    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        retry=retry_if_exception(is_retryable),
        wait=lambda retry_state: backoff(retry_state.attempt_number),
        sleep=sleep,
        before_sleep=_log_retry,
        reraise=True,
    )
    return retrying(operation)


__all__ = ["S3_TIMEOUT_CODES", "is_timeout_error", "linear_backoff", "with_retry"]
