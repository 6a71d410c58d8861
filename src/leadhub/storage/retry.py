"""Retry policy for Qdrant operations.

Connection failures, timeouts and 5xx responses are retried with
exponential backoff. When the attempts run out the last error is wrapped
in StorageError; any other error propagates unchanged on the first try.
"""

from __future__ import annotations

import logging
from typing import Any, NoReturn

import httpx
from qdrant_client.http.exceptions import UnexpectedResponse
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from leadhub.exceptions import StorageError

logger = logging.getLogger(__name__)

STORAGE_RETRY_ATTEMPTS = 3


def is_transient(exc: BaseException) -> bool:
    """Whether a Qdrant error is worth retrying."""
    if isinstance(exc, UnexpectedResponse):
        return exc.status_code is not None and exc.status_code >= 500
    return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException))


def _fn_name(retry_state: RetryCallState) -> str:
    return retry_state.fn.__name__ if retry_state.fn else "unknown"


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying Qdrant operation %s after attempt %d: %s",
        _fn_name(retry_state),
        retry_state.attempt_number,
        exc,
    )


def _give_up(retry_state: RetryCallState) -> NoReturn:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    raise StorageError(
        f"Qdrant operation {_fn_name(retry_state)} failed after "
        f"{retry_state.attempt_number} attempts: {exc}"
    ) from exc


def storage_retry(
    attempts: int = STORAGE_RETRY_ATTEMPTS,
    wait: wait_base | None = None,
) -> Any:
    """Build a tenacity decorator for transient Qdrant errors.

    Args:
        attempts: Total tries, including the first.
        wait: Wait strategy between tries. Defaults to exponential
            backoff from 0.5s, capped at 5s.
    """
    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait if wait is not None else wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception(is_transient),
        before_sleep=_log_retry,
        retry_error_callback=_give_up,
    )


qdrant_retry = storage_retry()
