"""Single webhook delivery attempt.

One attempt is one HTTP POST of a WebhookPayload to one webhook. Every
attempt updates the webhook's counters and appends exactly one
DeliveryLog row; a failed attempt below the ceiling hands the chain to
the RetryScheduler.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import httpx

from leadhub.config import DEFAULT_USER_AGENT
from leadhub.exceptions import DeliveryError
from leadhub.models import DeliveryLog

if TYPE_CHECKING:
    from leadhub.models import WebhookConfig, WebhookPayload

    from .accounting import DeliveryAccounting
    from .retry import RetryScheduler

logger = logging.getLogger(__name__)


class DeliveryAttempt:
    """Performs delivery attempts and records their outcome.

    Outcome rules:
    - 2xx response: success, response body excerpt kept.
    - Any other status, timeout or transport error: failure. The chain
      retries while attempt < max_attempts and is marked failed otherwise.
    - Any other exception: logged and recorded as a terminal failure.

    The log row for an attempt is appended before its retry is scheduled,
    so attempt k+1 never starts before row k exists.
    """

    def __init__(
        self,
        accounting: DeliveryAccounting,
        scheduler: RetryScheduler,
        timeout_seconds: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        excerpt_chars: int = 500,
        max_concurrent: int = 50,
    ) -> None:
        """Initialize the attempt runner.

        Args:
            accounting: Counter and log sink.
            scheduler: Scheduler for follow-up attempts.
            timeout_seconds: Total HTTP timeout per attempt.
            user_agent: User-Agent header sent with every POST.
            excerpt_chars: Maximum response characters kept in logs.
            max_concurrent: Maximum POSTs in flight across all chains.
        """
        self._accounting = accounting
        self._scheduler = scheduler
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._excerpt_chars = excerpt_chars
        # Bounds in-flight requests only; backoff sleeps do not hold a slot
        self._semaphore = asyncio.Semaphore(max_concurrent)

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def headers(self) -> dict[str, str]:
        """Headers sent with every delivery."""
        return {
            "Content-Type": "application/json",
            "User-Agent": self._user_agent,
        }

    async def attempt(
        self,
        webhook: WebhookConfig,
        payload: WebhookPayload,
        lead_id: str,
        attempt_number: int,
        max_attempts: int,
    ) -> DeliveryLog:
        """POST the payload once and record the outcome.

        Args:
            webhook: Destination snapshot taken when the chain started.
            payload: Payload to send; identical across the whole chain.
            lead_id: ID of the lead being delivered.
            attempt_number: 1-based attempt number.
            max_attempts: Attempt ceiling for the chain.

        Returns:
            The DeliveryLog row written for this attempt.
        """
        url = webhook.url
        body = payload.to_json()

        try:
            response = await self._post(url, body)
        except httpx.TimeoutException:
            error, http_status = f"Request timeout after {self._timeout:g}s", None
        except httpx.HTTPError as e:
            error, http_status = str(e) or type(e).__name__, None
        except DeliveryError as e:
            error, http_status = e.message, e.http_status
        except Exception as e:
            logger.exception("Webhook delivery error: %s", e)
            return await self._failed(
                webhook,
                payload,
                lead_id,
                attempt_number,
                max_attempts,
                error=f"Unexpected error: {e}",
                retryable=False,
            )
        else:
            return await self._succeeded(
                webhook, lead_id, attempt_number, max_attempts, response.status_code, response.text
            )

        return await self._failed(
            webhook,
            payload,
            lead_id,
            attempt_number,
            max_attempts,
            error=error,
            http_status=http_status,
        )

    async def _post(self, url: str, body: str) -> httpx.Response:
        """Send one POST; raise DeliveryError on a non-2xx response."""
        async with self._semaphore:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, content=body, headers=self.headers())

        if not 200 <= response.status_code < 300:
            text = response.text or ""
            raise DeliveryError(
                f"HTTP {response.status_code}: {text[: self._excerpt_chars]}",
                http_status=response.status_code,
            )
        return response

    async def _succeeded(
        self,
        webhook: WebhookConfig,
        lead_id: str,
        attempt_number: int,
        max_attempts: int,
        status_code: int,
        text: str | None,
    ) -> DeliveryLog:
        await self._count(self._accounting.record_success, webhook.id)

        log = DeliveryLog(
            webhook_id=webhook.id,
            lead_id=lead_id,
            url=webhook.url,
            status="success",
            http_status=status_code,
            response_excerpt=(text or "")[: self._excerpt_chars],
            attempt=attempt_number,
            max_attempts=max_attempts,
        )
        await self._accounting.append_log(log)

        logger.info(
            "Webhook %s delivered lead %s (status %d, attempt %d/%d)",
            webhook.id,
            lead_id,
            status_code,
            attempt_number,
            max_attempts,
        )
        return log

    async def _failed(
        self,
        webhook: WebhookConfig,
        payload: WebhookPayload,
        lead_id: str,
        attempt_number: int,
        max_attempts: int,
        error: str,
        http_status: int | None = None,
        retryable: bool = True,
    ) -> DeliveryLog:
        await self._count(self._accounting.record_failure, webhook.id)

        will_retry = retryable and attempt_number < max_attempts
        next_attempt = attempt_number + 1

        log = DeliveryLog(
            webhook_id=webhook.id,
            lead_id=lead_id,
            url=webhook.url,
            status="retrying" if will_retry else "failed",
            http_status=http_status,
            error_message=error,
            attempt=attempt_number,
            max_attempts=max_attempts,
            next_retry_at=self._scheduler.next_retry_at(next_attempt) if will_retry else None,
        )
        await self._accounting.append_log(log)

        if will_retry:
            self._scheduler.schedule_retry(
                webhook, payload, lead_id, next_attempt, max_attempts, self.attempt
            )
        else:
            logger.warning(
                "Webhook %s gave up on lead %s after %d attempts: %s",
                webhook.id,
                lead_id,
                attempt_number,
                error,
            )
        return log

    async def _count(self, record: Callable[[str], Awaitable[None]], webhook_id: str) -> None:
        # A counter write failure must not cost the attempt its log row
        try:
            await record(webhook_id)
        except Exception as e:
            logger.error("Failed to update counters for webhook %s: %s", webhook_id, e)


__all__ = ["DeliveryAttempt"]
