"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from leadhub.models import DeliveryLog, Lead, LeadEvent, WebhookConfig


class InMemoryStore:
    """In-memory WebhookStore and DeliveryLogStore for webhook subsystem tests.

    Counter updates are serialized per webhook, like the Qdrant store.
    """

    def __init__(self, webhooks: list[WebhookConfig] | None = None) -> None:
        self.webhooks: dict[str, WebhookConfig] = {w.id: w for w in webhooks or []}
        self.logs: list[DeliveryLog] = []
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, webhook_id: str) -> asyncio.Lock:
        return self._locks.setdefault(webhook_id, asyncio.Lock())

    async def store_webhook(self, webhook: WebhookConfig) -> str:
        self.webhooks[webhook.id] = webhook
        return webhook.id

    async def get_webhook(self, webhook_id: str) -> WebhookConfig | None:
        return self.webhooks.get(webhook_id)

    async def list_webhooks(self, active_only: bool = False) -> list[WebhookConfig]:
        return [w for w in self.webhooks.values() if w.is_active or not active_only]

    async def list_active_webhooks(self) -> list[WebhookConfig]:
        return await self.list_webhooks(active_only=True)

    async def update_webhook(self, webhook_id: str, **updates: Any) -> WebhookConfig | None:
        async with self._lock(webhook_id):
            webhook = self.webhooks.get(webhook_id)
            if webhook is None:
                return None
            self.webhooks[webhook_id] = webhook.model_copy(update=updates)
            return self.webhooks[webhook_id]

    async def delete_webhook(self, webhook_id: str) -> bool:
        return self.webhooks.pop(webhook_id, None) is not None

    async def increment_success(
        self, webhook_id: str, at: datetime | None = None
    ) -> WebhookConfig | None:
        async with self._lock(webhook_id):
            webhook = self.webhooks.get(webhook_id)
            if webhook is None:
                return None
            # Yield while holding the lock to surface lost updates
            await asyncio.sleep(0)
            self.webhooks[webhook_id] = webhook.model_copy(
                update={
                    "success_count": webhook.success_count + 1,
                    "last_triggered_at": at or datetime.now(UTC),
                }
            )
            return self.webhooks[webhook_id]

    async def increment_failure(self, webhook_id: str) -> WebhookConfig | None:
        async with self._lock(webhook_id):
            webhook = self.webhooks.get(webhook_id)
            if webhook is None:
                return None
            await asyncio.sleep(0)
            self.webhooks[webhook_id] = webhook.model_copy(
                update={"failure_count": webhook.failure_count + 1}
            )
            return self.webhooks[webhook_id]

    async def reset_counters(self, webhook_id: str) -> WebhookConfig | None:
        return await self.update_webhook(webhook_id, success_count=0, failure_count=0)

    async def append_log(self, log: DeliveryLog) -> str:
        self.logs.append(log)
        return log.id

    async def list_recent_logs(self, limit: int = 100) -> list[DeliveryLog]:
        return list(reversed(self.logs))[:limit]

    async def list_logs_for(
        self,
        webhook_id: str | None = None,
        lead_id: str | None = None,
    ) -> list[DeliveryLog]:
        return [
            log
            for log in self.logs
            if (webhook_id is None or log.webhook_id == webhook_id)
            and (lead_id is None or log.lead_id == lead_id)
        ]

    def chain(self, webhook_id: str, lead_id: str) -> list[DeliveryLog]:
        """Rows of one delivery chain, in attempt order."""
        rows = [
            log for log in self.logs if log.webhook_id == webhook_id and log.lead_id == lead_id
        ]
        return sorted(rows, key=lambda log: log.attempt)


def make_response(status_code: int = 200, text: str = "OK") -> MagicMock:
    """Build a fake httpx.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


@contextmanager
def mock_http(*outcomes: Any, by_url: dict[str, Any] | None = None) -> Iterator[AsyncMock]:
    """Patch httpx.AsyncClient so POSTs return or raise the given outcomes.

    Args:
        *outcomes: Responses or exceptions returned by successive POSTs.
            The last outcome repeats once the list is exhausted.
        by_url: Per-URL outcome overriding the sequence.

    Yields:
        The mocked client; ``client.post.call_args_list`` records every call.
    """
    sequence = list(outcomes) or [make_response()]
    calls = {"n": 0}

    async def post(url: str, **kwargs: Any) -> Any:
        if by_url is not None and url in by_url:
            outcome = by_url[url]
        else:
            outcome = sequence[min(calls["n"], len(sequence) - 1)]
            calls["n"] += 1
        if isinstance(outcome, BaseException):
            raise outcome
        if inspect.iscoroutinefunction(outcome):
            return await outcome(url, **kwargs)
        return outcome

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = AsyncMock()
        mock_client.post = AsyncMock(side_effect=post)
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=None)
        mock_client_class.return_value = mock_client
        yield mock_client


@pytest.fixture
def sample_lead() -> Lead:
    """Create a sample lead."""
    return Lead(
        id="lead_abc123",
        phone="+55 11 99999-9999",
        source="landing-page-produtos",
        name="Ana Souza",
        email="ana@example.com",
        company="Tech Solutions",
        message="Quero saber mais",
        tags=["premium"],
        extra={"utm_source": "google"},
    )


@pytest.fixture
def sample_event(sample_lead: Lead) -> LeadEvent:
    """Create the lead.created event for the sample lead."""
    return sample_lead.to_event()


@pytest.fixture
def make_webhook():
    """Factory for webhook configurations."""

    def _make(**overrides: Any) -> WebhookConfig:
        data: dict[str, Any] = {
            "name": "CRM",
            "url": "https://crm.example.com/hook",
        }
        data.update(overrides)
        return WebhookConfig(**data)

    return _make


@pytest.fixture
def store() -> InMemoryStore:
    """Create an empty in-memory store."""
    return InMemoryStore()
