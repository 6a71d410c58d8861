"""Tests for the in-process retry scheduler."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from leadhub.exceptions import ConfigurationError
from leadhub.models import WebhookPayload
from leadhub.webhooks import RetryScheduler


class TestBackoff:
    """Tests for backoff computation."""

    def test_default_delays(self):
        """Delays should be 2s before attempt 2 and 4s before attempt 3."""
        scheduler = RetryScheduler()
        assert scheduler.backoff_seconds(2) == 2.0
        assert scheduler.backoff_seconds(3) == 4.0
        assert scheduler.backoff_seconds(4) == 8.0

    def test_delays_double(self):
        """Each delay should be exactly twice the previous one."""
        scheduler = RetryScheduler(base_delay_seconds=0.5)
        for n in range(2, 8):
            assert scheduler.backoff_seconds(n + 1) == 2 * scheduler.backoff_seconds(n)

    def test_attempt_one_is_not_a_retry(self):
        """Attempt 1 should never be scheduled as a retry."""
        with pytest.raises(ValueError, match="attempt 2"):
            RetryScheduler().backoff_seconds(1)

    def test_next_retry_at(self):
        """next_retry_at should add the backoff to the given time."""
        now = datetime(2024, 1, 1, tzinfo=UTC)
        assert RetryScheduler().next_retry_at(3, now) == now + timedelta(seconds=4)

    def test_negative_base_rejected(self):
        """A negative base delay should be a configuration error."""
        with pytest.raises(ConfigurationError):
            RetryScheduler(base_delay_seconds=-1)


class TestScheduleRetry:
    """Tests for scheduling and running retries."""

    async def test_fires_attempt_after_delay(self, make_webhook):
        """The scheduled attempt should run with the next attempt number."""
        scheduler = RetryScheduler(base_delay_seconds=0.001)
        webhook = make_webhook()
        payload = WebhookPayload(data={"leadId": "L1"})
        attempt_fn = AsyncMock()

        task = scheduler.schedule_retry(webhook, payload, "L1", 2, 3, attempt_fn)
        assert scheduler.pending_count == 1
        await task

        attempt_fn.assert_awaited_once_with(webhook, payload, "L1", 2, 3)
        assert scheduler.pending_count == 0

    async def test_does_not_fire_before_delay(self, make_webhook):
        """Nothing should run while the backoff is pending."""
        scheduler = RetryScheduler(base_delay_seconds=10)
        attempt_fn = AsyncMock()

        scheduler.schedule_retry(make_webhook(), WebhookPayload(), "L1", 2, 3, attempt_fn)
        await asyncio.sleep(0.01)

        attempt_fn.assert_not_awaited()
        assert scheduler.cancel_all() == 1

    async def test_attempt_errors_are_contained(self, make_webhook):
        """An exception from the attempt should be logged, not raised."""
        scheduler = RetryScheduler(base_delay_seconds=0)
        attempt_fn = AsyncMock(side_effect=RuntimeError("boom"))

        task = scheduler.schedule_retry(make_webhook(), WebhookPayload(), "L1", 2, 3, attempt_fn)
        await task

        assert task.exception() is None
        attempt_fn.assert_awaited_once()

    async def test_cancel_all(self, make_webhook):
        """cancel_all should cancel every waiting retry."""
        scheduler = RetryScheduler(base_delay_seconds=10)
        attempt_fn = AsyncMock()
        tasks = [
            scheduler.schedule_retry(make_webhook(), WebhookPayload(), f"L{i}", 2, 3, attempt_fn)
            for i in range(3)
        ]

        cancelled = scheduler.cancel_all()
        await asyncio.gather(*tasks, return_exceptions=True)

        assert cancelled == 3
        assert all(task.cancelled() for task in tasks)
        assert scheduler.pending_count == 0
        attempt_fn.assert_not_awaited()

    async def test_cancel_all_spares_started_attempts(self, make_webhook):
        """A retry whose attempt already started should run to completion."""
        scheduler = RetryScheduler(base_delay_seconds=0)
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_attempt(*args):
            started.set()
            await release.wait()

        task = scheduler.schedule_retry(make_webhook(), WebhookPayload(), "L1", 2, 3, slow_attempt)
        await started.wait()

        assert scheduler.cancel_all() == 0
        release.set()
        await task
        assert not task.cancelled()
