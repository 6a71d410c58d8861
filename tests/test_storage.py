"""Unit tests for the LeadHub storage layer.

These tests use qdrant-client's local in-memory mode for fast, isolated testing.
No external Qdrant server is required.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx
import pydantic
import pytest
from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from tenacity import wait_none

from leadhub.exceptions import StorageError
from leadhub.models import DeliveryLog, Lead, WebhookField
from leadhub.storage import LeadHubStorage
from leadhub.storage.retry import is_transient, storage_retry

BASE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def make_lead(minutes: int = 0, **overrides) -> Lead:
    """Create a lead whose created_at is offset from BASE_TIME."""
    data = {
        "phone": "+55 11 90000-0000",
        "source": "landing-page",
        "created_at": BASE_TIME + timedelta(minutes=minutes),
    }
    data.update(overrides)
    return Lead(**data)


def make_log(
    webhook_id: str, lead_id: str, attempt: int, status: str, seconds: int
) -> DeliveryLog:
    """Create a delivery log row at BASE_TIME + seconds."""
    return DeliveryLog(
        webhook_id=webhook_id,
        lead_id=lead_id,
        url="https://crm.example.com/hook",
        status=status,
        attempt=attempt,
        max_attempts=3,
        created_at=BASE_TIME + timedelta(seconds=seconds),
    )


@pytest.fixture
async def storage():
    """Create an in-memory storage instance for testing.

    Uses qdrant-client's local mode with in-memory storage.
    """
    store = LeadHubStorage(prefix="test")
    # Override with in-memory client
    store._client = AsyncQdrantClient(location=":memory:")
    await store._ensure_collections()
    store._collections_initialized = True

    yield store

    await store.close()


class TestLeadHubStorageInit:
    """Tests for storage initialization."""

    async def test_initialize_creates_collections(self, storage: LeadHubStorage):
        """Collections should exist for leads, webhooks and logs."""
        collections = await storage.client.get_collections()
        names = {c.name for c in collections.collections}

        assert names == {"test_leads", "test_webhooks", "test_webhook_logs"}

    async def test_ensure_collections_is_idempotent(self, storage: LeadHubStorage):
        """Running collection setup twice should not fail."""
        await storage._ensure_collections()

        collections = await storage.client.get_collections()
        assert len(collections.collections) == 3

    def test_collection_name(self, storage: LeadHubStorage):
        """_collection_name should apply the prefix."""
        assert storage._collection_name("leads") == "test_leads"
        assert storage._collection_name("webhook_logs") == "test_webhook_logs"

    def test_point_id_is_deterministic_uuid(self):
        """Record IDs should map to stable UUID-format point IDs."""
        point_id = LeadHubStorage._key_to_point_id("lead_abc")

        assert point_id == LeadHubStorage._key_to_point_id("lead_abc")
        assert point_id != LeadHubStorage._key_to_point_id("lead_abd")
        assert [len(part) for part in point_id.split("-")] == [8, 4, 4, 4, 12]

    def test_client_before_initialize_raises(self):
        """Accessing the client before initialize() should raise."""
        store = LeadHubStorage(prefix="test")

        assert not store.is_initialized
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = store.client

    async def test_close_resets_state(self):
        """close() should drop the client."""
        store = LeadHubStorage(prefix="test")
        store._client = AsyncQdrantClient(location=":memory:")
        await store._ensure_collections()
        store._collections_initialized = True

        await store.close()

        assert not store.is_initialized


class TestLeadStorage:
    """Tests for lead operations."""

    async def test_create_and_get(self, storage: LeadHubStorage, sample_lead: Lead):
        """A stored lead should round-trip through get_lead."""
        await storage.create_lead(sample_lead)

        retrieved = await storage.get_lead(sample_lead.id)

        assert retrieved == sample_lead

    async def test_get_missing(self, storage: LeadHubStorage):
        """Unknown IDs should return None."""
        assert await storage.get_lead("lead_missing") is None

    async def test_update(self, storage: LeadHubStorage):
        """update_lead should change fields and bump updated_at."""
        lead = make_lead(updated_at=BASE_TIME)
        await storage.create_lead(lead)

        updated = await storage.update_lead(lead.id, status="contacted", priority="high")

        assert updated is not None
        assert updated.status == "contacted"
        assert updated.priority == "high"
        assert updated.created_at == lead.created_at
        assert updated.updated_at > BASE_TIME
        assert await storage.get_lead(lead.id) == updated

    async def test_update_cannot_change_id(self, storage: LeadHubStorage, sample_lead: Lead):
        """The ID should survive an update that tries to change it."""
        await storage.create_lead(sample_lead)

        updated = await storage.update_lead(sample_lead.id, id="lead_other")

        assert updated is not None
        assert updated.id == sample_lead.id

    async def test_update_unknown_field_raises(self, storage: LeadHubStorage, sample_lead: Lead):
        """Fields outside the model should be rejected."""
        await storage.create_lead(sample_lead)

        with pytest.raises(pydantic.ValidationError):
            await storage.update_lead(sample_lead.id, favourite_color="blue")

    async def test_update_missing(self, storage: LeadHubStorage):
        """Updating an unknown lead should return None."""
        assert await storage.update_lead("lead_missing", status="lost") is None

    async def test_delete(self, storage: LeadHubStorage, sample_lead: Lead):
        """delete_lead should remove the lead once."""
        await storage.create_lead(sample_lead)

        assert await storage.delete_lead(sample_lead.id) is True
        assert await storage.get_lead(sample_lead.id) is None
        assert await storage.delete_lead(sample_lead.id) is False

    async def test_list_newest_first(self, storage: LeadHubStorage):
        """Leads should be listed newest first."""
        leads = [make_lead(minutes=i, name=f"Lead {i}") for i in range(3)]
        for lead in leads:
            await storage.create_lead(lead)

        listed, total = await storage.list_leads()

        assert total == 3
        assert [lead.name for lead in listed] == ["Lead 2", "Lead 1", "Lead 0"]

    async def test_list_filters(self, storage: LeadHubStorage):
        """Exact filters should combine."""
        await storage.create_lead(make_lead(0, status="new", source="a"))
        await storage.create_lead(make_lead(1, status="converted", source="a"))
        await storage.create_lead(make_lead(2, status="converted", source="b", priority="high"))

        converted, total = await storage.list_leads(status="converted")
        assert total == 2
        assert {lead.status for lead in converted} == {"converted"}

        _, total = await storage.list_leads(status="converted", source="a")
        assert total == 1

        high, total = await storage.list_leads(priority="high")
        assert total == 1
        assert high[0].source == "b"

    async def test_list_search(self, storage: LeadHubStorage):
        """search should match name, phone, email, company and message."""
        await storage.create_lead(make_lead(0, name="Ana Souza"))
        await storage.create_lead(make_lead(1, company="Acme ANA Ltda"))
        await storage.create_lead(make_lead(2, email="bruno@example.com"))
        await storage.create_lead(make_lead(3, phone="+1 555 0100"))

        _, total = await storage.list_leads(search="ana")
        assert total == 2

        found, total = await storage.list_leads(search="555")
        assert total == 1
        assert found[0].phone == "+1 555 0100"

    async def test_list_pagination(self, storage: LeadHubStorage):
        """Pages should slice the ordered result and report the full total."""
        for i in range(5):
            await storage.create_lead(make_lead(i, name=f"Lead {i}"))

        page1, total = await storage.list_leads(page=1, limit=2)
        page3, _ = await storage.list_leads(page=3, limit=2)
        page4, _ = await storage.list_leads(page=4, limit=2)

        assert total == 5
        assert [lead.name for lead in page1] == ["Lead 4", "Lead 3"]
        assert [lead.name for lead in page3] == ["Lead 0"]
        assert page4 == []

    async def test_all_leads(self, storage: LeadHubStorage):
        """all_leads should return every lead newest first."""
        await storage.create_lead(make_lead(0, name="old"))
        await storage.create_lead(make_lead(5, name="new"))

        leads = await storage.all_leads()

        assert [lead.name for lead in leads] == ["new", "old"]


class TestWebhookStorage:
    """Tests for webhook operations."""

    async def test_store_and_get(self, storage: LeadHubStorage, make_webhook):
        """A stored webhook should round-trip through get_webhook."""
        webhook = make_webhook(
            send_fields=["phone", "email"],
            custom_fields=[WebhookField(name="campaign", default_value="spring")],
        )

        webhook_id = await storage.store_webhook(webhook)
        retrieved = await storage.get_webhook(webhook_id)

        assert retrieved == webhook

    async def test_get_missing(self, storage: LeadHubStorage):
        """Unknown IDs should return None."""
        assert await storage.get_webhook("whk_missing") is None

    async def test_list_active_excludes_inactive(self, storage: LeadHubStorage, make_webhook):
        """list_active_webhooks should skip inactive webhooks."""
        active = make_webhook(name="active")
        inactive = make_webhook(name="inactive", is_active=False)
        await storage.store_webhook(active)
        await storage.store_webhook(inactive)

        all_webhooks = await storage.list_webhooks()
        active_webhooks = await storage.list_active_webhooks()

        assert {w.id for w in all_webhooks} == {active.id, inactive.id}
        assert [w.id for w in active_webhooks] == [active.id]

    async def test_update(self, storage: LeadHubStorage, make_webhook):
        """update_webhook should change configuration and keep counters."""
        webhook = make_webhook(success_count=3, updated_at=BASE_TIME)
        await storage.store_webhook(webhook)

        updated = await storage.update_webhook(
            webhook.id, url="https://new.example.com/hook", is_active=False
        )

        assert updated is not None
        assert str(updated.url) == "https://new.example.com/hook"
        assert updated.is_active is False
        assert updated.success_count == 3
        assert updated.updated_at > BASE_TIME

    async def test_update_invalid_url_raises(self, storage: LeadHubStorage, make_webhook):
        """An invalid URL should be rejected and leave the record unchanged."""
        webhook = make_webhook()
        await storage.store_webhook(webhook)

        with pytest.raises(pydantic.ValidationError):
            await storage.update_webhook(webhook.id, url="not a url")

        assert await storage.get_webhook(webhook.id) == webhook

    async def test_update_counters_rejected(self, storage: LeadHubStorage, make_webhook):
        """Counters should not be writable through update_webhook."""
        webhook = make_webhook()
        await storage.store_webhook(webhook)

        with pytest.raises(ValueError, match="success_count"):
            await storage.update_webhook(webhook.id, success_count=100)

    async def test_update_missing(self, storage: LeadHubStorage):
        """Updating an unknown webhook should return None."""
        assert await storage.update_webhook("whk_missing", name="x") is None

    async def test_delete(self, storage: LeadHubStorage, make_webhook):
        """delete_webhook should remove the webhook once."""
        webhook = make_webhook()
        await storage.store_webhook(webhook)

        assert await storage.delete_webhook(webhook.id) is True
        assert await storage.get_webhook(webhook.id) is None
        assert await storage.delete_webhook(webhook.id) is False

    async def test_increment_success(self, storage: LeadHubStorage, make_webhook):
        """increment_success should bump the counter and stamp the time."""
        webhook = make_webhook()
        await storage.store_webhook(webhook)

        updated = await storage.increment_success(webhook.id, at=BASE_TIME)

        assert updated is not None
        assert updated.success_count == 1
        assert updated.last_triggered_at == BASE_TIME

    async def test_increment_failure(self, storage: LeadHubStorage, make_webhook):
        """increment_failure should leave last_triggered_at alone."""
        webhook = make_webhook()
        await storage.store_webhook(webhook)

        updated = await storage.increment_failure(webhook.id)

        assert updated is not None
        assert updated.failure_count == 1
        assert updated.last_triggered_at is None

    async def test_increment_missing(self, storage: LeadHubStorage):
        """Counting against a missing webhook should return None."""
        assert await storage.increment_success("whk_missing") is None
        assert await storage.increment_failure("whk_missing") is None

    async def test_counting_deleted_webhook_leaves_no_lock(
        self, storage: LeadHubStorage, make_webhook
    ):
        """Late counter updates for a deleted webhook should not re-create its lock."""
        webhook = make_webhook()
        await storage.store_webhook(webhook)
        await storage.increment_success(webhook.id)
        await storage.delete_webhook(webhook.id)

        assert await storage.increment_failure(webhook.id) is None
        assert await storage.increment_success(webhook.id) is None
        assert await storage.update_webhook(webhook.id, name="gone") is None
        assert webhook.id not in storage._webhook_locks

    async def test_concurrent_increments_not_lost(self, storage: LeadHubStorage, make_webhook):
        """Concurrent increments should all land."""
        webhook = make_webhook()
        await storage.store_webhook(webhook)

        await asyncio.gather(
            *(storage.increment_success(webhook.id) for _ in range(10)),
            *(storage.increment_failure(webhook.id) for _ in range(10)),
        )

        stored = await storage.get_webhook(webhook.id)
        assert stored is not None
        assert stored.success_count == 10
        assert stored.failure_count == 10

    async def test_reset_counters(self, storage: LeadHubStorage, make_webhook):
        """reset_counters should zero both counters."""
        webhook = make_webhook(success_count=4, failure_count=2, last_triggered_at=BASE_TIME)
        await storage.store_webhook(webhook)

        updated = await storage.reset_counters(webhook.id)

        assert updated is not None
        assert updated.success_count == 0
        assert updated.failure_count == 0
        assert updated.last_triggered_at == BASE_TIME


class TestDeliveryLogStorage:
    """Tests for delivery log operations."""

    async def test_append_and_list_recent(self, storage: LeadHubStorage):
        """Recent logs should come back newest first, limited."""
        for i in range(4):
            await storage.append_log(make_log("whk_1", f"lead_{i}", 1, "success", seconds=i))

        recent = await storage.list_recent_logs(limit=3)

        assert [log.lead_id for log in recent] == ["lead_3", "lead_2", "lead_1"]

    async def test_list_logs_for_chain(self, storage: LeadHubStorage):
        """A chain should be returned in attempt order."""
        await storage.append_log(make_log("whk_1", "lead_1", 3, "success", seconds=6))
        await storage.append_log(make_log("whk_1", "lead_1", 1, "retrying", seconds=0))
        await storage.append_log(make_log("whk_1", "lead_1", 2, "retrying", seconds=2))
        await storage.append_log(make_log("whk_2", "lead_1", 1, "success", seconds=1))
        await storage.append_log(make_log("whk_1", "lead_2", 1, "failed", seconds=1))

        chain = await storage.list_logs_for(webhook_id="whk_1", lead_id="lead_1")

        assert [(log.attempt, log.status) for log in chain] == [
            (1, "retrying"),
            (2, "retrying"),
            (3, "success"),
        ]

    async def test_list_logs_by_webhook_or_lead(self, storage: LeadHubStorage):
        """Filtering by one ID should match across the other."""
        await storage.append_log(make_log("whk_1", "lead_1", 1, "success", seconds=0))
        await storage.append_log(make_log("whk_2", "lead_1", 1, "success", seconds=1))
        await storage.append_log(make_log("whk_1", "lead_2", 1, "success", seconds=2))

        by_webhook = await storage.list_logs_for(webhook_id="whk_1")
        by_lead = await storage.list_logs_for(lead_id="lead_1")

        assert [log.lead_id for log in by_webhook] == ["lead_1", "lead_2"]
        assert [log.webhook_id for log in by_lead] == ["whk_1", "whk_2"]

    async def test_logs_survive_webhook_deletion(self, storage: LeadHubStorage, make_webhook):
        """Deleting a webhook should keep its delivery history."""
        webhook = make_webhook()
        await storage.store_webhook(webhook)
        await storage.append_log(make_log(webhook.id, "lead_1", 1, "success", seconds=0))

        await storage.delete_webhook(webhook.id)

        assert len(await storage.list_logs_for(webhook_id=webhook.id)) == 1


class TestPagedScroll:
    """Listings should see every record, not just the first scroll page."""

    @pytest.fixture
    async def small_pages(self):
        store = LeadHubStorage(prefix="paged", max_scroll_limit=10)
        store._client = AsyncQdrantClient(location=":memory:")
        await store._ensure_collections()
        store._collections_initialized = True

        yield store

        await store.close()

    async def test_recent_logs_beyond_one_page(self, small_pages: LeadHubStorage):
        """The newest rows should come back even when the table spans many pages."""
        ids = []
        for i in range(35):
            log = make_log("whk_1", f"lead_{i}", 1, "success", seconds=i)
            await small_pages.append_log(log)
            ids.append(log.id)

        recent = await small_pages.list_recent_logs(limit=5)

        assert [log.id for log in recent] == ids[:-6:-1]

    async def test_logs_for_webhook_beyond_one_page(self, small_pages: LeadHubStorage):
        """Filtered log reads should also page through every match."""
        for i in range(23):
            await small_pages.append_log(make_log("whk_1", f"lead_{i}", 1, "failed", seconds=i))
        await small_pages.append_log(make_log("whk_2", "lead_x", 1, "failed", seconds=99))

        logs = await small_pages.list_logs_for(webhook_id="whk_1")

        assert len(logs) == 23
        assert [log.lead_id for log in logs][-1] == "lead_22"

    async def test_lead_listing_beyond_one_page(self, small_pages: LeadHubStorage):
        """Totals and newest-first order should cover every lead."""
        leads = [make_lead(minutes=i, name=f"Lead {i}") for i in range(27)]
        for lead in leads:
            await small_pages.create_lead(lead)

        page, total = await small_pages.list_leads(page=1, limit=3)

        assert total == 27
        assert [lead.id for lead in page] == [leads[26].id, leads[25].id, leads[24].id]
        assert len(await small_pages.all_leads()) == 27


class TestStorageRetry:
    """Tests for the Qdrant retry policy."""

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (httpx.ConnectError("refused"), True),
            (httpx.ReadTimeout("slow"), True),
            (UnexpectedResponse(503, "Service Unavailable", b"", httpx.Headers()), True),
            (UnexpectedResponse(404, "Not Found", b"", httpx.Headers()), False),
            (ValueError("bad payload"), False),
        ],
    )
    def test_is_transient(self, exc, expected):
        """Only connection, timeout and 5xx errors should be retried."""
        assert is_transient(exc) is expected

    async def test_retries_then_succeeds(self):
        """A transient failure followed by success should return normally."""
        calls = []

        @storage_retry(wait=wait_none())
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise httpx.ConnectError("refused")
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 3

    async def test_exhausted_retries_raise_storage_error(self):
        """Running out of attempts should raise StorageError."""

        @storage_retry(attempts=2, wait=wait_none())
        async def down():
            raise httpx.ConnectError("refused")

        with pytest.raises(StorageError, match="down failed after 2 attempts"):
            await down()

    async def test_client_errors_not_retried(self):
        """Non-transient errors should propagate on the first attempt."""
        calls = []

        @storage_retry(wait=wait_none())
        async def rejected():
            calls.append(1)
            raise UnexpectedResponse(400, "Bad Request", b"", httpx.Headers())

        with pytest.raises(UnexpectedResponse):
            await rejected()
        assert len(calls) == 1
