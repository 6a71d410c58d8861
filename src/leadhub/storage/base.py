"""Qdrant plumbing shared by the storage mixins.

Leads, webhooks and delivery logs are plain payload records: each lives in
its own ``<prefix>_<kind>`` collection, keyed by a UUID derived from the
record's own ID, with a constant 1-d vector since nothing here is searched
by similarity.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, TypeVar

from pydantic import BaseModel
from qdrant_client import AsyncQdrantClient, models

from leadhub.config import settings

from .retry import qdrant_retry

ModelT = TypeVar("ModelT", bound=BaseModel)

_KEYWORD = models.PayloadSchemaType.KEYWORD
_BOOL = models.PayloadSchemaType.BOOL

# Record kind -> payload fields indexed for filtering
RECORD_KINDS: dict[str, dict[str, models.PayloadSchemaType]] = {
    "leads": {"status": _KEYWORD, "priority": _KEYWORD, "source": _KEYWORD},
    "webhooks": {"is_active": _BOOL},
    "webhook_logs": {"webhook_id": _KEYWORD, "lead_id": _KEYWORD, "status": _KEYWORD},
}

_POINT_NAMESPACE = uuid.UUID("5b0c7a52-3f0e-4c1e-9a57-1ead0b0c4e11")
_VECTOR = [0.0]


class StorageBase:
    """Client lifecycle, collection setup and retried record primitives.

    Mixins build typed operations on top of ``_upsert``, ``_retrieve``,
    ``_scroll`` and ``_delete``, which take a record kind and a record ID.
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        prefix: str | None = None,
        max_scroll_limit: int | None = None,
    ) -> None:
        """Args default to the matching ``Settings`` fields
        (qdrant_url, qdrant_api_key, collection_prefix,
        storage_max_scroll_limit).
        """
        self._url = url or settings.qdrant_url
        self._api_key = api_key or settings.qdrant_api_key
        self._prefix = prefix or settings.collection_prefix
        self._max_scroll_limit = max_scroll_limit or settings.storage_max_scroll_limit
        self._client: AsyncQdrantClient | None = None
        self._collections_initialized = False
        # Serializes read-modify-write on one webhook's counters and config
        self._webhook_locks: dict[str, asyncio.Lock] = {}

    @property
    def client(self) -> AsyncQdrantClient:
        if self._client is None:
            raise RuntimeError("LeadHub storage is not initialized; await initialize() first")
        return self._client

    @property
    def is_initialized(self) -> bool:
        return self._client is not None and self._collections_initialized

    async def initialize(self) -> None:
        """Connect to Qdrant and create any missing collections."""
        self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
        await self._ensure_collections()
        self._collections_initialized = True

    async def close(self) -> None:
        client, self._client = self._client, None
        self._collections_initialized = False
        if client is not None:
            await client.close()

    async def __aenter__(self) -> StorageBase:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _collection_name(self, kind: str) -> str:
        return f"{self._prefix}_{kind}"

    @staticmethod
    def _key_to_point_id(key: str) -> str:
        """Map a record ID such as ``lead_ab12`` to a stable UUID point ID."""
        return str(uuid.uuid5(_POINT_NAMESPACE, key))

    def _webhook_lock(self, webhook_id: str) -> asyncio.Lock:
        return self._webhook_locks.setdefault(webhook_id, asyncio.Lock())

    async def _ensure_collections(self) -> None:
        response = await self.client.get_collections()
        existing = {c.name for c in response.collections}

        for kind, indexes in RECORD_KINDS.items():
            name = self._collection_name(kind)
            if name in existing:
                continue
            await self.client.create_collection(
                collection_name=name,
                vectors_config=models.VectorParams(size=len(_VECTOR), distance=models.Distance.DOT),
            )
            for field_name, schema in indexes.items():
                await self.client.create_payload_index(
                    collection_name=name, field_name=field_name, field_schema=schema
                )

    @staticmethod
    def _model_to_payload(record: BaseModel) -> dict[str, Any]:
        return record.model_dump(mode="json")

    @staticmethod
    def _payload_to_model(payload: dict[str, Any], model_class: type[ModelT]) -> ModelT:
        return model_class.model_validate(payload)

    @qdrant_retry
    async def _upsert(self, kind: str, record_id: str, payload: dict[str, Any]) -> None:
        point = models.PointStruct(
            id=self._key_to_point_id(record_id), vector=_VECTOR, payload=payload
        )
        await self.client.upsert(collection_name=self._collection_name(kind), points=[point])

    @qdrant_retry
    async def _retrieve(self, kind: str, record_id: str) -> dict[str, Any] | None:
        points = await self.client.retrieve(
            collection_name=self._collection_name(kind),
            ids=[self._key_to_point_id(record_id)],
            with_payload=True,
        )
        if not points or points[0].payload is None:
            return None
        return dict(points[0].payload)

    async def _scroll(
        self,
        kind: str,
        conditions: list[models.Condition] | None = None,
    ) -> list[dict[str, Any]]:
        """Every payload matching all conditions.

        Pages through the collection max_scroll_limit points at a time;
        each page is retried on its own.
        """
        scroll_filter = models.Filter(must=conditions) if conditions else None
        payloads: list[dict[str, Any]] = []
        offset: models.ExtendedPointId | None = None
        while True:
            points, offset = await self._scroll_page(kind, scroll_filter, offset)
            payloads.extend(dict(p.payload) for p in points if p.payload is not None)
            if offset is None:
                return payloads

    @qdrant_retry
    async def _scroll_page(
        self,
        kind: str,
        scroll_filter: models.Filter | None,
        offset: models.ExtendedPointId | None,
    ) -> tuple[list[models.Record], models.ExtendedPointId | None]:
        return await self.client.scroll(
            collection_name=self._collection_name(kind),
            scroll_filter=scroll_filter,
            limit=self._max_scroll_limit,
            offset=offset,
            with_payload=True,
        )

    @qdrant_retry
    async def _delete(self, kind: str, record_id: str) -> None:
        selector = models.PointIdsList(points=[self._key_to_point_id(record_id)])
        await self.client.delete(
            collection_name=self._collection_name(kind), points_selector=selector
        )

    @staticmethod
    def _match(key: str, value: Any) -> models.FieldCondition:
        return models.FieldCondition(key=key, match=models.MatchValue(value=value))
