"""Webhook models for outbound lead notifications.

Provides webhook registration, the lead.created event and wire payload,
and the per-attempt delivery log.
"""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from .base import JSONValue, generate_id

# Event types that can trigger webhooks
EventType = Literal["lead.created"]

LEAD_CREATED: EventType = "lead.created"

# Attribute name the webhook payload uses for the lead identifier
LEAD_ID_FIELD = "leadId"

# Delivery status of a single attempt
DeliveryStatus = Literal["success", "retrying", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"success", "failed"})

CustomFieldType = Literal["text", "number", "boolean", "email", "phone", "url"]

_TRUTHY = {"true", "1", "yes", "y", "on", "sim"}

_HTTP_URL: TypeAdapter[HttpUrl] = TypeAdapter(HttpUrl)


class WebhookField(BaseModel):
    """A custom field configured on a webhook.

    Custom fields extend the attribute set a webhook receives. When a lead
    carries no value for the field, default_value (coerced by type) is used.

    Attributes:
        name: Attribute name in the payload.
        label: Display label.
        type: Value type used to coerce default_value.
        required: Whether the operator marked the field as required.
        default_value: Value used when the lead has none.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, description="Attribute name in the payload")
    label: str = Field(default="", description="Display label")
    type: CustomFieldType = Field(default="text", description="Value type")
    required: bool = Field(default=False, description="Marked as required by the operator")
    default_value: str | None = Field(default=None, description="Fallback value")

    def coerced_default(self) -> JSONValue:
        """Return default_value converted to this field's type.

        Numbers that fail to parse fall back to the raw string.
        """
        raw = self.default_value
        if raw is None:
            return None
        if self.type == "boolean":
            return raw.strip().lower() in _TRUTHY
        if self.type == "number":
            try:
                return int(raw)
            except ValueError:
                try:
                    return float(raw)
                except ValueError:
                    return raw
        return raw


class WebhookConfig(BaseModel):
    """Configuration for a registered webhook (a delivery destination).

    Attributes:
        id: Unique identifier for this webhook.
        name: Display label.
        url: Absolute http(s) endpoint receiving lead events.
        is_active: Inactive webhooks are skipped by dispatch but kept.
        send_fields: Ordered attribute names to send. Empty sends everything.
        custom_fields: Extra attributes with defaults.
        success_count: Successful attempts so far.
        failure_count: Failed attempts so far (every failed attempt counts,
            including ones that were later retried).
        last_triggered_at: When the last successful delivery happened.
        created_at: When the webhook was registered.
        updated_at: When the webhook configuration was last modified.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("whk"))
    name: str = Field(min_length=1, description="Display label")
    url: str = Field(description="Endpoint to receive events, kept as entered")
    is_active: bool = Field(default=True, description="Whether webhook receives events")
    send_fields: list[str] = Field(
        default_factory=list,
        description="Attribute names to send (empty = all)",
    )
    custom_fields: list[WebhookField] = Field(
        default_factory=list,
        description="Custom attributes with defaults",
    )
    success_count: int = Field(default=0, ge=0, description="Successful attempts")
    failure_count: int = Field(default=0, ge=0, description="Failed attempts")
    last_triggered_at: datetime | None = Field(
        default=None,
        description="When the last successful delivery happened",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the webhook was registered",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the webhook was last modified",
    )

    @field_validator("url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        # Stored as entered; HttpUrl only checks it
        value = value.strip()
        try:
            parsed = _HTTP_URL.validate_python(value)
        except PydanticValidationError:
            raise ValueError("URL must be an absolute http or https address") from None
        if parsed.scheme not in ("http", "https"):
            raise ValueError("URL must use http or https")
        return value

    @field_validator("send_fields")
    @classmethod
    def _dedupe_send_fields(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(name for name in value if name))


class LeadEvent(BaseModel):
    """Immutable snapshot of a lead at creation time.

    Attributes:
        lead_id: ID of the lead that triggered the event.
        event: Event type.
        occurred_at: When the lead was created.
        attributes: Full attribute set of the lead, keyed by wire names.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    lead_id: str = Field(min_length=1, description="ID of the triggering lead")
    event: EventType = Field(default=LEAD_CREATED, description="Event type")
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the event occurred",
    )
    attributes: dict[str, JSONValue] = Field(
        default_factory=dict,
        description="Snapshot of the lead's attributes",
    )


class WebhookPayload(BaseModel):
    """Body POSTed to webhook endpoints."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    event: EventType = Field(default=LEAD_CREATED, description="Event type")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Dispatch time",
    )
    data: dict[str, JSONValue] = Field(default_factory=dict, description="Projected lead data")

    def to_json(self) -> str:
        """Serialize with an ISO-8601 timestamp."""
        return self.model_dump_json()


class DeliveryLog(BaseModel):
    """Record of one webhook delivery attempt.

    Rows are immutable and append-only. A delivery chain for one
    (webhook, lead) pair has attempts 1..k; only row k is terminal.

    Attributes:
        id: Unique identifier for this attempt.
        webhook_id: ID of the webhook configuration.
        lead_id: ID of the lead being delivered.
        url: Webhook URL at the time of the attempt.
        status: success, retrying, or failed.
        http_status: Response status code, if a response was received.
        response_excerpt: Truncated response body (success only).
        error_message: Error description (non-success only).
        attempt: 1-based attempt number.
        max_attempts: Attempt ceiling for this chain.
        created_at: When the attempt was made.
        next_retry_at: When the next attempt fires (retrying only).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: generate_id("dlv"))
    webhook_id: str = Field(description="ID of the webhook configuration")
    lead_id: str = Field(description="ID of the lead being delivered")
    url: str = Field(description="Webhook URL at attempt time")
    status: DeliveryStatus = Field(description="Attempt outcome")
    http_status: int | None = Field(default=None, description="HTTP response status code")
    response_excerpt: str | None = Field(default=None, description="Truncated response body")
    error_message: str | None = Field(default=None, description="Error message if not success")
    attempt: int = Field(ge=1, description="1-based attempt number")
    max_attempts: int = Field(ge=1, description="Attempt ceiling for this chain")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the attempt was made",
    )
    next_retry_at: datetime | None = Field(default=None, description="When the next retry fires")

    @property
    def is_terminal(self) -> bool:
        """Whether this row closes its delivery chain."""
        return self.status in TERMINAL_STATUSES


__all__ = [
    "DeliveryLog",
    "DeliveryStatus",
    "EventType",
    "LEAD_CREATED",
    "LEAD_ID_FIELD",
    "LeadEvent",
    "TERMINAL_STATUSES",
    "WebhookConfig",
    "WebhookField",
    "WebhookPayload",
]
