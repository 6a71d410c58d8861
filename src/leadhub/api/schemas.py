"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from leadhub.models import DeliveryStatus, LeadPriority, LeadStatus, WebhookField


class HealthResponse(BaseModel):
    """Response for health check endpoint.

    Attributes:
        status: Service status (healthy, unhealthy).
        version: API version.
        storage_connected: Whether storage is connected.
        pending_deliveries: Background fan-outs and retries in flight.
    """

    model_config = ConfigDict(extra="forbid")

    status: Literal["healthy", "unhealthy"]
    version: str
    storage_connected: bool
    pending_deliveries: int = 0


# ----------------------------------------------------------------------
# Leads
# ----------------------------------------------------------------------


class LeadCreateRequest(BaseModel):
    """Request body for the public lead intake.

    phone and source are checked by the service so that a missing value
    is reported as a 400 validation error. Unknown keys (tracking
    parameters, custom form fields) are kept and forwarded to webhooks.
    """

    model_config = ConfigDict(extra="allow")

    phone: str | None = Field(default=None, description="Phone / WhatsApp number")
    source: str | None = Field(default=None, description="Origin page or form")
    name: str | None = Field(default=None, description="Contact name")
    email: str | None = Field(default=None, description="Contact email")
    company: str | None = Field(default=None, description="Company name")
    message: str | None = Field(default=None, description="Message from the contact")
    status: LeadStatus = Field(default="new", description="Pipeline status")
    priority: LeadPriority = Field(default="medium", description="Sales priority")
    tags: list[str] = Field(default_factory=list, description="Free-form labels")

    def extra_fields(self) -> dict[str, Any]:
        """Keys outside the core lead fields."""
        return dict(self.model_extra or {})


class LeadUpdateRequest(BaseModel):
    """Request body for a partial lead update."""

    model_config = ConfigDict(extra="forbid")

    phone: str | None = Field(default=None, min_length=1)
    source: str | None = Field(default=None, min_length=1)
    name: str | None = None
    email: str | None = None
    company: str | None = None
    message: str | None = None
    status: LeadStatus | None = None
    priority: LeadPriority | None = None
    tags: list[str] | None = None
    extra: dict[str, Any] | None = None


class LeadResponse(BaseModel):
    """Response model for a lead."""

    model_config = ConfigDict(extra="forbid")

    id: str
    phone: str
    source: str
    name: str | None = None
    email: str | None = None
    company: str | None = None
    message: str | None = None
    status: str
    priority: str
    tags: list[str] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)
    created_at: str
    updated_at: str


class LeadListResponse(BaseModel):
    """Response for a page of leads.

    Attributes:
        leads: Leads on this page, newest first.
        total: Number of leads matching the filters.
        page: 1-based page number.
        limit: Page size.
        total_pages: Number of pages at this page size.
    """

    model_config = ConfigDict(extra="forbid")

    leads: list[LeadResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class DashboardStatsResponse(BaseModel):
    """Aggregate lead statistics."""

    model_config = ConfigDict(extra="forbid")

    total_leads: int
    new_leads: int
    converted_leads: int
    leads_by_status: dict[str, int]
    leads_by_source: dict[str, int]
    recent_leads: list[LeadResponse]


# ----------------------------------------------------------------------
# Webhooks
# ----------------------------------------------------------------------


class WebhookCreateRequest(BaseModel):
    """Request body for registering a webhook.

    name and url are checked by the service so that missing or invalid
    values are reported as 400 validation errors.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, description="Display label")
    url: str | None = Field(default=None, description="Absolute http(s) endpoint")
    is_active: bool = Field(default=True, description="Whether the webhook receives events")
    send_fields: list[str] = Field(
        default_factory=list,
        description="Attribute names to send (empty = all)",
    )
    custom_fields: list[WebhookField] = Field(
        default_factory=list,
        description="Custom attributes with defaults",
    )


class WebhookUpdateRequest(BaseModel):
    """Request body for a partial webhook update. Counters are not accepted."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    url: str | None = None
    is_active: bool | None = None
    send_fields: list[str] | None = None
    custom_fields: list[WebhookField] | None = None


class WebhookResponse(BaseModel):
    """Response model for a webhook."""

    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    url: str
    is_active: bool
    send_fields: list[str]
    custom_fields: list[WebhookField]
    success_count: int
    failure_count: int
    last_triggered_at: str | None = None
    created_at: str
    updated_at: str


class WebhookListResponse(BaseModel):
    """Response for the webhook list."""

    model_config = ConfigDict(extra="forbid")

    webhooks: list[WebhookResponse]
    count: int


class RedeliverRequest(BaseModel):
    """Request body for resending a lead to one webhook."""

    model_config = ConfigDict(extra="forbid")

    lead_id: str = Field(min_length=1, description="ID of the lead to resend")


class RedeliverResponse(BaseModel):
    """Acknowledgement that a redelivery chain was started."""

    model_config = ConfigDict(extra="forbid")

    webhook_id: str
    lead_id: str
    status: Literal["scheduled"] = "scheduled"


class DeliveryLogResponse(BaseModel):
    """Response model for one delivery attempt."""

    model_config = ConfigDict(extra="forbid")

    id: str
    webhook_id: str
    lead_id: str
    url: str
    status: DeliveryStatus
    http_status: int | None = None
    response_excerpt: str | None = None
    error_message: str | None = None
    attempt: int
    max_attempts: int
    created_at: str
    next_retry_at: str | None = None


class DeliveryLogListResponse(BaseModel):
    """Response for the delivery log view, most recent first."""

    model_config = ConfigDict(extra="forbid")

    logs: list[DeliveryLogResponse]
    count: int
