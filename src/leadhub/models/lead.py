"""Lead model: a contact captured by the public intake endpoint."""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .base import JSONValue, generate_id
from .webhook import LEAD_ID_FIELD, LeadEvent

LeadStatus = Literal["new", "contacted", "qualified", "converted", "lost"]
LeadPriority = Literal["low", "medium", "high"]

ALL_LEAD_STATUSES: list[LeadStatus] = ["new", "contacted", "qualified", "converted", "lost"]


class Lead(BaseModel):
    """A lead record.

    Attributes:
        id: Unique identifier, assigned at creation.
        phone: Phone / WhatsApp number (required at intake).
        source: Which page or form the lead came from (required at intake).
        name: Contact name.
        email: Contact email.
        company: Company name.
        message: Free-text message left by the contact.
        status: Pipeline status.
        priority: Sales priority.
        tags: Free-form labels.
        extra: Additional intake fields (tracking parameters, custom form
            fields). Forwarded to webhooks alongside the core fields.
        created_at: When the lead was captured.
        updated_at: When the lead was last modified.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("lead"))
    phone: str = Field(min_length=1, description="Phone / WhatsApp number")
    source: str = Field(min_length=1, description="Origin page or form")
    name: str | None = Field(default=None, description="Contact name")
    email: str | None = Field(default=None, description="Contact email")
    company: str | None = Field(default=None, description="Company name")
    message: str | None = Field(default=None, description="Message from the contact")
    status: LeadStatus = Field(default="new", description="Pipeline status")
    priority: LeadPriority = Field(default="medium", description="Sales priority")
    tags: list[str] = Field(default_factory=list, description="Free-form labels")
    extra: dict[str, JSONValue] = Field(
        default_factory=dict,
        description="Additional intake fields forwarded to webhooks",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the lead was captured",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the lead was last modified",
    )

    def webhook_attributes(self) -> dict[str, JSONValue]:
        """Full attribute set sent to webhooks, keyed by wire field names.

        Extra intake fields come first so that core fields win on a name clash.
        """
        attributes: dict[str, JSONValue] = dict(self.extra)
        attributes.update(
            {
                LEAD_ID_FIELD: self.id,
                "phone": self.phone,
                "source": self.source,
                "name": self.name,
                "email": self.email,
                "company": self.company,
                "message": self.message,
                "status": self.status,
                "priority": self.priority,
                "tags": list(self.tags),
                "createdAt": self.created_at.isoformat(),
            }
        )
        return attributes

    def to_event(self) -> LeadEvent:
        """Snapshot this lead as a lead.created event."""
        return LeadEvent(lead_id=self.id, attributes=self.webhook_attributes())

    def matches(self, search: str) -> bool:
        """Case-insensitive substring match over the searchable text fields."""
        term = search.lower()
        haystack = (self.name, self.phone, self.email, self.company, self.message)
        return any(value is not None and term in value.lower() for value in haystack)


class DashboardStats(BaseModel):
    """Aggregate lead counts for the dashboard.

    Attributes:
        total_leads: Number of leads.
        new_leads: Leads still in the "new" status.
        converted_leads: Leads in the "converted" status.
        leads_by_status: Count per status; every status is present.
        leads_by_source: Count per source.
        recent_leads: The five most recently created leads.
    """

    model_config = ConfigDict(extra="forbid")

    total_leads: int = Field(default=0, ge=0)
    new_leads: int = Field(default=0, ge=0)
    converted_leads: int = Field(default=0, ge=0)
    leads_by_status: dict[str, int] = Field(default_factory=dict)
    leads_by_source: dict[str, int] = Field(default_factory=dict)
    recent_leads: list[Lead] = Field(default_factory=list)


__all__ = [
    "ALL_LEAD_STATUSES",
    "DashboardStats",
    "Lead",
    "LeadPriority",
    "LeadStatus",
]
