"""Domain models for LeadHub.

Records:
    - Lead: A contact captured by the intake endpoint
    - WebhookConfig: A registered delivery destination
    - DeliveryLog: One row per webhook delivery attempt

Events and payloads:
    - LeadEvent: Immutable snapshot of a newly created lead
    - WebhookPayload: The JSON envelope POSTed to webhooks
"""

from .base import JSONValue, generate_id
from .lead import ALL_LEAD_STATUSES, DashboardStats, Lead, LeadPriority, LeadStatus
from .webhook import (
    LEAD_CREATED,
    LEAD_ID_FIELD,
    TERMINAL_STATUSES,
    DeliveryLog,
    DeliveryStatus,
    EventType,
    LeadEvent,
    WebhookConfig,
    WebhookField,
    WebhookPayload,
)

__all__ = [
    # Base types
    "JSONValue",
    "generate_id",
    # Leads
    "ALL_LEAD_STATUSES",
    "DashboardStats",
    "Lead",
    "LeadPriority",
    "LeadStatus",
    # Webhooks
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
