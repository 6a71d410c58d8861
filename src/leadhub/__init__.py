"""LeadHub: lead capture with webhook fan-out.

Leads arrive through a public intake endpoint and are managed through a
CRUD API. Every new lead is pushed to each active webhook, with per-webhook
field selection, retries with exponential backoff, and a delivery log.

Quick Start:
    from leadhub.service import LeadHubService

    async with LeadHubService.create() as hub:
        await hub.create_webhook(name="CRM", url="https://crm.example.com/leads")

        # Persisted immediately; webhook delivery runs in the background
        lead = await hub.create_lead(phone="+55 11 99999-9999", source="landing-page")

        logs = await hub.list_delivery_logs(lead_id=lead.id)

Records:
    - Lead: A captured contact
    - WebhookConfig: A delivery destination with counters
    - DeliveryLog: One row per delivery attempt
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings, settings

# Exceptions
from .exceptions import (
    ConfigurationError,
    DeliveryError,
    LeadHubError,
    NotFoundError,
    StorageError,
    ValidationError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    logger,
    unbind_context,
)

# Models
from .models import (
    DeliveryLog,
    Lead,
    LeadEvent,
    WebhookConfig,
    WebhookField,
    WebhookPayload,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    "settings",
    # Exceptions
    "LeadHubError",
    "ValidationError",
    "NotFoundError",
    "StorageError",
    "ConfigurationError",
    "DeliveryError",
    # Logging
    "configure_logging",
    "get_logger",
    "logger",
    "bind_context",
    "clear_context",
    "unbind_context",
    # Models
    "Lead",
    "LeadEvent",
    "WebhookConfig",
    "WebhookField",
    "WebhookPayload",
    "DeliveryLog",
]
