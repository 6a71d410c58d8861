"""Webhook delivery for LeadHub.

Every new lead is pushed to each active webhook as a JSON POST. Each
delivery chain is retried with exponential backoff and every attempt is
logged.

Example:
    ```python
    from leadhub.webhooks import WebhookDispatcher

    dispatcher = WebhookDispatcher.from_settings(storage, settings)
    dispatcher.dispatch(lead.to_event())
    ```
"""

from .accounting import DeliveryAccounting
from .delivery import DeliveryAttempt
from .dispatcher import WebhookDispatcher
from .projection import apply_custom_fields, build_payload_data, project_fields
from .retry import RetryScheduler

__all__ = [
    "DeliveryAccounting",
    "DeliveryAttempt",
    "RetryScheduler",
    "WebhookDispatcher",
    "apply_custom_fields",
    "build_payload_data",
    "project_fields",
]
