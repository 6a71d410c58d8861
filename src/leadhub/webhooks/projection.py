"""Per-webhook field projection.

Pure functions that turn a lead's full attribute set into the data a
given webhook receives. Nothing here performs I/O or mutates its inputs.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

from leadhub.models import LEAD_ID_FIELD

if TYPE_CHECKING:
    from leadhub.models import JSONValue, WebhookConfig, WebhookField


def project_fields(
    attributes: Mapping[str, JSONValue],
    send_fields: Sequence[str],
    lead_id: str | None = None,
) -> dict[str, JSONValue]:
    """Filter attributes down to a webhook's allow-list.

    An empty allow-list means "send everything" and returns a copy of
    ``attributes``. Otherwise the result keeps the keys present in both,
    in ``attributes`` order; allow-list names missing from ``attributes``
    are skipped. The lead ID is always kept so receivers can correlate
    the payload with its lead.

    Args:
        attributes: Full attribute set of the lead.
        send_fields: Attribute names the webhook asked for.
        lead_id: Authoritative lead ID. When given, ``leadId`` is set to it
            whether or not ``attributes`` carries one, leading the mapping
            if it had to be added.

    Returns:
        New mapping with the projected attributes.

    Example:
        >>> project_fields({"phone": "+55", "name": "Ana"}, ["phone"], lead_id="lead_1")
        {'leadId': 'lead_1', 'phone': '+55'}
    """
    if send_fields:
        allowed = {*send_fields, LEAD_ID_FIELD}
        projected = {key: value for key, value in attributes.items() if key in allowed}
    else:
        projected = dict(attributes)

    if lead_id is None:
        return projected
    if LEAD_ID_FIELD in projected:
        projected[LEAD_ID_FIELD] = lead_id
        return projected
    return {LEAD_ID_FIELD: lead_id, **projected}


def apply_custom_fields(
    attributes: Mapping[str, JSONValue],
    custom_fields: Iterable[WebhookField],
) -> dict[str, JSONValue]:
    """Fill in custom-field defaults the lead has no value for.

    Args:
        attributes: Full attribute set of the lead.
        custom_fields: Custom fields configured on the webhook.

    Returns:
        New mapping; existing non-null values are never overwritten.
    """
    merged = dict(attributes)
    for field in custom_fields:
        if merged.get(field.name) is None and field.default_value is not None:
            merged[field.name] = field.coerced_default()
    return merged


def build_payload_data(
    attributes: Mapping[str, JSONValue],
    webhook: WebhookConfig,
    lead_id: str | None = None,
) -> dict[str, JSONValue]:
    """Data section of the payload for one webhook."""
    merged = apply_custom_fields(attributes, webhook.custom_fields)
    return project_fields(merged, webhook.send_fields, lead_id=lead_id)
