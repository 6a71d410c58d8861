"""Base helpers and shared types for LeadHub models."""

from __future__ import annotations

from uuid import uuid4

from pydantic import JsonValue

# Arbitrary JSON value: str, int, float, bool, None, or lists/dicts of those.
# Lead attributes and webhook payload data are mappings of str -> JSONValue
# because custom fields are configured at runtime.
JSONValue = JsonValue


def generate_id(prefix: str) -> str:
    """Generate a unique ID with the given prefix.

    Examples:
        generate_id("lead") -> "lead_a1b2c3d4e5f6"
        generate_id("whk") -> "whk_a1b2c3d4e5f6"
    """
    return f"{prefix}_{uuid4().hex[:12]}"
