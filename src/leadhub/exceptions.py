"""LeadHub exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from LeadHubError for easy catching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pydantic import ValidationError as PydanticValidationError


class LeadHubError(Exception):
    """Base exception for all LeadHub errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "leadhub_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ValidationError(LeadHubError):
    """Invalid input provided.

    Raised when user input fails validation checks, such as a webhook
    URL that is not an absolute http(s) URL.

    Attributes:
        field: The field that failed validation.
        message: Description of the validation failure.
    """

    code: str = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> ValidationError:
        """Build from the first error of a pydantic validation failure."""
        errors = exc.errors()
        if not errors:
            return cls("body", str(exc))
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "body"
        return cls(field, first.get("msg", "Invalid value"))

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "field": self.field,
                "message": self.message,
            }
        }


class NotFoundError(LeadHubError):
    """Resource not found.

    Attributes:
        resource_type: Type of resource (e.g., "lead", "webhook").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class StorageError(LeadHubError):
    """Storage operation failed.

    Raised when a Qdrant operation fails after retries.
    """

    code: str = "storage_error"


class ConfigurationError(LeadHubError):
    """Configuration error.

    Raised when required configuration is missing or invalid.
    """

    code: str = "configuration_error"


class DeliveryError(LeadHubError):
    """Webhook delivery failed.

    Used inside the webhook subsystem only. It is recorded in delivery
    logs and never raised to the caller of dispatch().

    Attributes:
        http_status: Response status code, if a response was received.
    """

    code: str = "delivery_error"

    def __init__(self, message: str, http_status: int | None = None) -> None:
        self.http_status = http_status
        super().__init__(message)
