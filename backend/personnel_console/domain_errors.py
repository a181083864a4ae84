"""Domain-level exception primitives with stable machine-readable codes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

NETWORK_ERROR = "NETWORK_ERROR"
VALIDATION_FAILED = "VALIDATION_FAILED"
INVALID_RESPONSE = "INVALID_RESPONSE"


@dataclass(eq=False)
class DomainError(Exception):
    """Client-side error with stable code and the HTTP status that caused it (0 = no response)."""

    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message

    @property
    def is_validation_error(self) -> bool:
        return self.code == VALIDATION_FAILED

    def field_errors(self) -> dict[str, list[str]]:
        """Per-field validation messages, normalised to lists."""
        raw = (self.details or {}).get("errors") or {}
        if not isinstance(raw, dict):
            return {}
        errors: dict[str, list[str]] = {}
        for field, messages in raw.items():
            if isinstance(messages, (list, tuple)):
                errors[str(field)] = [str(m) for m in messages]
            else:
                errors[str(field)] = [str(messages)]
        return errors

    def field_messages(self) -> list[str]:
        """Every validation message, flattened in field order."""
        return [message for messages in self.field_errors().values() for message in messages]
