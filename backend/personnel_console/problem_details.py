"""Map personnel API error bodies (RFC 7807 or validation envelopes) onto DomainError."""
from __future__ import annotations

from http import HTTPStatus
from typing import Any

import httpx

from .domain_errors import VALIDATION_FAILED, DomainError


def _title_for(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def _payload(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def parse_problem_details(response: httpx.Response) -> DomainError:
    """Build a DomainError from an error response.

    Understands both shapes the API emits:
    ``{"message": ..., "errors": {field: [msg, ...]}}`` for validation failures and
    ``{"type", "title", "status", "detail", "code", "details"}`` problem documents.
    """
    status_code = response.status_code
    payload = _payload(response)

    message = payload.get("detail") or payload.get("message") or payload.get("title") or _title_for(status_code)
    errors = payload.get("errors")
    if errors is None and isinstance(payload.get("details"), dict):
        errors = payload["details"].get("errors")

    if status_code == HTTPStatus.UNPROCESSABLE_ENTITY or errors:
        return DomainError(
            code=VALIDATION_FAILED,
            http_status=status_code,
            message=str(message),
            details={"errors": errors or {}},
        )

    code = payload.get("code") or f"HTTP_{status_code}"
    details = payload.get("details")
    return DomainError(
        code=str(code),
        http_status=status_code,
        message=str(message),
        details=details if isinstance(details, dict) else None,
    )
