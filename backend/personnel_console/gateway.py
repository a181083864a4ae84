"""Typed async boundary to the personnel REST API."""
from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .auth import SessionContext
from .config import settings
from .domain_errors import INVALID_RESPONSE, NETWORK_ERROR, DomainError
from .problem_details import parse_problem_details
from .schemas import (
    ActivityLogEntry,
    ActivityStatistics,
    CandidateSet,
    DirectoryStatistics,
    LoginRequest,
    LoginResult,
    Page,
    PersonRecord,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_UNSET = object()


def _parse(model: type[M], data: Any, *, what: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("gateway.invalid_response what=%s errors=%s", what, exc.error_count())
        raise DomainError(
            code=INVALID_RESPONSE,
            http_status=200,
            message=f"Unexpected {what} payload from server",
        ) from exc


class ApiClient:
    """Shared HTTP plumbing: bearer token, envelope unwrapping, error mapping."""

    def __init__(
        self,
        session: SessionContext,
        *,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None | object = _UNSET,
    ) -> None:
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            transport=transport,
            timeout=settings.HTTP_TIMEOUT_SECONDS if timeout is _UNSET else timeout,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *_exc_info) -> None:
        await self.aclose()

    def _headers(self) -> dict[str, str]:
        if self.session.token:
            return {"Authorization": f"Bearer {self.session.token}"}
        return {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Mapping[str, Any] | None = None,
        unwrap: bool = True,
    ) -> Any:
        """Perform a call and return the unwrapped ``data`` of the response envelope.

        With ``unwrap=False`` the decoded body is returned untouched, ``success`` flag included.
        """
        started = time.perf_counter()
        try:
            response = await self._client.request(
                method,
                path,
                params=dict(params) if params is not None else None,
                json=dict(json) if json is not None else None,
                headers=self._headers(),
            )
        except httpx.TransportError as exc:
            logger.warning("gateway.transport_error method=%s path=%s error=%s", method, path, exc)
            raise DomainError(
                code=NETWORK_ERROR,
                http_status=0,
                message="Unable to reach the personnel service",
            ) from exc

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "gateway.request method=%s path=%s status=%s ms=%.0f",
            method,
            path,
            response.status_code,
            elapsed_ms,
        )

        if response.is_error:
            raise parse_problem_details(response)
        if response.status_code == 204 or not response.content:
            return None

        try:
            body = response.json()
        except ValueError as exc:
            raise DomainError(
                code=INVALID_RESPONSE,
                http_status=response.status_code,
                message="Server returned a non-JSON response",
            ) from exc

        if unwrap and isinstance(body, dict) and "success" in body:
            if body.get("success") is False:
                raise DomainError(
                    code="REQUEST_REJECTED",
                    http_status=response.status_code,
                    message=str(body.get("message") or "Request rejected by server"),
                )
            return body.get("data")
        return body


class DirectoryGateway:
    """Personnel record operations (``/users``)."""

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    async def list_records(self, params: Mapping[str, Any]) -> Page[PersonRecord]:
        """Fetch one page. ``params`` is sent as a flat query set, empty values included."""
        data = await self.api.request("GET", "/users", params=params)
        return _parse(Page[PersonRecord], data, what="user page")

    async def get_record(self, record_id: int) -> PersonRecord:
        data = await self.api.request("GET", f"/users/{record_id}")
        return _parse(PersonRecord, data, what="user")

    async def generate_login_candidates(self, first_name: str, last_name: str) -> CandidateSet:
        data = await self.api.request(
            "GET",
            "/users/generate-login",
            params={"first_name": first_name, "last_name": last_name},
        )
        return _parse(CandidateSet, data, what="login suggestions")

    async def create_record(self, payload: Mapping[str, Any]) -> PersonRecord:
        data = await self.api.request("POST", "/users", json=payload)
        return _parse(PersonRecord, data, what="user")

    async def update_record(self, record_id: int, payload: Mapping[str, Any]) -> PersonRecord:
        data = await self.api.request("PUT", f"/users/{record_id}", json=payload)
        return _parse(PersonRecord, data, what="user")

    async def delete_record(self, record_id: int) -> None:
        await self.api.request("DELETE", f"/users/{record_id}")

    async def statistics(self) -> DirectoryStatistics:
        data = await self.api.request("GET", "/users/statistics/overview")
        return _parse(DirectoryStatistics, data, what="user statistics")


class ActivityLogGateway:
    """Read-only access to the activity log (``/activity-logs``)."""

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    async def list_records(self, params: Mapping[str, Any]) -> Page[ActivityLogEntry]:
        data = await self.api.request("GET", "/activity-logs", params=params)
        return _parse(Page[ActivityLogEntry], data, what="activity log page")

    async def get_record(self, entry_id: int) -> ActivityLogEntry:
        data = await self.api.request("GET", f"/activity-logs/{entry_id}")
        return _parse(ActivityLogEntry, data, what="activity log entry")

    async def statistics(self) -> ActivityStatistics:
        data = await self.api.request("GET", "/activity-logs/statistics/overview")
        return _parse(ActivityStatistics, data, what="activity statistics")


class AuthGateway:
    """Login/logout; drives the SessionContext lifecycle."""

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    async def login(self, login: str, password: str) -> LoginResult:
        body = LoginRequest(login=login, password=password).model_dump()
        envelope = await self.api.request("POST", "/login", json=body, unwrap=False)
        if not isinstance(envelope, dict):
            raise DomainError(code=INVALID_RESPONSE, http_status=200, message="Unexpected login payload from server")
        if envelope.get("requires_password_reset"):
            logger.info("auth.login password_reset_required user_id=%s", envelope.get("user_id"))
            return LoginResult(requires_password_reset=True, user_id=envelope.get("user_id"))
        if envelope.get("success") is False:
            raise DomainError(
                code="LOGIN_REJECTED",
                http_status=401,
                message=str(envelope.get("message") or "Invalid credentials"),
            )
        result = _parse(LoginResult, envelope.get("data") or {}, what="login")
        if not result.token or result.user is None:
            raise DomainError(code=INVALID_RESPONSE, http_status=200, message="Login response missing token")
        self.api.session.start(token=result.token, actor=result.user)
        return result

    async def logout(self) -> None:
        try:
            await self.api.request("POST", "/logout")
        finally:
            self.api.session.end()
