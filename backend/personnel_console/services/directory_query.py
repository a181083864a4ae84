"""Directory list: search, role and status filters over ``/users``."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from ..config import settings
from ..gateway import DirectoryGateway
from ..schemas import PersonRecord, Role
from .notifications import Notifier
from .paged_query import FetchOutcome, PagedQuery

_TRUE_VALUES = {"1", "true", "yes", "active"}
_FALSE_VALUES = {"0", "false", "no", "inactive"}


def parse_role(value: Role | str | None) -> Role | None:
    """``None``/empty means any role."""
    if value is None or isinstance(value, Role):
        return value
    value = value.strip().lower()
    return Role(value) if value else None


def parse_active(value: bool | str | None) -> bool | None:
    """``None``/empty means any status; accepts the wire form ``"1"``/``"0"``."""
    if value is None or isinstance(value, bool):
        return value
    normalized = value.strip().lower()
    if not normalized:
        return None
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid active-status filter: {value!r}")


@dataclass(frozen=True)
class FilterCriteria:
    search: str = ""
    role: Role | None = None
    is_active: bool | None = None

    def to_params(self) -> dict[str, str]:
        if self.is_active is None:
            active = ""
        else:
            active = "1" if self.is_active else "0"
        return {
            "search": self.search,
            "role": self.role.value if self.role else "",
            "is_active": active,
        }

    def with_changes(self, **changes: Any) -> "FilterCriteria":
        if "role" in changes:
            changes["role"] = parse_role(changes["role"])
        if "is_active" in changes:
            changes["is_active"] = parse_active(changes["is_active"])
        if "search" in changes:
            changes["search"] = changes["search"] or ""
        return replace(self, **changes)

    @property
    def is_empty(self) -> bool:
        return self == FilterCriteria()


class DirectoryQueryController(PagedQuery[FilterCriteria, PersonRecord]):
    """Stateful user list."""

    def __init__(
        self,
        gateway: DirectoryGateway,
        *,
        notifier: Notifier,
        per_page: int | None = None,
        search_debounce: float | None = None,
    ) -> None:
        super().__init__(
            gateway.list_records,
            filters=FilterCriteria(),
            per_page=per_page or settings.DIRECTORY_PAGE_SIZE,
            notifier=notifier,
            error_message="Failed to load users",
            label="directory",
        )
        self.search_debounce = settings.SEARCH_DEBOUNCE_SECONDS if search_debounce is None else search_debounce

    @property
    def records(self) -> list[PersonRecord]:
        return self.items

    async def update_filters(self, **changes: Any) -> FetchOutcome:
        """Apply any subset of ``search``, ``role`` and ``is_active``; page goes back to 1."""
        debounce = self.search_debounce if set(changes) == {"search"} else 0.0
        return await self.set_filters(self.filters.with_changes(**changes), debounce=debounce)

    async def set_search(self, search: str) -> FetchOutcome:
        return await self.update_filters(search=search)

    async def set_role(self, role: Role | str | None) -> FetchOutcome:
        return await self.update_filters(role=role)

    async def set_active(self, is_active: bool | str | None) -> FetchOutcome:
        return await self.update_filters(is_active=is_active)
