"""Row view models for the directory table."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from ..schemas import PersonRecord, Role
from .paged_query import PageCursor

PLACEHOLDER = "-"

ROLE_BADGES: dict[Role, str] = {
    Role.ADMIN: "Administrator",
    Role.MANAGER: "Manager",
    Role.EMPLOYEE: "Employee",
}

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"

STATUS_BADGES: dict[str, str] = {
    STATUS_PENDING: "Pending",
    STATUS_ACTIVE: "Active",
    STATUS_INACTIVE: "Inactive",
}

ACTION_EDIT = "edit"
ACTION_DELETE = "delete"


@dataclass(frozen=True)
class RowView:
    record_id: int
    full_name: str
    login: str
    email: str
    phone: str
    position: str
    department: str
    role_badge: str
    status: str
    status_badge: str
    actions: tuple[str, ...]


@dataclass(frozen=True)
class ListView:
    rows: tuple[RowView, ...]
    loading: bool
    empty: bool
    show_pagination: bool
    summary: str | None
    can_go_previous: bool
    can_go_next: bool
    can_create: bool


def status_of(record: PersonRecord) -> str:
    if not record.has_password:
        return STATUS_PENDING
    return STATUS_ACTIVE if record.is_active else STATUS_INACTIVE


def row_actions(capabilities: Mapping[str, bool]) -> tuple[str, ...]:
    if capabilities.get("canDeleteUsers", False):
        return (ACTION_EDIT, ACTION_DELETE)
    return (ACTION_EDIT,)


def render_row(record: PersonRecord, capabilities: Mapping[str, bool]) -> RowView:
    status = status_of(record)
    return RowView(
        record_id=record.id,
        full_name=record.full_name,
        login=f"@{record.login}",
        email=record.email or PLACEHOLDER,
        phone=record.phone or PLACEHOLDER,
        position=record.position or PLACEHOLDER,
        department=record.department or PLACEHOLDER,
        role_badge=ROLE_BADGES[record.role],
        status=status,
        status_badge=STATUS_BADGES[status],
        actions=row_actions(capabilities),
    )


def render_rows(
    records: Sequence[PersonRecord],
    loading: bool,
    capabilities: Mapping[str, bool],
) -> tuple[RowView, ...]:
    """Rows for the displayed page; nothing is rendered while a fetch is pending."""
    if loading:
        return ()
    return tuple(render_row(record, capabilities) for record in records)


def pagination_summary(cursor: PageCursor) -> str | None:
    if cursor.last_page <= 1:
        return None
    return f"Page {cursor.current_page} of {cursor.last_page} ({cursor.total} users)"


def render_list(
    records: Sequence[PersonRecord],
    cursor: PageCursor,
    loading: bool,
    capabilities: Mapping[str, bool],
) -> ListView:
    rows = render_rows(records, loading, capabilities)
    return ListView(
        rows=rows,
        loading=loading,
        empty=not loading and not records,
        show_pagination=not loading and cursor.last_page > 1,
        summary=pagination_summary(cursor),
        can_go_previous=cursor.has_previous,
        can_go_next=cursor.has_next,
        can_create=capabilities.get("canCreateUsers", False),
    )
