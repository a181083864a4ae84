"""Read-only activity log list."""

from __future__ import annotations

from dataclasses import dataclass

from ..config import settings
from ..gateway import ActivityLogGateway
from ..schemas import ActivityAction, ActivityLogEntry
from .notifications import Notifier
from .paged_query import FetchOutcome, PagedQuery

ACTION_LABELS: dict[str, str] = {
    ActivityAction.LOGIN.value: "Login",
    ActivityAction.LOGOUT.value: "Logout",
    ActivityAction.CREATE.value: "Created",
    ActivityAction.UPDATE.value: "Updated",
    ActivityAction.DELETE.value: "Deleted",
    ActivityAction.RESET_PASSWORD.value: "Password set",
}


def action_label(action: str) -> str:
    """Display label for a log action; unknown actions are shown verbatim."""
    return ACTION_LABELS.get(action, action)


@dataclass(frozen=True)
class ActivityFilters:
    action: ActivityAction | None = None

    def to_params(self) -> dict[str, str]:
        return {"action": self.action.value if self.action else ""}


class ActivityLogQuery(PagedQuery[ActivityFilters, ActivityLogEntry]):
    def __init__(self, gateway: ActivityLogGateway, *, notifier: Notifier, per_page: int | None = None) -> None:
        super().__init__(
            gateway.list_records,
            filters=ActivityFilters(),
            per_page=per_page or settings.ACTIVITY_LOG_PAGE_SIZE,
            notifier=notifier,
            error_message="Failed to load activity logs",
            label="activity_log",
        )

    async def set_action(self, action: ActivityAction | str | None) -> FetchOutcome:
        if isinstance(action, str):
            action = ActivityAction(action) if action else None
        return await self.set_filters(ActivityFilters(action=action))
