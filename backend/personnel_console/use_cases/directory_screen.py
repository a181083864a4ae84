"""Directory page: list state, editor and delete flow wired together."""
from __future__ import annotations

import logging

from ..auth import SessionContext, require_permission
from ..domain_errors import DomainError
from ..gateway import DirectoryGateway
from ..schemas import PersonRecord
from ..services.directory_query import DirectoryQueryController
from ..services.directory_view import ListView, render_list
from ..services.notifications import Notifier
from ..services.paged_query import FetchOutcome
from .record_editor import EditorDraft, RecordEditor

logger = logging.getLogger(__name__)


class DirectoryScreen:
    def __init__(
        self,
        gateway: DirectoryGateway,
        session: SessionContext,
        notifier: Notifier,
        *,
        query: DirectoryQueryController | None = None,
        editor: RecordEditor | None = None,
    ) -> None:
        self.gateway = gateway
        self.session = session
        self.notifier = notifier
        self.query = query or DirectoryQueryController(gateway, notifier=notifier)
        self.editor = editor or RecordEditor(gateway, session, notifier)
        self.editor.on_saved = self._on_saved
        self._pending_delete: PersonRecord | None = None

    def view(self) -> ListView:
        return render_list(self.query.records, self.query.cursor, self.query.loading, self.session.capabilities)

    async def start(self) -> FetchOutcome:
        return await self.query.load()

    # Editor intents

    def open_create(self) -> EditorDraft:
        require_permission(self.session, "canCreateUsers")
        return self.editor.open(None)

    def open_edit(self, record: PersonRecord) -> EditorDraft:
        require_permission(self.session, "canEditUsers")
        return self.editor.open(record)

    def cancel_edit(self) -> None:
        self.editor.close()

    async def _on_saved(self, _record: PersonRecord) -> None:
        await self.query.refresh()

    # Delete flow

    @property
    def pending_delete(self) -> PersonRecord | None:
        return self._pending_delete

    def request_delete(self, record: PersonRecord) -> str:
        """First step: returns the confirmation prompt to show."""
        require_permission(self.session, "canDeleteUsers")
        self._pending_delete = record
        return f"Are you sure you want to delete {record.full_name}?"

    def cancel_delete(self) -> None:
        self._pending_delete = None

    async def confirm_delete(self) -> FetchOutcome | None:
        record = self._pending_delete
        if record is None:
            raise DomainError(code="NO_PENDING_DELETE", http_status=400, message="Nothing to delete")
        self._pending_delete = None

        records = self.query.records
        was_only_row = len(records) == 1 and records[0].id == record.id

        try:
            await self.gateway.delete_record(record.id)
        except DomainError as exc:
            logger.warning("directory.delete_failed record_id=%s code=%s", record.id, exc.code)
            self.notifier.error(exc.message or "Failed to delete user")
            return None

        self.notifier.success("User deleted")
        cursor = self.query.cursor
        if was_only_row and cursor.current_page > 1:
            return await self.query.go_to_page(cursor.current_page - 1)
        return await self.query.refresh()
