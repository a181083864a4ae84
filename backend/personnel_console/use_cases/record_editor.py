"""Create/edit form for a single person record."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from pydantic import ValidationError

from ..auth import SessionContext
from ..domain_errors import VALIDATION_FAILED, DomainError
from ..gateway import DirectoryGateway
from ..schemas import PersonCreate, PersonRecord, PersonUpdate, Role
from ..services import login_candidates
from ..services.directory_query import parse_active, parse_role
from ..services.login_candidates import GenerationOutcome, LoginCandidateGenerator
from ..services.notifications import Notifier

logger = logging.getLogger(__name__)

CREATE = "create"
EDIT = "edit"

SAVED = "saved"
INVALID = "invalid"
BLOCKED = "blocked"
FAILED = "failed"

IDENTITY_FIELDS = ("first_name", "last_name")
ADMIN_FIELDS = ("role", "is_active")
CONTACT_FIELDS = ("email", "phone", "position", "department", "address", "hire_date")


@dataclass
class EditorDraft:
    """Working copy of the form fields."""

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    position: str = ""
    department: str = ""
    address: str = ""
    hire_date: str = ""
    role: Role = Role.EMPLOYEE
    is_active: bool = False
    selected_login: str = ""

    @classmethod
    def from_record(cls, record: PersonRecord) -> "EditorDraft":
        return cls(
            first_name=record.first_name,
            last_name=record.last_name,
            email=record.email or "",
            phone=record.phone or "",
            position=record.position or "",
            department=record.department or "",
            address=record.address or "",
            hire_date=record.hire_date.isoformat() if record.hire_date else "",
            role=record.role,
            is_active=record.is_active,
            selected_login=record.login,
        )


_DRAFT_FIELDS = {f.name for f in fields(EditorDraft)}


@dataclass(frozen=True)
class RequestCandidates:
    """Effect: ask for login suggestions for this name pair."""

    first_name: str
    last_name: str


def candidate_rule(*, mode: str, changed_field: str, draft: EditorDraft) -> RequestCandidates | None:
    """Decide whether a field change should trigger a suggestion request."""
    if mode != CREATE or changed_field not in IDENTITY_FIELDS:
        return None
    return RequestCandidates(first_name=draft.first_name, last_name=draft.last_name)


def _coerce(name: str, value: Any) -> Any:
    """Normalise a form value for the draft; bad role/status values raise ``INVALID_FIELD_VALUE``."""
    try:
        if name == "role":
            role = parse_role(value)
            if role is None:
                raise ValueError("role is required")
            return role
        if name == "is_active":
            active = parse_active(value)
            if active is None:
                raise ValueError("status is required")
            return active
    except ValueError as exc:
        raise DomainError(
            code="INVALID_FIELD_VALUE",
            http_status=400,
            message=f"Invalid value for {name}: {value!r}",
        ) from exc
    return "" if value is None else value


def _payload_error(exc: ValidationError) -> DomainError:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field_name = ".".join(str(part) for part in error["loc"]) or "payload"
        errors.setdefault(field_name, []).append(f"{field_name}: {error['msg']}")
    return DomainError(
        code=VALIDATION_FAILED,
        http_status=422,
        message="The form contains invalid values",
        details={"errors": errors},
    )


@dataclass(frozen=True)
class SubmitOutcome:
    status: str
    record: PersonRecord | None = None
    error: DomainError | None = None
    messages: tuple[str, ...] = field(default_factory=tuple)

    @property
    def saved(self) -> bool:
        return self.status == SAVED


class RecordEditor:
    """One modal form. Only one record can be open at a time.

    ``change`` updates the draft synchronously and returns the task of any
    suggestion request the change triggered, so it must be called from inside
    the running event loop.
    """

    def __init__(
        self,
        gateway: DirectoryGateway,
        session: SessionContext,
        notifier: Notifier,
        *,
        candidates: LoginCandidateGenerator | None = None,
        on_saved: Callable[[PersonRecord], Awaitable[Any]] | None = None,
    ) -> None:
        self.gateway = gateway
        self.session = session
        self.notifier = notifier
        self.candidates = candidates or LoginCandidateGenerator(gateway)
        self.on_saved = on_saved
        self._mode: str | None = None
        self._record: PersonRecord | None = None
        self._draft: EditorDraft | None = None
        self._saving = False
        self._pending: set[asyncio.Task[GenerationOutcome]] = set()

    # Lifecycle

    def open(self, record: PersonRecord | None = None) -> EditorDraft:
        if self.is_open:
            raise DomainError(code="EDITOR_ALREADY_OPEN", http_status=409, message="Another record is being edited")
        self._mode = EDIT if record is not None else CREATE
        self._record = record
        self._draft = EditorDraft.from_record(record) if record is not None else EditorDraft()
        self.candidates.reset()
        logger.debug("editor.open mode=%s record_id=%s", self._mode, record.id if record else None)
        return self._draft

    def close(self) -> None:
        """Discard the draft; suggestion responses still in flight are ignored."""
        self._mode = None
        self._record = None
        self._draft = None
        self._saving = False
        self.candidates.reset()

    # Read side

    @property
    def is_open(self) -> bool:
        return self._draft is not None

    @property
    def mode(self) -> str | None:
        return self._mode

    @property
    def is_create(self) -> bool:
        return self._mode == CREATE

    @property
    def record(self) -> PersonRecord | None:
        return self._record

    @property
    def draft(self) -> EditorDraft:
        return self._require_draft()

    @property
    def saving(self) -> bool:
        return self._saving

    @property
    def readonly_fields(self) -> frozenset[str]:
        if self._mode == EDIT:
            return frozenset({*IDENTITY_FIELDS, "selected_login"})
        return frozenset()

    @property
    def visible_fields(self) -> tuple[str, ...]:
        visible = (*IDENTITY_FIELDS, *CONTACT_FIELDS)
        if self.session.is_admin:
            visible += ADMIN_FIELDS
        return visible

    @property
    def can_submit(self) -> bool:
        if not self.is_open or self._saving or self.candidates.loading:
            return False
        return not self.validate()

    # Events

    def change(self, name: str, value: Any) -> asyncio.Task[GenerationOutcome] | None:
        draft = self._require_draft()
        if name == "selected_login":
            self.select_login(value)
            return None
        if name not in _DRAFT_FIELDS:
            raise DomainError(code="UNKNOWN_FIELD", http_status=400, message=f"Unknown field: {name}")
        if name in self.readonly_fields:
            raise DomainError(code="FIELD_READ_ONLY", http_status=400, message=f"{name} cannot be changed")
        if name in ADMIN_FIELDS and not self.session.is_admin:
            raise DomainError(code="FIELD_READ_ONLY", http_status=403, message=f"{name} is restricted to administrators")

        setattr(draft, name, _coerce(name, value))

        effect = candidate_rule(mode=self._mode or "", changed_field=name, draft=draft)
        if effect is None or not self.candidates.accepts(effect.first_name, effect.last_name):
            return None
        task = asyncio.get_running_loop().create_task(self._request_candidates(effect))
        self._pending.add(task)
        task.add_done_callback(self._forget)
        return task

    def select_login(self, login: str) -> None:
        draft = self._require_draft()
        if not self.is_create:
            raise DomainError(code="FIELD_READ_ONLY", http_status=400, message="Login cannot be changed")
        self.candidates.select(login)
        draft.selected_login = login

    async def refresh_candidates(self) -> GenerationOutcome:
        draft = self._require_draft()
        return await self._request_candidates(RequestCandidates(draft.first_name, draft.last_name))

    async def _request_candidates(self, effect: RequestCandidates) -> GenerationOutcome:
        outcome = await self.candidates.generate(effect.first_name, effect.last_name)
        if outcome.applied and self._draft is not None:
            self._draft.selected_login = self.candidates.selected_login or ""
        elif outcome.status == login_candidates.FAILED:
            self.notifier.error("Login suggestions are unavailable")
        return outcome

    # Submission

    def validate(self) -> list[str]:
        draft = self._require_draft()
        problems: list[str] = []
        if not draft.first_name.strip():
            problems.append("First name is required")
        if not draft.last_name.strip():
            problems.append("Last name is required")
        if self.is_create:
            selected = self.candidates.selected_candidate
            if not draft.selected_login:
                problems.append("You must select a login")
            elif selected is None or selected.login != draft.selected_login or not selected.available:
                problems.append("The selected login is not available")
        return problems

    def build_payload(self) -> dict[str, Any]:
        """Map the draft onto the body expected by create/update."""
        draft = self._require_draft()
        values = {name: getattr(draft, name) for name in CONTACT_FIELDS}
        exclude = set() if self.session.is_admin else set(ADMIN_FIELDS)
        if self.session.is_admin:
            values.update(role=draft.role, is_active=draft.is_active)

        if self.is_create:
            body = PersonCreate(
                first_name=draft.first_name.strip(),
                last_name=draft.last_name.strip(),
                login=draft.selected_login,
                **values,
            )
        else:
            body = PersonUpdate(**values)
        return body.model_dump(mode="json", exclude=exclude)

    async def submit(self) -> SubmitOutcome:
        draft = self._require_draft()
        if self._saving:
            return SubmitOutcome(status=BLOCKED, messages=("A save is already in progress",))
        if self.candidates.loading and self.is_create:
            return SubmitOutcome(status=BLOCKED, messages=("Login suggestions are still loading",))

        problems = self.validate()
        if problems:
            self._notify_all(problems)
            return SubmitOutcome(status=INVALID, messages=tuple(problems))

        try:
            payload = self.build_payload()
        except ValidationError as exc:
            error = _payload_error(exc)
            messages = error.field_messages()
            self._notify_all(messages)
            return SubmitOutcome(status=INVALID, error=error, messages=tuple(messages))

        mode = self._mode
        record_id = self._record.id if self._record is not None else None
        self._saving = True
        try:
            if mode == CREATE:
                record = await self.gateway.create_record(payload)
            else:
                record = await self.gateway.update_record(record_id, payload)
        except DomainError as exc:
            messages = exc.field_messages() if exc.is_validation_error else []
            if not messages:
                messages = [exc.message or "The operation failed"]
            self._notify_all(messages)
            logger.warning("editor.submit_failed mode=%s code=%s", mode, exc.code)
            return SubmitOutcome(status=FAILED, error=exc, messages=tuple(messages))
        finally:
            if self._draft is draft:
                self._saving = False

        logger.info("editor.saved mode=%s record_id=%s", mode, record.id)
        # The form may have been closed, or reopened on another record, while the save was in flight.
        if self._draft is draft:
            self.notifier.success("User created" if mode == CREATE else "User updated")
            self.close()
        if self.on_saved is not None:
            await self.on_saved(record)
        return SubmitOutcome(status=SAVED, record=record)

    async def settle(self) -> None:
        """Wait for every suggestion request started by ``change``."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _forget(self, task: asyncio.Task[GenerationOutcome]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("editor.candidates_task_failed", exc_info=task.exception())

    def _notify_all(self, messages: list[str]) -> None:
        for message in messages:
            self.notifier.error(message)

    def _require_draft(self) -> EditorDraft:
        if self._draft is None:
            raise DomainError(code="EDITOR_NOT_OPEN", http_status=409, message="No record is open for editing")
        return self._draft

    def snapshot(self) -> dict[str, Any]:
        """Plain copy of the draft (for rendering)."""
        return asdict(self._require_draft())
