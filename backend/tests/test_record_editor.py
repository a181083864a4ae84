from __future__ import annotations

import asyncio
from typing import Any

import pytest

from personnel_console.auth import SessionContext
from personnel_console.domain_errors import NETWORK_ERROR, VALIDATION_FAILED, DomainError
from personnel_console.schemas import CandidateSet, LoginCandidate, PersonRecord, Role
from personnel_console.services import login_candidates
from personnel_console.services.notifications import Notifier
from personnel_console.use_cases.record_editor import (
    BLOCKED,
    CREATE,
    EDIT,
    FAILED,
    INVALID,
    SAVED,
    RecordEditor,
)


def _person(**overrides: Any) -> PersonRecord:
    data = {
        "id": 7,
        "first_name": "Marie",
        "last_name": "Curie",
        "login": "mcurie",
        "email": "marie@example.org",
        "phone": "",
        "position": "Physicist",
        "department": "Research",
        "address": None,
        "hire_date": "1903-06-25",
        "role": "employee",
        "is_active": True,
        "has_password": True,
    }
    data.update(overrides)
    return PersonRecord.model_validate(data)


def _session(role: Role) -> SessionContext:
    session = SessionContext()
    session.start(token="token-1", actor=_person(id=1, login="actor", role=role.value))
    return session


def _candidates(*pairs: tuple[str, bool]) -> CandidateSet:
    return CandidateSet(suggestions=[LoginCandidate(login=login, available=available) for login, available in pairs])


MARIE_CURIE = _candidates(
    ("mcurie", False),
    ("marie.curie", True),
    ("curiem", False),
    ("mariec", True),
    ("m.curie", True),
)
JEAN_ANSELM = _candidates(
    ("janselm", True),
    ("jean.anselm", True),
    ("anselmj", True),
    ("jeana", True),
    ("j.anselm", True),
)
JO_AN = _candidates(("jan", True), ("jo.an", True), ("anj", True), ("joa", True), ("j.an", True))


class _GatewayStub:
    def __init__(self, *, suggestions: dict[tuple[str, str], CandidateSet] | None = None, hold: bool = False) -> None:
        self.suggestions = suggestions or {}
        self.hold = hold
        self.pending: list[tuple[tuple[str, str], asyncio.Future]] = []
        self.suggestion_error: DomainError | None = None
        self.created: list[dict[str, Any]] = []
        self.updated: list[tuple[int, dict[str, Any]]] = []
        self.save_error: DomainError | None = None
        self.held_save: asyncio.Future | None = None

    async def generate_login_candidates(self, first_name: str, last_name: str) -> CandidateSet:
        if self.hold:
            future = asyncio.get_running_loop().create_future()
            self.pending.append(((first_name, last_name), future))
            return await future
        if self.suggestion_error is not None:
            raise self.suggestion_error
        return self.suggestions[(first_name, last_name)]

    async def create_record(self, payload: dict[str, Any]) -> PersonRecord:
        self.created.append(dict(payload))
        if self.save_error is not None:
            raise self.save_error
        return _person(id=99, first_name=payload["first_name"], last_name=payload["last_name"], login=payload["login"])

    async def update_record(self, record_id: int, payload: dict[str, Any]) -> PersonRecord:
        self.updated.append((record_id, dict(payload)))
        if self.held_save is not None:
            await self.held_save
        if self.save_error is not None:
            raise self.save_error
        return _person(id=record_id)


class _SavedSpy:
    def __init__(self) -> None:
        self.records: list[PersonRecord] = []

    async def __call__(self, record: PersonRecord) -> None:
        self.records.append(record)


def _editor(gateway: _GatewayStub, role: Role = Role.ADMIN, notifier: Notifier | None = None) -> RecordEditor:
    return RecordEditor(gateway, _session(role), notifier or Notifier(), on_saved=_SavedSpy())


def test_create_submit_without_selected_login_makes_no_gateway_call() -> None:
    async def scenario() -> None:
        gateway = _GatewayStub()
        notifier = Notifier()
        editor = _editor(gateway, notifier=notifier)
        editor.open(None)
        editor.change("first_name", "Marie")
        editor.change("last_name", "C")

        outcome = await editor.submit()

        assert outcome.status == INVALID
        assert "You must select a login" in outcome.messages
        assert gateway.created == []
        assert editor.is_open
        assert notifier.messages("error") == ["You must select a login"]

    asyncio.run(scenario())


def test_create_submit_blocked_when_no_candidate_is_available() -> None:
    async def scenario() -> None:
        taken = _candidates(*[(f"login{i}", False) for i in range(5)])
        gateway = _GatewayStub(suggestions={("Ada", "Lovelace"): taken})
        editor = _editor(gateway)
        editor.open(None)
        editor.change("first_name", "Ada")
        await editor.change("last_name", "Lovelace")

        assert editor.draft.selected_login == ""
        assert editor.can_submit is False
        outcome = await editor.submit()

        assert outcome.status == INVALID
        assert gateway.created == []

    asyncio.run(scenario())


def test_typing_names_fills_default_login_and_create_maps_it_to_login() -> None:
    async def scenario() -> None:
        gateway = _GatewayStub(suggestions={("Marie", "Curie"): MARIE_CURIE})
        editor = _editor(gateway)
        on_saved = editor.on_saved
        editor.open(None)
        assert editor.mode == CREATE

        assert editor.change("first_name", "Marie") is None
        task = editor.change("last_name", "Curie")
        await task
        assert editor.draft.selected_login == "marie.curie"

        editor.change("email", "marie@example.org")
        editor.change("hire_date", "2024-03-01")
        assert editor.can_submit

        outcome = await editor.submit()

        assert outcome.status == SAVED
        assert gateway.created == [
            {
                "first_name": "Marie",
                "last_name": "Curie",
                "login": "marie.curie",
                "email": "marie@example.org",
                "phone": None,
                "position": None,
                "department": None,
                "address": None,
                "hire_date": "2024-03-01",
                "role": "employee",
                "is_active": False,
            }
        ]
        assert editor.is_open is False
        assert [r.id for r in on_saved.records] == [99]

    asyncio.run(scenario())


def test_user_can_pick_another_available_login() -> None:
    async def scenario() -> None:
        gateway = _GatewayStub(suggestions={("Marie", "Curie"): MARIE_CURIE})
        editor = _editor(gateway)
        editor.open(None)
        editor.change("first_name", "Marie")
        await editor.change("last_name", "Curie")

        editor.change("selected_login", "m.curie")
        with pytest.raises(DomainError):
            editor.select_login("mcurie")

        await editor.submit()

        assert gateway.created[0]["login"] == "m.curie"
        assert "selected_login" not in gateway.created[0]

    asyncio.run(scenario())


def test_only_latest_name_pair_suggestions_are_shown() -> None:
    async def scenario() -> None:
        gateway = _GatewayStub(hold=True)
        editor = _editor(gateway)
        editor.open(None)

        editor.change("first_name", "Jo")
        first = editor.change("last_name", "An")
        editor.change("first_name", "Jean")
        second = editor.change("last_name", "Anselm")

        await asyncio.sleep(0)
        requested = [names for names, _ in gateway.pending]
        assert requested[0] == ("Jo", "An")
        assert requested[-1] == ("Jean", "Anselm")

        for names, future in gateway.pending[1:]:
            if names == ("Jean", "Anselm"):
                future.set_result(JEAN_ANSELM)
            else:
                future.set_result(_candidates(*[(f"{names[0]}{i}", True) for i in range(5)]))
        await second
        gateway.pending[0][1].set_result(JO_AN)
        await first

        assert editor.candidates.candidates == tuple(JEAN_ANSELM.suggestions)
        assert editor.draft.selected_login == "janselm"

    asyncio.run(scenario())


def test_submit_is_blocked_while_suggestions_load() -> None:
    async def scenario() -> None:
        gateway = _GatewayStub(hold=True)
        editor = _editor(gateway)
        editor.open(None)
        editor.change("first_name", "Marie")
        task = editor.change("last_name", "Curie")
        await asyncio.sleep(0)

        outcome = await editor.submit()
        assert outcome.status == BLOCKED
        assert gateway.created == []

        gateway.pending[0][1].set_result(MARIE_CURIE)
        await task
        assert editor.can_submit

    asyncio.run(scenario())


def test_suggestion_failure_notifies_and_keeps_form_usable() -> None:
    async def scenario() -> None:
        notifier = Notifier()
        gateway = _GatewayStub()
        gateway.suggestion_error = DomainError(code=NETWORK_ERROR, http_status=0, message="offline")
        editor = _editor(gateway, notifier=notifier)
        editor.open(None)
        editor.change("first_name", "Marie")

        outcome = await editor.change("last_name", "Curie")

        assert outcome.status == login_candidates.FAILED
        assert editor.is_open
        assert editor.candidates.candidates == ()
        assert notifier.messages("error") == ["Login suggestions are unavailable"]

    asyncio.run(scenario())


def test_closing_discards_in_flight_suggestions_and_draft() -> None:
    async def scenario() -> None:
        gateway = _GatewayStub(hold=True)
        editor = _editor(gateway)
        editor.open(None)
        editor.change("first_name", "Marie")
        task = editor.change("last_name", "Curie")
        await asyncio.sleep(0)

        editor.close()
        gateway.pending[0][1].set_result(MARIE_CURIE)
        outcome = await task

        assert outcome.status == login_candidates.STALE
        assert editor.is_open is False
        assert editor.candidates.candidates == ()
        draft = editor.open(None)
        assert draft.first_name == "" and draft.selected_login == ""

    asyncio.run(scenario())


def test_edit_submit_never_sends_identity_fields() -> None:
    async def scenario() -> None:
        gateway = _GatewayStub()
        editor = _editor(gateway)
        record = _person()
        draft = editor.open(record)
        assert editor.mode == EDIT
        assert draft.selected_login == "mcurie"
        assert draft.hire_date == "1903-06-25"

        with pytest.raises(DomainError) as read_only:
            editor.change("first_name", "Maria")
        assert read_only.value.code == "FIELD_READ_ONLY"
        with pytest.raises(DomainError):
            editor.change("selected_login", "other")

        # Even a tampered draft cannot leak identity changes into the update.
        draft.first_name = "Maria"
        draft.last_name = "Sklodowska"
        draft.selected_login = "msklodowska"
        editor.change("department", "Chemistry")
        editor.change("role", "manager")

        outcome = await editor.submit()

        assert outcome.saved
        record_id, payload = gateway.updated[0]
        assert record_id == 7
        assert not {"first_name", "last_name", "login", "selected_login"} & set(payload)
        assert payload["department"] == "Chemistry"
        assert payload["role"] == "manager"
        assert payload["phone"] is None
        assert gateway.created == []

    asyncio.run(scenario())


def test_non_admin_cannot_touch_role_or_active_flag() -> None:
    async def scenario() -> None:
        gateway = _GatewayStub()
        editor = _editor(gateway, role=Role.MANAGER)
        editor.open(_person(role="admin", is_active=True))

        assert "role" not in editor.visible_fields
        with pytest.raises(DomainError):
            editor.change("role", "employee")
        with pytest.raises(DomainError):
            editor.change("is_active", False)

        editor.change("phone", "+33 1 23 45 67 89")
        await editor.submit()

        _, payload = gateway.updated[0]
        assert "role" not in payload
        assert "is_active" not in payload
        assert payload["phone"] == "+33 1 23 45 67 89"

    asyncio.run(scenario())


def test_server_validation_errors_surface_each_message_and_keep_input() -> None:
    async def scenario() -> None:
        notifier = Notifier()
        gateway = _GatewayStub()
        gateway.save_error = DomainError(
            code=VALIDATION_FAILED,
            http_status=422,
            message="The given data was invalid.",
            details={
                "errors": {
                    "email": ["The email has already been taken."],
                    "phone": ["The phone may not be greater than 20 characters.", "The phone format is invalid."],
                }
            },
        )
        editor = _editor(gateway, notifier=notifier)
        editor.open(_person())
        editor.change("email", "taken@example.org")
        editor.change("phone", "x" * 30)

        outcome = await editor.submit()

        assert outcome.status == FAILED
        assert notifier.messages("error") == [
            "The email has already been taken.",
            "The phone may not be greater than 20 characters.",
            "The phone format is invalid.",
        ]
        assert editor.is_open
        assert editor.saving is False
        assert editor.draft.email == "taken@example.org"
        assert editor.draft.phone == "x" * 30
        assert editor.on_saved.records == []

    asyncio.run(scenario())


def test_login_taken_between_suggestion_and_submit_is_a_validation_error() -> None:
    async def scenario() -> None:
        notifier = Notifier()
        gateway = _GatewayStub(suggestions={("Marie", "Curie"): MARIE_CURIE})
        gateway.save_error = DomainError(
            code=VALIDATION_FAILED,
            http_status=422,
            message="invalid",
            details={"errors": {"login": ["The login has already been taken."]}},
        )
        editor = _editor(gateway, notifier=notifier)
        editor.open(None)
        editor.change("first_name", "Marie")
        await editor.change("last_name", "Curie")

        outcome = await editor.submit()

        assert outcome.status == FAILED
        assert notifier.messages("error") == ["The login has already been taken."]
        assert editor.draft.selected_login == "marie.curie"

    asyncio.run(scenario())


def test_non_validation_failure_shows_server_message() -> None:
    async def scenario() -> None:
        notifier = Notifier()
        gateway = _GatewayStub()
        gateway.save_error = DomainError(code="HTTP_403", http_status=403, message="This action is unauthorized.")
        editor = _editor(gateway, notifier=notifier)
        editor.open(_person())

        outcome = await editor.submit()

        assert outcome.status == FAILED
        assert notifier.messages("error") == ["This action is unauthorized."]
        assert editor.is_open

    asyncio.run(scenario())


def test_only_one_editor_can_be_open() -> None:
    editor = _editor(_GatewayStub())
    editor.open(None)

    with pytest.raises(DomainError) as exc:
        editor.open(_person())

    assert exc.value.code == "EDITOR_ALREADY_OPEN"
    assert editor.mode == CREATE


def test_unparseable_hire_date_is_reported_without_a_gateway_call() -> None:
    async def scenario() -> None:
        notifier = Notifier()
        gateway = _GatewayStub()
        editor = _editor(gateway, notifier=notifier)
        editor.open(_person())
        editor.change("hire_date", "25/06/1903")

        outcome = await editor.submit()

        assert outcome.status == INVALID
        assert outcome.error.code == VALIDATION_FAILED
        assert list(outcome.error.field_errors()) == ["hire_date"]
        assert len(notifier.messages("error")) == 1
        assert notifier.messages("error")[0].startswith("hire_date: ")
        assert gateway.updated == []
        assert editor.is_open
        assert editor.saving is False
        assert editor.draft.hire_date == "25/06/1903"

    asyncio.run(scenario())


def test_late_save_does_not_close_a_newly_opened_record() -> None:
    async def scenario() -> None:
        notifier = Notifier()
        gateway = _GatewayStub()
        gateway.held_save = asyncio.get_running_loop().create_future()
        editor = _editor(gateway, notifier=notifier)
        editor.open(_person(id=7))
        editor.change("department", "Chemistry")
        first_save = asyncio.create_task(editor.submit())
        await asyncio.sleep(0)
        assert editor.saving

        editor.close()
        editor.open(_person(id=8, first_name="Pierre", login="pcurie"))
        editor.change("position", "Lab director")

        gateway.held_save.set_result(None)
        outcome = await first_save

        assert outcome.saved
        assert editor.is_open
        assert editor.record.id == 8
        assert editor.draft.position == "Lab director"
        assert editor.saving is False
        assert notifier.messages("success") == []
        assert [r.id for r in editor.on_saved.records] == [7]

    asyncio.run(scenario())


def test_suggestion_task_is_tracked_when_caller_drops_it() -> None:
    async def scenario() -> None:
        gateway = _GatewayStub(suggestions={("Marie", "Curie"): MARIE_CURIE})
        editor = _editor(gateway)
        editor.open(None)
        editor.change("first_name", "Marie")
        editor.change("last_name", "Curie")

        await editor.settle()

        assert editor.draft.selected_login == "marie.curie"
        await editor.settle()

    asyncio.run(scenario())


@pytest.mark.parametrize(("raw", "expected"), [("0", False), ("1", True), (False, False), ("active", True)])
def test_active_flag_accepts_wire_values(raw, expected: bool) -> None:
    editor = _editor(_GatewayStub())
    editor.open(_person(is_active=not expected))

    editor.change("is_active", raw)

    assert editor.draft.is_active is expected


@pytest.mark.parametrize(("name", "raw"), [("role", "boss"), ("role", ""), ("is_active", "maybe"), ("is_active", "")])
def test_bad_role_or_status_value_is_a_domain_error(name: str, raw: str) -> None:
    editor = _editor(_GatewayStub())
    editor.open(_person())

    with pytest.raises(DomainError) as exc:
        editor.change(name, raw)

    assert exc.value.code == "INVALID_FIELD_VALUE"
    assert editor.draft.role == Role.EMPLOYEE
    assert editor.draft.is_active is True
