"""Login suggestions for a new person record."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import settings
from ..domain_errors import DomainError
from ..gateway import DirectoryGateway
from ..schemas import LoginCandidate
from .request_sequencer import RequestSequencer

logger = logging.getLogger(__name__)

APPLIED = "applied"
SKIPPED = "skipped"
STALE = "stale"
FAILED = "failed"


@dataclass(frozen=True)
class GenerationOutcome:
    status: str
    candidates: tuple[LoginCandidate, ...] = ()
    error: DomainError | None = None

    @property
    def applied(self) -> bool:
        return self.status == APPLIED


class LoginCandidateGenerator:
    """Fetches candidate logins for a name pair and tracks which one is selected.

    Every request is tagged with a sequencer token. A response is applied only if
    its token is still the latest one, so a slow answer for a name the user has
    since changed never replaces the candidates for the current name. Failures are
    recorded and returned, never raised.
    """

    def __init__(
        self,
        gateway: DirectoryGateway,
        *,
        min_name_length: int | None = None,
        expected_count: int | None = None,
    ) -> None:
        self.gateway = gateway
        self.min_name_length = min_name_length or settings.LOGIN_NAME_MIN_LENGTH
        self.expected_count = expected_count or settings.LOGIN_CANDIDATE_COUNT
        self._sequencer = RequestSequencer()
        self._candidates: tuple[LoginCandidate, ...] = ()
        self._selected: str | None = None
        self._loading = False
        self._last_error: DomainError | None = None

    @property
    def candidates(self) -> tuple[LoginCandidate, ...]:
        return self._candidates

    @property
    def selected_login(self) -> str | None:
        return self._selected

    @property
    def selected_candidate(self) -> LoginCandidate | None:
        for candidate in self._candidates:
            if candidate.login == self._selected:
                return candidate
        return None

    @property
    def has_available(self) -> bool:
        return any(c.available for c in self._candidates)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def last_error(self) -> DomainError | None:
        return self._last_error

    def accepts(self, first_name: str, last_name: str) -> bool:
        """Both names must be long enough before suggestions are requested."""
        return (
            len((first_name or "").strip()) >= self.min_name_length
            and len((last_name or "").strip()) >= self.min_name_length
        )

    async def generate(self, first_name: str, last_name: str) -> GenerationOutcome:
        if not self.accepts(first_name, last_name):
            return GenerationOutcome(status=SKIPPED, candidates=self._candidates)

        first_name = first_name.strip()
        last_name = last_name.strip()
        token = self._sequencer.issue()
        self._loading = True
        logger.debug("login_candidates.request token=%s first=%s last=%s", token, first_name, last_name)

        try:
            result = await self.gateway.generate_login_candidates(first_name, last_name)
        except DomainError as exc:
            if not self._sequencer.is_current(token):
                logger.debug("login_candidates.stale_error token=%s", token)
                return GenerationOutcome(status=STALE, candidates=self._candidates, error=exc)
            self._loading = False
            self._last_error = exc
            logger.warning("login_candidates.failed code=%s message=%s", exc.code, exc.message)
            return GenerationOutcome(status=FAILED, candidates=self._candidates, error=exc)

        if not self._sequencer.is_current(token):
            logger.debug("login_candidates.stale token=%s latest=%s", token, self._sequencer.latest)
            return GenerationOutcome(status=STALE, candidates=self._candidates)

        candidates = tuple(result.suggestions)
        if len(candidates) != self.expected_count:
            logger.warning(
                "login_candidates.unexpected_count expected=%s got=%s",
                self.expected_count,
                len(candidates),
            )

        self._loading = False
        self._last_error = None
        self._candidates = candidates
        first_available = next((c for c in candidates if c.available), None)
        self._selected = first_available.login if first_available else None
        return GenerationOutcome(status=APPLIED, candidates=candidates)

    def select(self, login: str) -> LoginCandidate:
        for candidate in self._candidates:
            if candidate.login != login:
                continue
            if not candidate.available:
                raise DomainError(
                    code="LOGIN_NOT_AVAILABLE",
                    http_status=409,
                    message=f"Login @{login} is already taken",
                )
            self._selected = candidate.login
            return candidate
        raise DomainError(
            code="LOGIN_NOT_SUGGESTED",
            http_status=400,
            message=f"Login @{login} is not one of the suggestions",
        )

    def reset(self) -> None:
        """Drop candidates and selection; responses still in flight become stale."""
        self._sequencer.invalidate()
        self._candidates = ()
        self._selected = None
        self._loading = False
        self._last_error = None
