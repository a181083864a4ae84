"""Session context and role-based capabilities."""
from __future__ import annotations

import logging

from .domain_errors import DomainError
from .schemas import PersonRecord, Role

logger = logging.getLogger(__name__)


UI_PERMISSION_KEYS = (
    "canViewDirectory",
    "canCreateUsers",
    "canEditUsers",
    "canDeleteUsers",
    "canEditRoles",
    "canViewActivityLog",
    "canViewStatistics",
)

# Role permissions matrix
ROLE_PERMISSIONS: dict[Role, dict[str, bool]] = {
    Role.ADMIN: {
        "canViewDirectory": True,
        "canCreateUsers": True,
        "canEditUsers": True,
        "canDeleteUsers": True,
        "canEditRoles": True,
        "canViewActivityLog": True,
        "canViewStatistics": True,
    },
    Role.MANAGER: {
        "canViewDirectory": True,
        "canCreateUsers": False,
        "canEditUsers": True,
        "canDeleteUsers": False,
        "canEditRoles": False,
        "canViewActivityLog": False,
        "canViewStatistics": False,
    },
    Role.EMPLOYEE: {
        "canViewDirectory": True,
        "canCreateUsers": False,
        "canEditUsers": True,
        "canDeleteUsers": False,
        "canEditRoles": False,
        "canViewActivityLog": False,
        "canViewStatistics": False,
    },
}


def _coerce_role(role: Role | str | None) -> Role | None:
    if role is None or isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def is_admin(role: Role | str | None) -> bool:
    """Single capability derivation for administrative access."""
    return _coerce_role(role) is Role.ADMIN


def get_role_ui_permissions(role: Role | str | None) -> dict[str, bool]:
    """Full permission map for a role; unknown roles get nothing."""
    permissions = ROLE_PERMISSIONS.get(_coerce_role(role), {})
    return {key: bool(permissions.get(key, False)) for key in UI_PERMISSION_KEYS}


def check_permission(role: Role | str | None, permission: str) -> bool:
    """Check if a role has a specific permission."""
    return get_role_ui_permissions(role).get(permission, False)


class SessionContext:
    """Identity of the signed-in actor.

    Started once a login succeeds and ended on logout; collaborators that need
    the bearer token or the actor's capabilities receive this object explicitly.
    """

    def __init__(self) -> None:
        self._token: str | None = None
        self._actor: PersonRecord | None = None

    def start(self, *, token: str, actor: PersonRecord) -> None:
        if not token:
            raise DomainError(code="SESSION_TOKEN_MISSING", http_status=401, message="Missing session token")
        self._token = token
        self._actor = actor
        logger.info("session.start login=%s role=%s", actor.login, actor.role.value)

    def end(self) -> None:
        if self._actor is not None:
            logger.info("session.end login=%s", self._actor.login)
        self._token = None
        self._actor = None

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def actor(self) -> PersonRecord | None:
        return self._actor

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def role(self) -> Role | None:
        return self._actor.role if self._actor else None

    @property
    def is_admin(self) -> bool:
        return is_admin(self.role)

    @property
    def capabilities(self) -> dict[str, bool]:
        return get_role_ui_permissions(self.role)

    def can(self, permission: str) -> bool:
        return self.capabilities.get(permission, False)


def require_permission(session: SessionContext, permission: str) -> None:
    """Reject an operation the current actor is not entitled to."""
    if not session.can(permission):
        raise DomainError(
            code="PERMISSION_DENIED",
            http_status=403,
            message=f"Permission denied: {permission} required",
        )
