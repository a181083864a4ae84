"""Pydantic schemas for the personnel API."""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class Role(str, Enum):
    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"


class ActivityAction(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESET_PASSWORD = "reset_password"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# Person schemas
class PersonBase(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    position: Optional[str] = None
    department: Optional[str] = None
    address: Optional[str] = None
    hire_date: Optional[date] = None

    @field_validator("email", "phone", "position", "department", "address", mode="before")
    @classmethod
    def _empty_string_is_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("hire_date", mode="before")
    @classmethod
    def _date_only(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        # Timestamps such as "2024-03-01T00:00:00.000000Z" carry the date in the first 10 chars.
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        return value


class PersonRecord(PersonBase):
    """One employee's persisted profile as returned by the API."""

    id: int
    first_name: str
    last_name: str
    login: str
    role: Role = Role.EMPLOYEE
    is_active: bool = False
    has_password: bool = False
    model_config = ConfigDict(extra="ignore")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class PersonCreate(PersonBase):
    first_name: str
    last_name: str
    login: str
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class PersonUpdate(PersonBase):
    """Partial update; names and login cannot change after creation."""

    role: Optional[Role] = None
    is_active: Optional[bool] = None


# Login suggestions
class LoginCandidate(BaseModel):
    login: str
    available: bool
    model_config = ConfigDict(frozen=True)


class CandidateSet(BaseModel):
    suggestions: list[LoginCandidate]


# Pagination
class Page(BaseModel, Generic[T]):
    """Laravel-style paginator payload."""

    items: list[T] = Field(default_factory=list, alias="data")
    current_page: int = 1
    per_page: int
    total: int = 0
    last_page: int = 1
    model_config = ConfigDict(populate_by_name=True)


# Activity log
class ActivityActor(BaseModel):
    id: Optional[int] = None
    first_name: str = ""
    last_name: str = ""
    login: str = ""
    model_config = ConfigDict(extra="ignore")


class ActivityLogEntry(BaseModel):
    id: int
    action: str
    description: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None
    user: Optional[ActivityActor] = None
    model_config = ConfigDict(extra="ignore")


# Statistics
class DirectoryStatistics(BaseModel):
    total_users: int = 0
    active_users: int = 0
    inactive_users: int = 0
    first_login_pending: int = 0
    admins: int = 0
    managers: int = 0
    employees: int = 0
    model_config = ConfigDict(extra="allow")


class ActivityStatistics(BaseModel):
    total_logs: int = 0
    logins: int = 0
    today_logs: int = 0
    password_resets: int = 0
    model_config = ConfigDict(extra="allow")


# Auth schemas
class LoginRequest(BaseModel):
    login: str
    password: str


class LoginResult(BaseModel):
    """Outcome of POST /login: either a session or a pending password setup."""

    token: Optional[str] = None
    user: Optional[PersonRecord] = None
    first_login: bool = False
    requires_password_reset: bool = False
    user_id: Optional[int] = None
