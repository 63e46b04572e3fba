"""Read-only view of users owned by the identity subsystem."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class UserRole(str, Enum):
    CHILD = "child"
    GUARDIAN = "guardian"
    THERAPIST = "therapist"
    ADMIN = "admin"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class User(BaseModel):
    """A platform user as reported by the identity lookup.

    ``guardian_id`` is only meaningful for children and points at the guardian
    who owns the child account.
    """

    id: str
    role: UserRole
    status: UserStatus = UserStatus.ACTIVE
    guardian_id: str | None = None
    name: str | None = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def has_role(self, role: UserRole | str) -> bool:
        return self.role == UserRole(role)


__all__ = ["User", "UserRole", "UserStatus"]
