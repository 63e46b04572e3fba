"""Identity lookup contract consumed by the workflow."""

from __future__ import annotations

from typing import Iterable, Mapping, Protocol

from care_connections.models.user import User, UserRole


class UserDirectory(Protocol):
    """Read-only, authoritative source of users."""

    def find_user(self, user_id: str) -> User | None:
        ...

    def has_role(self, user: User, role: UserRole | str) -> bool:
        ...

    def list_users(self, role: UserRole | str | None = None) -> list[User]:
        ...


class InMemoryUserDirectory:
    """Mapping-backed directory for embedding the workflow without an identity service."""

    def __init__(self, users: Iterable[User] | Mapping[str, User] = ()):
        if isinstance(users, Mapping):
            self._users = dict(users)
        else:
            self._users = {user.id: user for user in users}

    def find_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def has_role(self, user: User, role: UserRole | str) -> bool:
        return user.has_role(role)

    def list_users(self, role: UserRole | str | None = None) -> list[User]:
        """Users in insertion order, optionally restricted to ``role``."""
        if role is None:
            return list(self._users.values())
        return [user for user in self._users.values() if user.has_role(role)]

    def add(self, user: User) -> User:
        self._users[user.id] = user
        return user

    def __len__(self) -> int:
        return len(self._users)


__all__ = ["InMemoryUserDirectory", "UserDirectory"]
