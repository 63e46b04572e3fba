"""Role, status and ownership checks for connection participants."""

from __future__ import annotations

from care_connections.errors import (
    ConnectionWorkflowError,
    InactiveUserError,
    InvalidRoleError,
    OwnershipError,
)
from care_connections.models.user import User, UserRole

CLIENT_ROLES = frozenset({UserRole.GUARDIAN, UserRole.CHILD})


class EligibilityChecker:
    """Pure validation of users taking part in a connection.

    ``validate_*`` methods raise the specific error kind; ``is_eligible_*``
    methods answer the same question as a boolean.
    """

    def validate_therapist(self, user: User) -> User:
        if user.role != UserRole.THERAPIST:
            raise InvalidRoleError("User must have therapist role.", user_id=user.id, role=user.role.value)
        self._require_active(user)
        return user

    def validate_guardian(self, user: User) -> User:
        if user.role != UserRole.GUARDIAN:
            raise InvalidRoleError("User must have guardian role.", user_id=user.id, role=user.role.value)
        self._require_active(user)
        return user

    def validate_client(self, user: User, required_role: UserRole | str | None = None) -> User:
        allowed = CLIENT_ROLES if required_role is None else frozenset({UserRole(required_role)})
        if user.role not in allowed:
            expected = " or ".join(sorted(role.value for role in allowed))
            raise InvalidRoleError(
                f"User must have {expected} role.", user_id=user.id, role=user.role.value
            )
        self._require_active(user)
        return user

    def validate_child_of(self, child: User, guardian: User) -> User:
        """Ensure ``child`` is an active child account owned by ``guardian``."""
        self.validate_client(child, UserRole.CHILD)
        if child.guardian_id != guardian.id:
            raise OwnershipError(child_id=child.id, guardian_id=guardian.id)
        return child

    def is_eligible_therapist(self, user: User) -> bool:
        return self._passes(self.validate_therapist, user)

    def is_eligible_client(self, user: User, required_role: UserRole | str | None = None) -> bool:
        return self._passes(self.validate_client, user, required_role)

    @staticmethod
    def _require_active(user: User) -> None:
        if not user.is_active:
            raise InactiveUserError(
                f"User account is {user.status.value}.", user_id=user.id, status=user.status.value
            )

    @staticmethod
    def _passes(check, *args) -> bool:
        try:
            check(*args)
        except ConnectionWorkflowError:
            return False
        return True


__all__ = ["CLIENT_ROLES", "EligibilityChecker"]
