"""
User roles and role-based permission checks.

Roles are resolved once, server-side, from the backend's role table. They are
never derived from e-mail addresses or from metadata the user can edit.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .exceptions import AuthorizationError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    EMPLOYEE = "employee"
    CLIENT = "client"

    @classmethod
    def parse(cls, value: str | None) -> "Role":
        """
        Map a stored role value to a Role.

        Missing or unrecognised values fall back to CLIENT, the least
        privileged role.
        """
        if not value:
            return cls.CLIENT

        try:
            return cls(value.strip().lower())
        except ValueError:
            logger.warning("Unknown role %r, treating as client", value)
            return cls.CLIENT

    @property
    def is_staff(self) -> bool:
        return self in (Role.OWNER, Role.ADMIN, Role.EMPLOYEE)

    @property
    def can_manage_salon(self) -> bool:
        return self in (Role.OWNER, Role.ADMIN)


@dataclass(frozen=True)
class Actor:
    """The authenticated user an operation is performed on behalf of."""
    user_id: str
    role: Role


def require_role(actor: Actor, *allowed: Role) -> None:
    """
    Ensure the actor holds one of the allowed roles.

    Raises:
        AuthorizationError: If the actor's role is not allowed
    """
    if actor.role not in allowed:
        names = ", ".join(role.value for role in allowed)
        raise AuthorizationError(
            f"User {actor.user_id} with role '{actor.role.value}' is not allowed; requires one of: {names}"
        )
