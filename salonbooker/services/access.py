"""
Resolves the acting user's role at the trust boundary.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from ..domain.roles import Actor, Role

logger = logging.getLogger(__name__)


class RoleStoreProtocol(Protocol):
    async def get_user_role(self, user_id: str) -> Optional[str]:
        """Return the role stored server-side for the user, or None."""


class AccessService:
    """Looks up roles from the backend's role table, once per request."""

    def __init__(self, roles: RoleStoreProtocol) -> None:
        self._roles = roles

    async def resolve_actor(self, user_id: str) -> Actor:
        stored = await self._roles.get_user_role(user_id)
        role = Role.parse(stored)
        logger.debug("Resolved user %s to role %s", user_id, role.value)
        return Actor(user_id=user_id, role=role)
