"""
In-app notifications of the acting user.
"""

from __future__ import annotations

from typing import List, Protocol

from ..domain.models import Notification
from ..domain.roles import Actor


class NotificationStoreProtocol(Protocol):
    async def get_notifications(self, user_id: str) -> List[Notification]:
        """The user's notifications, newest first."""

    async def mark_notification_read(self, notification_id: str, user_id: str) -> None:
        """Raises NotificationNotFoundError unless the notification belongs to the user."""

    async def mark_all_notifications_read(self, user_id: str) -> int:
        ...


class NotificationService:
    """Reads and acknowledges notifications; users only ever see their own."""

    def __init__(self, store: NotificationStoreProtocol) -> None:
        self._store = store

    async def get_notifications(self, actor: Actor) -> List[Notification]:
        return await self._store.get_notifications(actor.user_id)

    async def unread_count(self, actor: Actor) -> int:
        notifications = await self._store.get_notifications(actor.user_id)
        return sum(1 for n in notifications if not n.is_read)

    async def mark_as_read(self, actor: Actor, notification_id: str) -> None:
        await self._store.mark_notification_read(notification_id, actor.user_id)

    async def mark_all_as_read(self, actor: Actor) -> int:
        return await self._store.mark_all_notifications_read(actor.user_id)
