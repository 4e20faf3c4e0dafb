"""
Appointment reminders and the background task that sends them periodically.

``ReminderScheduler`` is an explicitly owned handle: nothing starts at import
time, the owner calls ``start()`` inside a running event loop and ``stop()``
on shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import List, Optional, Protocol

import pendulum
from pendulum import DateTime

from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Notification,
    NotificationType,
    format_time_of_day,
)

logger = logging.getLogger(__name__)


class ReminderStoreProtocol(Protocol):
    async def get_reminder_candidates(self, start_date: str, end_date: str) -> List[Appointment]:
        """Confirmed appointments between both dates (inclusive) without a reminder yet."""

    async def mark_reminder_sent(self, appointment_id: str) -> None:
        ...

    async def create_notification(self, notification: Notification) -> None:
        ...


class ReminderService:
    """Sends one reminder per confirmed appointment starting within the lead time."""

    def __init__(
        self,
        store: ReminderStoreProtocol,
        lead_hours: int = 8,
        timezone: str = "UTC",
    ) -> None:
        self._store = store
        self._lead_hours = lead_hours
        self._timezone = timezone

    def is_due(self, appointment: Appointment, now: DateTime) -> bool:
        if appointment.status != AppointmentStatus.CONFIRMED or appointment.reminder_sent:
            return False
        starts_at = appointment.starts_at(self._timezone)
        return now <= starts_at <= now.add(hours=self._lead_hours)

    async def send_due_reminders(self, now: Optional[DateTime] = None) -> int:
        """
        Notify clients of upcoming appointments and mark them as reminded.

        Delivery is at-least-once: the notification is stored before the
        appointment is marked, so a failed mark repeats the reminder on the
        next pass. A failure on one appointment does not stop the others.

        Returns:
            Number of reminders sent
        """
        now = now or pendulum.now(self._timezone)
        horizon = now.add(hours=self._lead_hours)

        candidates = await self._store.get_reminder_candidates(
            now.to_date_string(), horizon.to_date_string()
        )

        sent = 0
        for appointment in candidates:
            try:
                if await self._remind(appointment, now):
                    sent += 1
            except Exception:
                logger.exception("Could not send reminder for appointment %s", appointment.id)

        logger.info("Sent %d appointment reminder(s)", sent)
        return sent

    async def _remind(self, appointment: Appointment, now: DateTime) -> bool:
        if not self.is_due(appointment, now):
            return False
        if not appointment.client_id or appointment.id is None:
            logger.warning("Appointment %s has no client, skipping reminder", appointment.id)
            return False

        await self._store.create_notification(self._build_reminder(appointment))
        await self._store.mark_reminder_sent(appointment.id)
        return True

    @staticmethod
    def _build_reminder(appointment: Appointment) -> Notification:
        service = appointment.service_name or "your service"
        return Notification(
            user_id=appointment.client_id,
            title="Appointment reminder",
            message=(
                f"You have an appointment on {appointment.date} at "
                f"{format_time_of_day(appointment.start_time)} for {service}"
            ),
            type=NotificationType.REMINDER,
        )


class ReminderScheduler:
    """
    Runs ``ReminderService.send_due_reminders`` once immediately and then
    every ``interval_seconds`` until stopped.

    At most one loop runs per scheduler; ``start()`` on a running scheduler
    does nothing.
    """

    def __init__(self, reminder_service: ReminderService, interval_seconds: float = 3600) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than zero")
        self._service = reminder_service
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """
        Start the background loop on the running event loop.

        Returns:
            True if the loop was started, False if it was already running
        """
        if self.is_running:
            logger.info("Reminder scheduler is already running")
            return False

        logger.info("Starting reminder scheduler (every %ss)", self._interval)
        self._task = asyncio.get_running_loop().create_task(self._run())
        return True

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish. Safe to call twice."""
        task, self._task = self._task, None
        if task is None:
            return

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Reminder scheduler stopped")

    async def trigger(self) -> int:
        """Run one reminder pass now, independent of the loop."""
        return await self._service.send_due_reminders()

    async def _run(self) -> None:
        while True:
            await self._run_once()
            await asyncio.sleep(self._interval)

    async def _run_once(self) -> None:
        self.runs += 1
        try:
            await self._service.send_due_reminders()
        except Exception:
            # Keep the loop alive
            logger.exception("Reminder pass failed")
