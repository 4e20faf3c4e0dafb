"""
Tests for appointment reminders and the reminder scheduler.
"""

import asyncio

import pendulum
import pytest

from salonbooker.adapters.mock_backend import MockBackend
from salonbooker.domain.exceptions import BackendError
from salonbooker.domain.models import AppointmentStatus, NotificationType
from salonbooker.services.reminders import ReminderScheduler, ReminderService

from .stubs import make_appointment

TZ = "Europe/Madrid"


def at(value):
    return pendulum.parse(value, tz=TZ)


class TestReminderService:
    """Tests for ReminderService."""

    def test_is_due_within_lead_time(self):
        service = ReminderService(store=MockBackend(data={}), lead_hours=8, timezone=TZ)
        appointment = make_appointment("10:00", "11:00", date="2025-03-10")

        assert service.is_due(appointment, at("2025-03-10T02:00:00"))
        assert service.is_due(appointment, at("2025-03-10T09:59:00"))
        assert not service.is_due(appointment, at("2025-03-10T01:59:00"))
        assert not service.is_due(appointment, at("2025-03-10T10:01:00"))

    @pytest.mark.parametrize("status", [AppointmentStatus.PENDING, AppointmentStatus.CANCELLED])
    def test_only_confirmed_appointments_are_due(self, status):
        service = ReminderService(store=MockBackend(data={}), timezone=TZ)
        appointment = make_appointment("10:00", "11:00", date="2025-03-10", status=status)

        assert not service.is_due(appointment, at("2025-03-10T08:00:00"))

    def test_already_reminded_is_not_due(self):
        service = ReminderService(store=MockBackend(data={}), timezone=TZ)
        appointment = make_appointment("10:00", "11:00", date="2025-03-10", reminder_sent=True)

        assert not service.is_due(appointment, at("2025-03-10T08:00:00"))

    def test_sends_reminder_once(self):
        backend = MockBackend(timezone=TZ)
        service = ReminderService(store=backend, lead_hours=8, timezone=TZ)
        now = at("2025-03-10T06:00:00")

        assert asyncio.run(service.send_due_reminders(now)) == 1
        assert asyncio.run(service.send_due_reminders(now)) == 0

        assert backend.tables["appointments"][0]["reminder_sent"] is True
        assert len(backend.notifications) == 1
        notification = backend.notifications[0]
        assert notification["user_id"] == "cli-1"
        assert notification["type"] == NotificationType.REMINDER.value
        assert "2025-03-10 at 10:00 for Haircut" in notification["message"]

    def test_nothing_due_outside_lead_time(self):
        backend = MockBackend(timezone=TZ)
        service = ReminderService(store=backend, lead_hours=2, timezone=TZ)

        assert asyncio.run(service.send_due_reminders(at("2025-03-10T06:00:00"))) == 0
        assert backend.notifications == []

    def test_failed_notification_is_retried_next_pass(self):
        class FlakyBackend(MockBackend):
            fail = True

            async def create_notification(self, notification):
                if self.fail:
                    raise BackendError("notifications table unavailable")
                await super().create_notification(notification)

        backend = FlakyBackend(timezone=TZ)
        service = ReminderService(store=backend, timezone=TZ)
        now = at("2025-03-10T06:00:00")

        assert asyncio.run(service.send_due_reminders(now)) == 0
        assert backend.tables["appointments"][0]["reminder_sent"] is False

        backend.fail = False
        assert asyncio.run(service.send_due_reminders(now)) == 1

    def test_failed_mark_repeats_reminder(self):
        class UnmarkableBackend(MockBackend):
            async def mark_reminder_sent(self, appointment_id):
                raise BackendError("appointments table unavailable")

        backend = UnmarkableBackend(timezone=TZ)
        service = ReminderService(store=backend, timezone=TZ)
        now = at("2025-03-10T06:00:00")

        assert asyncio.run(service.send_due_reminders(now)) == 0
        assert asyncio.run(service.send_due_reminders(now)) == 0

        # Delivery is at-least-once: the client was notified on both passes
        assert len(backend.notifications) == 2

    def test_bad_row_does_not_block_other_reminders(self):
        backend = MockBackend(timezone=TZ)
        broken = dict(backend.tables["appointments"][0], id="apt-bad", date="2025-03-10T00:00:00")
        backend.tables["appointments"].insert(0, broken)
        service = ReminderService(store=backend, timezone=TZ)

        sent = asyncio.run(service.send_due_reminders(at("2025-03-10T06:00:00")))

        assert sent == 1
        assert backend.notifications[0]["user_id"] == "cli-1"
        assert broken["reminder_sent"] is False


class CountingService:
    """Stands in for ReminderService and records each pass."""

    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    async def send_due_reminders(self, now=None):
        self.calls += 1
        if self.error:
            raise self.error
        return 0


class TestReminderScheduler:
    """Tests for ReminderScheduler."""

    def test_not_started_on_construction(self):
        scheduler = ReminderScheduler(CountingService(), interval_seconds=60)

        assert not scheduler.is_running
        assert scheduler.runs == 0

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            ReminderScheduler(CountingService(), interval_seconds=0)

    def test_start_is_idempotent(self):
        service = CountingService()
        scheduler = ReminderScheduler(service, interval_seconds=60)

        async def scenario():
            assert scheduler.start() is True
            assert scheduler.start() is False
            await asyncio.sleep(0.01)
            assert scheduler.is_running
            await scheduler.stop()

        asyncio.run(scenario())

        # One loop ran exactly one immediate pass before sleeping
        assert service.calls == 1
        assert scheduler.runs == 1
        assert not scheduler.is_running

    def test_runs_repeatedly(self):
        service = CountingService()
        scheduler = ReminderScheduler(service, interval_seconds=0.01)

        async def scenario():
            scheduler.start()
            await asyncio.sleep(0.1)
            await scheduler.stop()

        asyncio.run(scenario())

        assert service.calls >= 2

    def test_failed_pass_keeps_loop_alive(self):
        service = CountingService(error=BackendError("down"))
        scheduler = ReminderScheduler(service, interval_seconds=0.01)

        async def scenario():
            scheduler.start()
            await asyncio.sleep(0.1)
            running = scheduler.is_running
            await scheduler.stop()
            return running

        assert asyncio.run(scenario()) is True
        assert service.calls >= 2

    def test_stop_is_safe_twice(self):
        scheduler = ReminderScheduler(CountingService(), interval_seconds=60)

        async def scenario():
            await scheduler.stop()
            scheduler.start()
            await scheduler.stop()
            await scheduler.stop()

        asyncio.run(scenario())
        assert not scheduler.is_running

    def test_restart_after_stop(self):
        service = CountingService()
        scheduler = ReminderScheduler(service, interval_seconds=60)

        async def scenario():
            scheduler.start()
            await asyncio.sleep(0.01)
            await scheduler.stop()
            assert scheduler.start() is True
            await asyncio.sleep(0.01)
            await scheduler.stop()

        asyncio.run(scenario())
        assert service.calls == 2

    def test_trigger_runs_single_pass(self):
        service = CountingService()
        scheduler = ReminderScheduler(service, interval_seconds=60)

        asyncio.run(scheduler.trigger())

        assert service.calls == 1
        assert not scheduler.is_running

    def test_unexpected_error_keeps_loop_alive(self):
        service = CountingService(error=ValueError("String does not match format YYYY-MM-DD"))
        scheduler = ReminderScheduler(service, interval_seconds=0.01)

        async def scenario():
            scheduler.start()
            await asyncio.sleep(0.1)
            running = scheduler.is_running
            await scheduler.stop()
            return running

        assert asyncio.run(scenario()) is True
        assert service.calls >= 2
        assert not scheduler.is_running

    def test_scheduler_survives_malformed_stored_date(self):
        backend = MockBackend(data={"appointments": [{
            "id": "apt-1", "client_id": "cli-1", "employee_id": "emp-ana",
            "date": pendulum.today(TZ).to_date_string() + "T00:00:00",
            "start_time": "23:00", "end_time": "23:30", "status": "confirmed",
        }]}, timezone=TZ)
        scheduler = ReminderScheduler(ReminderService(store=backend, timezone=TZ), interval_seconds=0.01)

        async def scenario():
            scheduler.start()
            await asyncio.sleep(0.1)
            running = scheduler.is_running
            await scheduler.stop()
            return running

        assert asyncio.run(scenario()) is True
        assert scheduler.runs >= 2
