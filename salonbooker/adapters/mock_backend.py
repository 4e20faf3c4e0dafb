"""
In-memory backend for running the application without a Supabase project.
"""

import copy
import json
from itertools import count
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

import pendulum

from ..domain.exceptions import (
    AppointmentNotFoundError,
    NotificationNotFoundError,
    PaymentNotFoundError,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Notification,
    Payment,
    PaymentStatus,
    Review,
    Service,
    WorkingWindow,
)
from . import records

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_salon_data.json"

TABLES = ("services", "employees", "clients", "appointments", "payments",
          "reviews", "user_roles", "notifications")
ID_PREFIXES = {"appointments": "apt", "payments": "pay", "reviews": "rev", "notifications": "ntf"}

T = TypeVar("T")


def _in_range(day: str, start: Optional[str], end: Optional[str]) -> bool:
    return (not start or day >= start) and (not end or day <= end)


class MockBackend:
    """
    Backend double that keeps rows in dictionaries.

    Rows use the same shape as the Supabase tables and go through the same
    record mapping, so the mock exercises the real parsing code. The data is
    loaded from ``mock_salon_data.json`` unless a dict is passed in; it is
    copied, so writes never leak between instances.
    """

    def __init__(self, data: Optional[Dict[str, List[Dict[str, Any]]]] = None, timezone: str = "UTC"):
        self.timezone = timezone
        self.tables = copy.deepcopy(data) if data is not None else self._load_data_file()
        for table in TABLES:
            self.tables.setdefault(table, [])
        self._ids = {table: count(len(self.tables[table]) + 1) for table in ID_PREFIXES}

    @staticmethod
    def _load_data_file() -> Dict[str, List[Dict[str, Any]]]:
        if DEFAULT_DATA_FILE.exists():
            with open(DEFAULT_DATA_FILE, "r", encoding="utf-8") as f:
                return json.load(f)
        return {}

    def _insert(self, table: str, row: Dict[str, Any], timestamped: bool = False) -> Dict[str, Any]:
        row["id"] = f"{ID_PREFIXES[table]}-{next(self._ids[table])}"
        if timestamped:
            row["created_at"] = pendulum.now("UTC").to_iso8601_string()
        self.tables[table].append(row)
        return row

    def _find(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        for row in self.tables[table]:
            if str(row.get("id")) == row_id:
                return row
        return None

    def _joined(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Attach the related rows a PostgREST select would embed."""
        joined = dict(row)
        joined["services"] = self._find("services", str(row.get("service_id")))
        joined["employees"] = self._find("employees", str(row.get("employee_id")))
        joined["clients"] = self._find("clients", str(row.get("client_id")))
        return joined

    def _salon_appointment_ids(self, salon_id: str) -> set:
        return {str(a["id"]) for a in self.tables["appointments"] if a.get("salon_id") == salon_id}

    def _created_between(
        self,
        table: str,
        salon_id: str,
        start: Optional[str],
        end: Optional[str],
        mapper: Callable[[Dict[str, Any], str], T],
    ) -> List[T]:
        """Rows of the salon's appointments created on local days start..end."""
        ids = self._salon_appointment_ids(salon_id)
        mapped = [
            mapper(row, self.timezone)
            for row in self.tables[table]
            if str(row.get("appointment_id")) in ids
        ]
        return [m for m in mapped if _in_range(m.created_at.to_date_string(), start, end)]

    @property
    def notifications(self) -> List[Dict[str, Any]]:
        return self.tables["notifications"]

    async def get_service(self, service_id: str) -> Optional[Service]:
        row = self._find("services", service_id)
        return records.service_from_record(row) if row else None

    async def get_working_windows(self, staff_id: str) -> Optional[List[WorkingWindow]]:
        row = self._find("employees", staff_id)
        return records.working_windows_from_record(row) if row else None

    async def get_active_appointments(self, staff_id: str, date: str) -> List[Appointment]:
        appointments = [
            records.appointment_from_record(self._joined(row))
            for row in self.tables["appointments"]
            if row.get("employee_id") == staff_id and row.get("date") == date
        ]
        return [a for a in appointments if a.status.is_active]

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        row = self._find("appointments", appointment_id)
        return records.appointment_from_record(self._joined(row)) if row else None

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        row = self._insert("appointments", records.appointment_to_record(appointment))
        return records.appointment_from_record(self._joined(row))

    async def update_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        row = self._find("appointments", appointment_id)
        if row is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        row["status"] = status.value
        return records.appointment_from_record(self._joined(row))

    async def create_notification(self, notification: Notification) -> None:
        self._insert("notifications", records.notification_to_record(notification), timestamped=True)

    async def get_notifications(self, user_id: str) -> List[Notification]:
        notifications = [
            records.notification_from_record(row, self.timezone)
            for row in self.tables["notifications"]
            if row.get("user_id") == user_id
        ]
        return sorted(notifications, key=lambda n: n.created_at.timestamp() if n.created_at else 0.0, reverse=True)

    async def mark_notification_read(self, notification_id: str, user_id: str) -> None:
        row = self._find("notifications", notification_id)
        if row is None or row.get("user_id") != user_id:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        row["is_read"] = True

    async def mark_all_notifications_read(self, user_id: str) -> int:
        unread = [r for r in self.tables["notifications"] if r.get("user_id") == user_id and not r.get("is_read")]
        for row in unread:
            row["is_read"] = True
        return len(unread)

    async def get_reminder_candidates(self, start_date: str, end_date: str) -> List[Appointment]:
        return [
            records.appointment_from_record(self._joined(row))
            for row in self.tables["appointments"]
            if row.get("status") == AppointmentStatus.CONFIRMED.value
            and not row.get("reminder_sent", False)
            and _in_range(row["date"][:10], start_date, end_date)
        ]

    async def mark_reminder_sent(self, appointment_id: str) -> None:
        row = self._find("appointments", appointment_id)
        if row is not None:
            row["reminder_sent"] = True

    async def create_review(self, review: Review) -> Review:
        row = self._insert("reviews", records.review_to_record(review), timestamped=True)
        return records.review_from_record(row, self.timezone)

    async def get_reviews(
        self, staff_id: Optional[str] = None, client_id: Optional[str] = None
    ) -> List[Review]:
        reviews = [
            records.review_from_record(row, self.timezone)
            for row in self.tables["reviews"]
            if (not staff_id or row.get("employee_id") == staff_id)
            and (not client_id or row.get("client_id") == client_id)
        ]
        return sorted(reviews, key=lambda r: r.created_at, reverse=True)

    async def create_payment(self, payment: Payment) -> Payment:
        row = self._insert("payments", records.payment_to_record(payment), timestamped=True)
        return records.payment_from_record(row, self.timezone)

    async def get_payments(self, appointment_id: str) -> List[Payment]:
        payments = [
            records.payment_from_record(row, self.timezone)
            for row in self.tables["payments"]
            if str(row.get("appointment_id")) == appointment_id
        ]
        return sorted(payments, key=lambda p: p.created_at, reverse=True)

    async def update_payment_status(self, payment_id: str, status: PaymentStatus) -> Payment:
        row = self._find("payments", payment_id)
        if row is None:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")
        row["status"] = status.value
        return records.payment_from_record(row, self.timezone)

    async def get_salon_appointments(
        self, salon_id: str, start: Optional[str], end: Optional[str]
    ) -> List[Appointment]:
        return [
            records.appointment_from_record(self._joined(row))
            for row in self.tables["appointments"]
            if row.get("salon_id") == salon_id and _in_range(row["date"], start, end)
        ]

    async def get_salon_payments(
        self, salon_id: str, start: Optional[str], end: Optional[str]
    ) -> List[Payment]:
        return self._created_between("payments", salon_id, start, end, records.payment_from_record)

    async def get_salon_reviews(
        self, salon_id: str, start: Optional[str], end: Optional[str]
    ) -> List[Review]:
        return self._created_between("reviews", salon_id, start, end, records.review_from_record)

    async def get_user_role(self, user_id: str) -> Optional[str]:
        for row in self.tables["user_roles"]:
            if row.get("user_id") == user_id:
                return row.get("role")
        return None
