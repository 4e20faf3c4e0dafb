"""
Supabase (PostgREST) client for salon data.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import pendulum
import requests

from ..domain.exceptions import (
    BackendError,
    ConfigurationError,
    InvalidRequestError,
    NotificationNotFoundError,
    PaymentNotFoundError,
)
from ..domain.models import (
    ACTIVE_STATUSES,
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

logger = logging.getLogger(__name__)

T = TypeVar("T")
Params = List[Tuple[str, str]]

APPOINTMENT_SELECT = (
    "*,services:service_id(name),employees:employee_id(first_name,last_name),"
    "clients:client_id(first_name,last_name,email)"
)

MAPPING_ERRORS = (KeyError, TypeError, ValueError)


class SupabaseBackend:
    """
    Client for the salon tables exposed by Supabase's REST endpoint.

    Implements every collaborator protocol of the service layer. Requests are
    blocking (``requests``) and run in a worker thread so the async services
    are not blocked; row-level security still applies to the given key.

    Rows that cannot be mapped fail the call on the availability and booking
    paths, since a dropped appointment would free its time for a second
    booking. Reporting and listing calls skip such rows with a warning.
    """

    REST_PATH = "/rest/v1"
    TIMEOUT_SECONDS = 30

    def __init__(self, url: str, api_key: str, timezone: str = "UTC"):
        """
        Initialize the backend client.

        Args:
            url: Project URL, e.g. https://<project>.supabase.co
            api_key: Service or anon key sent as ``apikey`` and bearer token
            timezone: IANA timezone timestamps are converted to

        Raises:
            ConfigurationError: If url or api_key is empty
        """
        if not url or not api_key:
            raise ConfigurationError("Backend url and api_key must be configured")

        self.base_url = url.rstrip("/") + self.REST_PATH
        self.timezone = timezone
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @classmethod
    def from_config(cls, config) -> "SupabaseBackend":
        return cls(url=config.backend.url, api_key=config.backend.api_key, timezone=config.timezone)

    # -- low level ---------------------------------------------------------

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[Params] = None,
        payload: Optional[Dict[str, Any]] = None,
        prefer: Optional[str] = None,
    ) -> Any:
        url = f"{self.base_url}/{table}"
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = requests.request(
                method,
                url,
                headers=headers,
                params=params,
                json=payload,
                timeout=self.TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise BackendError(f"{method} {table} failed: {e}") from e

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"{method} {table} returned invalid JSON: {e}") from e

    async def _call(self, method: str, table: str, **kwargs) -> Any:
        return await asyncio.to_thread(self._request, method, table, **kwargs)

    def _map_rows(
        self,
        rows: Optional[Sequence[Dict[str, Any]]],
        mapper: Callable[[Dict[str, Any]], T],
        strict: bool = False,
    ) -> List[T]:
        mapped: List[T] = []
        for row in rows or []:
            try:
                mapped.append(mapper(row))
            except MAPPING_ERRORS as e:
                if strict:
                    raise BackendError(f"Malformed row {row.get('id')}: {e}") from e
                logger.warning("Skipping malformed row %s: %s", row.get("id"), e)
        return mapped

    def _first(self, rows: Optional[Sequence[Dict[str, Any]]], mapper: Callable[[Dict[str, Any]], T]) -> Optional[T]:
        mapped = self._map_rows(rows[:1] if rows else [], mapper, strict=True)
        return mapped[0] if mapped else None

    @staticmethod
    def _date_range(column: str, start: Optional[str], end: Optional[str]) -> Params:
        """Inclusive filter on a ``date`` column."""
        params: Params = []
        if start:
            params.append((column, f"gte.{start}"))
        if end:
            params.append((column, f"lte.{end}"))
        return params

    def _timestamp_range(self, column: str, start: Optional[str], end: Optional[str]) -> Params:
        """
        Filter a ``timestamptz`` column to whole days in the salon timezone.

        Raises:
            InvalidRequestError: If a bound is not a valid date
        """
        params: Params = []
        try:
            if start:
                since = pendulum.from_format(start, "YYYY-MM-DD", tz=self.timezone)
                params.append((column, f"gte.{since.to_iso8601_string()}"))
            if end:
                until = pendulum.from_format(end, "YYYY-MM-DD", tz=self.timezone).add(days=1)
                params.append((column, f"lt.{until.to_iso8601_string()}"))
        except ValueError as e:
            raise InvalidRequestError(f"Invalid date range {start!r}..{end!r}, expected YYYY-MM-DD") from e
        return params

    def _to_payment(self, row: Dict[str, Any]) -> Payment:
        return records.payment_from_record(row, self.timezone)

    def _to_review(self, row: Dict[str, Any]) -> Review:
        return records.review_from_record(row, self.timezone)

    def _to_notification(self, row: Dict[str, Any]) -> Notification:
        return records.notification_from_record(row, self.timezone)

    # -- availability collaborators -----------------------------------------

    async def get_service(self, service_id: str) -> Optional[Service]:
        rows = await self._call("GET", "services", params=[("select", "*"), ("id", f"eq.{service_id}")])
        return self._first(rows, records.service_from_record)

    async def get_working_windows(self, staff_id: str) -> Optional[List[WorkingWindow]]:
        rows = await self._call(
            "GET", "employees", params=[("select", "id,working_hours"), ("id", f"eq.{staff_id}")]
        )
        return self._first(rows, records.working_windows_from_record)

    async def get_active_appointments(self, staff_id: str, date: str) -> List[Appointment]:
        statuses = ",".join(sorted(s.value for s in ACTIVE_STATUSES))
        rows = await self._call(
            "GET",
            "appointments",
            params=[
                ("select", APPOINTMENT_SELECT),
                ("employee_id", f"eq.{staff_id}"),
                ("date", f"eq.{date}"),
                ("status", f"in.({statuses})"),
            ],
        )
        return self._map_rows(rows, records.appointment_from_record, strict=True)

    # -- bookings ------------------------------------------------------------

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        rows = await self._call(
            "GET", "appointments",
            params=[("select", APPOINTMENT_SELECT), ("id", f"eq.{appointment_id}")],
        )
        return self._first(rows, records.appointment_from_record)

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        rows = await self._call(
            "POST", "appointments",
            payload=records.appointment_to_record(appointment),
            prefer="return=representation",
        )
        created = self._first(rows, records.appointment_from_record)
        if created is None:
            raise BackendError("Appointment insert returned no row")
        return created

    async def update_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        rows = await self._call(
            "PATCH", "appointments",
            params=[("id", f"eq.{appointment_id}")],
            payload={"status": status.value},
            prefer="return=representation",
        )
        updated = self._first(rows, records.appointment_from_record)
        if updated is None:
            raise BackendError(f"Appointment {appointment_id} was not updated")
        return updated

    # -- notifications -------------------------------------------------------

    async def create_notification(self, notification: Notification) -> None:
        await self._call("POST", "notifications", payload=records.notification_to_record(notification))

    async def get_notifications(self, user_id: str) -> List[Notification]:
        rows = await self._call(
            "GET", "notifications",
            params=[("select", "*"), ("user_id", f"eq.{user_id}"), ("order", "created_at.desc")],
        )
        return self._map_rows(rows, self._to_notification)

    async def mark_notification_read(self, notification_id: str, user_id: str) -> None:
        rows = await self._call(
            "PATCH", "notifications",
            params=[("id", f"eq.{notification_id}"), ("user_id", f"eq.{user_id}")],
            payload={"is_read": True},
            prefer="return=representation",
        )
        if not rows:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")

    async def mark_all_notifications_read(self, user_id: str) -> int:
        rows = await self._call(
            "PATCH", "notifications",
            params=[("user_id", f"eq.{user_id}"), ("is_read", "eq.false")],
            payload={"is_read": True},
            prefer="return=representation",
        )
        return len(rows or [])

    # -- reminders -----------------------------------------------------------

    async def get_reminder_candidates(self, start_date: str, end_date: str) -> List[Appointment]:
        rows = await self._call(
            "GET",
            "appointments",
            params=[
                ("select", APPOINTMENT_SELECT),
                ("status", f"eq.{AppointmentStatus.CONFIRMED.value}"),
                ("reminder_sent", "eq.false"),
                *self._date_range("date", start_date, end_date),
            ],
        )
        return self._map_rows(rows, records.appointment_from_record)

    async def mark_reminder_sent(self, appointment_id: str) -> None:
        await self._call(
            "PATCH", "appointments",
            params=[("id", f"eq.{appointment_id}")],
            payload={"reminder_sent": True},
        )

    # -- reviews and payments -------------------------------------------------

    async def create_review(self, review: Review) -> Review:
        rows = await self._call(
            "POST", "reviews",
            payload=records.review_to_record(review),
            prefer="return=representation",
        )
        created = self._first(rows, self._to_review)
        if created is None:
            raise BackendError("Review insert returned no row")
        return created

    async def get_reviews(
        self, staff_id: Optional[str] = None, client_id: Optional[str] = None
    ) -> List[Review]:
        params: Params = [("select", "*"), ("order", "created_at.desc")]
        if staff_id:
            params.append(("employee_id", f"eq.{staff_id}"))
        if client_id:
            params.append(("client_id", f"eq.{client_id}"))
        rows = await self._call("GET", "reviews", params=params)
        return self._map_rows(rows, self._to_review)

    async def create_payment(self, payment: Payment) -> Payment:
        rows = await self._call(
            "POST", "payments",
            payload=records.payment_to_record(payment),
            prefer="return=representation",
        )
        created = self._first(rows, self._to_payment)
        if created is None:
            raise BackendError("Payment insert returned no row")
        return created

    async def get_payments(self, appointment_id: str) -> List[Payment]:
        rows = await self._call(
            "GET", "payments",
            params=[("select", "*"), ("appointment_id", f"eq.{appointment_id}"), ("order", "created_at.desc")],
        )
        return self._map_rows(rows, self._to_payment)

    async def update_payment_status(self, payment_id: str, status: PaymentStatus) -> Payment:
        rows = await self._call(
            "PATCH", "payments",
            params=[("id", f"eq.{payment_id}")],
            payload={"status": status.value, "updated_at": pendulum.now("UTC").to_iso8601_string()},
            prefer="return=representation",
        )
        updated = self._first(rows, self._to_payment)
        if updated is None:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")
        return updated

    # -- analytics -----------------------------------------------------------

    async def get_salon_appointments(
        self, salon_id: str, start: Optional[str], end: Optional[str]
    ) -> List[Appointment]:
        rows = await self._call(
            "GET",
            "appointments",
            params=[
                ("select", APPOINTMENT_SELECT),
                ("salon_id", f"eq.{salon_id}"),
                *self._date_range("date", start, end),
            ],
        )
        return self._map_rows(rows, records.appointment_from_record)

    async def get_salon_payments(
        self, salon_id: str, start: Optional[str], end: Optional[str]
    ) -> List[Payment]:
        rows = await self._call(
            "GET",
            "payments",
            params=[
                ("select", "*,appointments!inner(salon_id)"),
                ("appointments.salon_id", f"eq.{salon_id}"),
                *self._timestamp_range("created_at", start, end),
            ],
        )
        return self._map_rows(rows, self._to_payment)

    async def get_salon_reviews(
        self, salon_id: str, start: Optional[str], end: Optional[str]
    ) -> List[Review]:
        rows = await self._call(
            "GET",
            "reviews",
            params=[
                ("select", "*,appointments!inner(salon_id)"),
                ("appointments.salon_id", f"eq.{salon_id}"),
                *self._timestamp_range("created_at", start, end),
            ],
        )
        return self._map_rows(rows, self._to_review)

    # -- access --------------------------------------------------------------

    async def get_user_role(self, user_id: str) -> Optional[str]:
        rows = await self._call(
            "GET", "user_roles", params=[("select", "role"), ("user_id", f"eq.{user_id}")]
        )
        if not rows:
            return None
        return rows[0].get("role")
