"""
Tests for the Supabase REST client and the row mapping it relies on.

HTTP calls are replaced with a recording fake, nothing leaves the process.
"""

import asyncio
import json
from datetime import time

import pendulum
import pytest
import requests

from salonbooker.adapters import records
from salonbooker.adapters.supabase_backend import SupabaseBackend
from salonbooker.config import AppConfig
from salonbooker.domain.exceptions import (
    BackendError,
    ConfigurationError,
    InvalidRequestError,
    NotificationNotFoundError,
    PaymentNotFoundError,
)
from salonbooker.domain.models import AppointmentStatus, PaymentMethod, PaymentStatus, Review

APPOINTMENT_ROW = {
    "id": 7,
    "salon_id": "salon-1",
    "client_id": "cli-1",
    "employee_id": "emp-ana",
    "service_id": "svc-cut",
    "date": "2025-03-10",
    "start_time": "10:00:00",
    "end_time": "11:00:00",
    "status": "confirmed",
    "price": "25.00",
    "services": {"name": "Haircut"},
    "employees": {"first_name": "Ana", "last_name": "Lopez"},
    "clients": {"first_name": "Marta", "last_name": "Vega", "email": "marta@example.com"},
}


class FakeResponse:
    def __init__(self, payload=None, status_code=200, content=None):
        self.status_code = status_code
        if content is None:
            content = json.dumps(payload).encode() if payload is not None else b""
        self.content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")

    def json(self):
        return json.loads(self.content)


@pytest.fixture
def http(monkeypatch):
    """Replace requests.request; queue responses in ``http.responses``."""

    class Recorder:
        def __init__(self):
            self.calls = []
            self.responses = []

        def __call__(self, method, url, **kwargs):
            self.calls.append((method, url, kwargs))
            response = self.responses.pop(0) if self.responses else FakeResponse([])
            if isinstance(response, Exception):
                raise response
            return response

    recorder = Recorder()
    monkeypatch.setattr(requests, "request", recorder)
    return recorder


@pytest.fixture
def backend():
    return SupabaseBackend(url="https://demo.supabase.co/", api_key="key", timezone="Europe/Madrid")


class TestRecords:
    """Tests for the row mapping helpers."""

    def test_appointment_from_joined_row(self):
        appointment = records.appointment_from_record(APPOINTMENT_ROW)

        assert appointment.id == "7"
        assert appointment.staff_id == "emp-ana"
        assert appointment.start_time == time(10, 0)
        assert appointment.status == AppointmentStatus.CONFIRMED
        assert appointment.price == 25.0
        assert appointment.service_name == "Haircut"
        assert appointment.staff_name == "Ana Lopez"
        assert appointment.client_email == "marta@example.com"

    def test_camel_case_working_hours(self):
        windows = records.working_windows_from_record({
            "workingHours": [
                {"dayOfWeek": 2, "startTime": "10:00:00", "endTime": "18:00:00", "isWorking": False},
            ]
        })

        assert len(windows) == 1
        assert windows[0].weekday == 2
        assert windows[0].start == time(10, 0)
        assert windows[0].end == time(18, 0)
        assert not windows[0].is_active

    def test_service_duration_column(self):
        service = records.service_from_record({"id": 3, "salon_id": "s", "name": "Cut", "duration": "45"})

        assert service.id == "3"
        assert service.duration_minutes == 45
        assert service.is_active

    def test_payment_timestamp_is_converted(self):
        payment = records.payment_from_record(
            {"id": "p", "appointment_id": "a", "amount": 10, "method": "cash",
             "status": "completed", "created_at": "2025-03-10T23:30:00+00:00"},
            "Europe/Madrid",
        )

        assert payment.method == PaymentMethod.CASH
        assert payment.created_at.to_date_string() == "2025-03-11"

    def test_appointment_round_trip_uses_snake_case(self):
        row = records.appointment_to_record(records.appointment_from_record(APPOINTMENT_ROW))

        assert row["employee_id"] == "emp-ana"
        assert row["start_time"] == "10:00"
        assert row["status"] == "confirmed"


class TestSupabaseBackend:
    """Tests for SupabaseBackend."""

    def test_requires_credentials(self):
        with pytest.raises(ConfigurationError):
            SupabaseBackend(url="", api_key="key")
        with pytest.raises(ConfigurationError):
            SupabaseBackend.from_config(AppConfig())

    def test_get_active_appointments_query(self, http, backend):
        http.responses.append(FakeResponse([APPOINTMENT_ROW]))

        appointments = asyncio.run(backend.get_active_appointments("emp-ana", "2025-03-10"))

        method, url, kwargs = http.calls[0]
        assert method == "GET"
        assert url == "https://demo.supabase.co/rest/v1/appointments"
        params = dict(kwargs["params"])
        assert params["employee_id"] == "eq.emp-ana"
        assert params["date"] == "eq.2025-03-10"
        assert params["status"] == "in.(confirmed,in_progress,pending)"
        assert kwargs["headers"]["apikey"] == "key"
        assert kwargs["headers"]["Authorization"] == "Bearer key"
        assert kwargs["timeout"] == SupabaseBackend.TIMEOUT_SECONDS
        assert [a.id for a in appointments] == ["7"]

    def test_unknown_service_is_none(self, http, backend):
        assert asyncio.run(backend.get_service("missing")) is None

    def test_unknown_staff_is_none(self, http, backend):
        assert asyncio.run(backend.get_working_windows("missing")) is None

    def test_malformed_booking_fails_the_lookup(self, http, backend):
        broken = dict(APPOINTMENT_ROW, id=8, end_time=None)
        http.responses.append(FakeResponse([APPOINTMENT_ROW, broken]))

        # A dropped booking would free its time for a second client
        with pytest.raises(BackendError, match="Malformed row 8"):
            asyncio.run(backend.get_active_appointments("emp-ana", "2025-03-10"))

    def test_malformed_working_hours_fail_the_lookup(self, http, backend):
        http.responses.append(FakeResponse([{"id": "emp-ana", "working_hours": [{"day_of_week": 1}]}]))

        with pytest.raises(BackendError):
            asyncio.run(backend.get_working_windows("emp-ana"))

    def test_malformed_report_rows_are_skipped(self, http, backend):
        broken = dict(APPOINTMENT_ROW, id=8, start_time="late")
        http.responses.append(FakeResponse([APPOINTMENT_ROW, broken]))

        appointments = asyncio.run(backend.get_salon_appointments("salon-1", None, None))

        assert [a.id for a in appointments] == ["7"]

    def test_http_error_raises_backend_error(self, http, backend):
        http.responses.append(FakeResponse({"message": "boom"}, status_code=500))

        with pytest.raises(BackendError):
            asyncio.run(backend.get_service("svc-cut"))

    def test_connection_error_raises_backend_error(self, http, backend):
        http.responses.append(requests.exceptions.ConnectionError("unreachable"))

        with pytest.raises(BackendError):
            asyncio.run(backend.get_working_windows("emp-ana"))

    def test_invalid_json_raises_backend_error(self, http, backend):
        http.responses.append(FakeResponse(content=b"<html>"))

        with pytest.raises(BackendError):
            asyncio.run(backend.get_service("svc-cut"))

    def test_create_appointment_posts_row(self, http, backend):
        http.responses.append(FakeResponse([APPOINTMENT_ROW]))
        appointment = records.appointment_from_record(dict(APPOINTMENT_ROW, id=None))

        created = asyncio.run(backend.create_appointment(appointment))

        method, _, kwargs = http.calls[0]
        assert method == "POST"
        assert "id" not in kwargs["json"]
        assert kwargs["headers"]["Prefer"] == "return=representation"
        assert created.id == "7"

    def test_salon_payments_cover_whole_local_days(self, http, backend):
        asyncio.run(backend.get_salon_payments("salon-1", "2025-03-01", "2025-03-31"))

        params = http.calls[0][2]["params"]
        assert ("appointments.salon_id", "eq.salon-1") in params
        # Madrid switches to summer time on 2025-03-30
        assert ("created_at", "gte.2025-03-01T00:00:00+01:00") in params
        assert ("created_at", "lt.2025-04-01T00:00:00+02:00") in params

    def test_salon_reviews_invalid_range(self, http, backend):
        with pytest.raises(InvalidRequestError):
            asyncio.run(backend.get_salon_reviews("salon-1", "March", None))

        assert http.calls == []

    def test_appointment_date_range_is_inclusive(self, http, backend):
        asyncio.run(backend.get_salon_appointments("salon-1", "2025-03-01", "2025-03-31"))

        params = http.calls[0][2]["params"]
        assert ("date", "gte.2025-03-01") in params
        assert ("date", "lte.2025-03-31") in params

    def test_user_role(self, http, backend):
        http.responses.append(FakeResponse([{"role": "admin"}]))

        assert asyncio.run(backend.get_user_role("admin-1")) == "admin"
        assert asyncio.run(backend.get_user_role("nobody")) is None

    def test_create_review_posts_snake_case_row(self, http, backend):
        http.responses.append(FakeResponse([{
            "id": "r1", "appointment_id": "7", "client_id": "cli-1", "employee_id": "emp-ana",
            "rating": 5, "preferences": ["short"], "created_at": "2025-03-10T12:00:00+00:00",
        }]))
        review = Review(id=None, appointment_id="7", client_id="cli-1", staff_id="emp-ana", rating=5,
                        created_at=pendulum.now(), preferences=["short"])

        created = asyncio.run(backend.create_review(review))

        method, url, kwargs = http.calls[0]
        assert (method, url) == ("POST", "https://demo.supabase.co/rest/v1/reviews")
        assert kwargs["json"]["employee_id"] == "emp-ana"
        assert "id" not in kwargs["json"]
        assert created.id == "r1"
        assert created.created_at.timezone_name == "Europe/Madrid"

    def test_update_unknown_payment(self, http, backend):
        with pytest.raises(PaymentNotFoundError):
            asyncio.run(backend.update_payment_status("pay-9", PaymentStatus.REFUNDED))

        method, _, kwargs = http.calls[0]
        assert method == "PATCH"
        assert kwargs["json"]["status"] == "refunded"

    def test_mark_foreign_notification(self, http, backend):
        with pytest.raises(NotificationNotFoundError):
            asyncio.run(backend.mark_notification_read("ntf-1", "cli-2"))

        params = http.calls[0][2]["params"]
        assert ("user_id", "eq.cli-2") in params
