"""
Mapping between backend rows (JSON objects) and domain models.

Rows written by older clients use camelCase column names, newer tables use
snake_case; both are accepted when reading. Writing always uses snake_case.
"""

from typing import Any, Dict, List, Mapping

import pendulum
from pendulum import DateTime

from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Notification,
    NotificationType,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Review,
    Service,
    WorkingWindow,
    format_time_of_day,
    parse_time_of_day,
)

Record = Mapping[str, Any]


def _get(record: Record, *keys: str, default: Any = None) -> Any:
    """Return the first present, non-null value among ``keys``."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default


def _person_name(record: Record | None) -> str:
    if not record:
        return ""
    name = _get(record, "name", "full_name")
    if name:
        return str(name)
    first = _get(record, "first_name", "firstName", default="")
    last = _get(record, "last_name", "lastName", default="")
    return f"{first} {last}".strip()


def parse_datetime(value: str, timezone: str) -> DateTime:
    """
    Parse an ISO 8601 timestamp into a pendulum DateTime in ``timezone``.

    Raises:
        ValueError: If the value is not a datetime
    """
    dt = pendulum.parse(value)

    if isinstance(dt, DateTime):
        return dt.in_timezone(timezone)

    raise ValueError(f"Could not parse datetime: {value}")


def service_from_record(record: Record) -> Service:
    return Service(
        id=str(record["id"]),
        salon_id=str(_get(record, "salon_id", "salonId", default="")),
        name=_get(record, "name", default=""),
        duration_minutes=int(_get(record, "duration", "duration_minutes")),
        price=float(_get(record, "price", default=0.0)),
        category=_get(record, "category", default=""),
        is_active=bool(_get(record, "is_active", "isActive", default=True)),
    )


def window_from_record(record: Record) -> WorkingWindow:
    return WorkingWindow(
        weekday=int(_get(record, "day_of_week", "dayOfWeek", "weekday")),
        start=parse_time_of_day(_get(record, "start_time", "startTime", "start")),
        end=parse_time_of_day(_get(record, "end_time", "endTime", "end")),
        is_active=bool(_get(record, "is_working", "isWorking", "is_active", default=True)),
    )


def working_windows_from_record(staff_record: Record) -> List[WorkingWindow]:
    """Working windows stored as a JSON array on the staff row."""
    rows = _get(staff_record, "working_hours", "workingHours", default=[])
    return [window_from_record(row) for row in rows]


def appointment_from_record(record: Record) -> Appointment:
    service = _get(record, "services", "service")
    staff = _get(record, "employees", "employee", "staff")
    client = _get(record, "clients", "client")
    price = _get(record, "price")

    return Appointment(
        id=str(record["id"]) if record.get("id") is not None else None,
        salon_id=str(_get(record, "salon_id", "salonId", default="")),
        client_id=str(_get(record, "client_id", "clientId", default="")),
        staff_id=str(_get(record, "employee_id", "employeeId", "staff_id", default="")),
        service_id=str(_get(record, "service_id", "serviceId", default="")),
        date=str(record["date"]),
        start_time=parse_time_of_day(_get(record, "start_time", "startTime")),
        end_time=parse_time_of_day(_get(record, "end_time", "endTime")),
        status=AppointmentStatus(_get(record, "status", default="pending")),
        price=float(price) if price is not None else None,
        notes=_get(record, "notes"),
        reminder_sent=bool(_get(record, "reminder_sent", "reminderSent", default=False)),
        service_name=_get(service or {}, "name", default=""),
        staff_name=_person_name(staff),
        client_name=_person_name(client),
        client_email=_get(client or {}, "email", default=""),
    )


def appointment_to_record(appointment: Appointment) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "salon_id": appointment.salon_id,
        "client_id": appointment.client_id,
        "employee_id": appointment.staff_id,
        "service_id": appointment.service_id,
        "date": appointment.date,
        "start_time": format_time_of_day(appointment.start_time),
        "end_time": format_time_of_day(appointment.end_time),
        "status": appointment.status.value,
        "price": appointment.price,
        "notes": appointment.notes,
        "reminder_sent": appointment.reminder_sent,
    }
    if appointment.id is not None:
        record["id"] = appointment.id
    return record


def payment_from_record(record: Record, timezone: str) -> Payment:
    return Payment(
        id=str(record["id"]),
        appointment_id=str(_get(record, "appointment_id", "appointmentId", default="")),
        amount=float(record["amount"]),
        method=PaymentMethod(record["method"]),
        status=PaymentStatus(record["status"]),
        created_at=parse_datetime(_get(record, "created_at", "createdAt"), timezone),
        transaction_id=_get(record, "transaction_id", "transactionId", default=""),
        notes=_get(record, "notes"),
    )


def payment_to_record(payment: Payment) -> Dict[str, Any]:
    return {
        "appointment_id": payment.appointment_id,
        "amount": payment.amount,
        "method": payment.method.value,
        "status": payment.status.value,
        "transaction_id": payment.transaction_id,
        "notes": payment.notes,
    }


def review_from_record(record: Record, timezone: str) -> Review:
    return Review(
        id=str(record["id"]),
        appointment_id=str(_get(record, "appointment_id", "appointmentId", default="")),
        client_id=str(_get(record, "client_id", "clientId", default="")),
        staff_id=str(_get(record, "employee_id", "employeeId", "staff_id", default="")),
        rating=int(record["rating"]),
        created_at=parse_datetime(_get(record, "created_at", "createdAt"), timezone),
        comment=_get(record, "comment"),
        preferences=list(_get(record, "preferences", default=[])),
    )


def review_to_record(review: Review) -> Dict[str, Any]:
    return {
        "appointment_id": review.appointment_id,
        "client_id": review.client_id,
        "employee_id": review.staff_id,
        "rating": review.rating,
        "comment": review.comment,
        "preferences": list(review.preferences),
    }


def notification_from_record(record: Record, timezone: str) -> Notification:
    created_at = _get(record, "created_at", "createdAt")
    return Notification(
        id=str(record["id"]),
        user_id=str(_get(record, "user_id", "userId")),
        title=_get(record, "title", default=""),
        message=_get(record, "message", default=""),
        type=NotificationType(record["type"]),
        is_read=bool(_get(record, "is_read", "isRead", default=False)),
        created_at=parse_datetime(created_at, timezone) if created_at else None,
    )


def notification_to_record(notification: Notification) -> Dict[str, Any]:
    return {
        "user_id": notification.user_id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type.value,
        "is_read": notification.is_read,
    }
