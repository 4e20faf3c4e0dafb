"""
Booking workflow: creating appointments and moving them through their statuses.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, FrozenSet, Optional, Protocol

from ..domain.exceptions import (
    AppointmentNotFoundError,
    AuthorizationError,
    BackendError,
    InvalidRequestError,
    InvalidTransitionError,
    SlotUnavailableError,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Notification,
    NotificationType,
    Service,
    SlotRequest,
    parse_time_of_day,
)
from ..domain.roles import Actor, Role
from .availability import AvailabilityService

logger = logging.getLogger(__name__)

Status = AppointmentStatus

ALLOWED_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    Status.PENDING: frozenset({Status.CONFIRMED, Status.CANCELLED}),
    Status.CONFIRMED: frozenset({Status.IN_PROGRESS, Status.CANCELLED, Status.NO_SHOW}),
    Status.IN_PROGRESS: frozenset({Status.COMPLETED}),
    Status.COMPLETED: frozenset(),
    Status.CANCELLED: frozenset(),
    Status.NO_SHOW: frozenset(),
}


class BookingStoreProtocol(Protocol):
    async def get_service(self, service_id: str) -> Optional[Service]:
        ...

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        ...

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        """Persist a new appointment and return it with its id."""

    async def update_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        ...

    async def create_notification(self, notification: Notification) -> None:
        ...


class BookingService:
    """Creates bookings against live availability and manages status changes."""

    def __init__(
        self,
        store: BookingStoreProtocol,
        availability: AvailabilityService,
        timezone: str = "UTC",
    ) -> None:
        self._store = store
        self._availability = availability
        self._timezone = timezone

    async def create_booking(
        self,
        actor: Actor,
        *,
        salon_id: str,
        client_id: str,
        staff_id: str,
        service_id: str,
        date: str,
        start_time: str,
        notes: str | None = None,
    ) -> Appointment:
        """
        Book ``start_time`` on ``date`` if it is still a free slot.

        The slot list is recomputed right before inserting, so a time that was
        taken since the client loaded the picker is rejected.

        Raises:
            AuthorizationError: If a client books on behalf of someone else
            SlotUnavailableError: If the time is not (or no longer) bookable
            InvalidRequestError: If the service belongs to another salon
        """
        if actor.role == Role.CLIENT and actor.user_id != client_id:
            raise AuthorizationError("Clients can only book appointments for themselves")

        request = SlotRequest(staff_id=staff_id, service_id=service_id, date=date)
        slots = await self._availability.find_slots(request)
        if start_time not in slots:
            raise SlotUnavailableError(f"{date} {start_time} is not available for staff {staff_id}")

        service = await self._store.get_service(service_id)
        if service is None:
            raise SlotUnavailableError(f"Service {service_id} is no longer available")
        if service.salon_id != salon_id:
            raise InvalidRequestError(f"Service {service_id} is not offered by salon {salon_id}")

        slot_time = parse_time_of_day(start_time)
        start = request.day(self._timezone).set(hour=slot_time.hour, minute=slot_time.minute)
        end = start.add(minutes=service.duration_minutes)

        appointment = Appointment(
            id=None,
            salon_id=salon_id,
            client_id=client_id,
            staff_id=staff_id,
            service_id=service_id,
            date=date,
            start_time=start.time(),
            end_time=end.time(),
            status=Status.PENDING,
            price=service.price,
            notes=notes,
            service_name=service.name,
        )

        created = await self._store.create_appointment(appointment)
        logger.info("Booked %s for client %s with staff %s on %s %s",
                    service.name, client_id, staff_id, date, start_time)
        return created

    async def update_status(
        self,
        actor: Actor,
        appointment_id: str,
        status: AppointmentStatus,
    ) -> Appointment:
        """
        Move an appointment to ``status``.

        Staff roles may perform any allowed transition; a client may only
        cancel their own appointment.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            AuthorizationError: If the actor may not change this appointment
            InvalidTransitionError: If the transition is not allowed
        """
        appointment = await self._store.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

        if not actor.role.is_staff:
            if actor.user_id != appointment.client_id or status != Status.CANCELLED:
                raise AuthorizationError("Clients can only cancel their own appointments")

        if status not in ALLOWED_TRANSITIONS[appointment.status]:
            raise InvalidTransitionError(
                f"Cannot change appointment {appointment_id} from "
                f"{appointment.status.value} to {status.value}"
            )

        updated = await self._store.update_appointment_status(appointment_id, status)
        # Some stores return only the changed columns
        if not updated.service_name:
            updated = replace(updated, service_name=appointment.service_name)

        await self._notify_client(updated)
        return updated

    async def _notify_client(self, appointment: Appointment) -> None:
        if appointment.status == Status.CONFIRMED:
            notification = Notification(
                user_id=appointment.client_id,
                title="Appointment confirmed",
                message=f"Your appointment for {appointment.service_name or 'your service'} "
                        f"on {appointment.date} has been confirmed",
                type=NotificationType.CONFIRMATION,
            )
        elif appointment.status == Status.CANCELLED:
            notification = Notification(
                user_id=appointment.client_id,
                title="Appointment cancelled",
                message=f"Your appointment for {appointment.service_name or 'your service'} "
                        f"on {appointment.date} has been cancelled",
                type=NotificationType.CANCELLATION,
            )
        else:
            return

        # The status change is already stored; a failed notification must not undo it
        try:
            await self._store.create_notification(notification)
        except BackendError:
            logger.exception("Could not notify client %s about appointment %s",
                             appointment.client_id, appointment.id)
