"""
Recording payments for appointments.

Card payments go through Stripe and are not created here; cash and bank
transfers are recorded by staff once the money is received.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Protocol

import pendulum

from ..domain.exceptions import (
    AppointmentNotFoundError,
    AuthorizationError,
    InvalidRequestError,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from ..domain.roles import Actor, Role, require_role

logger = logging.getLogger(__name__)

DIRECT_METHODS = frozenset({PaymentMethod.CASH, PaymentMethod.TRANSFER})
UNPAYABLE_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})


class PaymentStoreProtocol(Protocol):
    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        ...

    async def create_payment(self, payment: Payment) -> Payment:
        """Persist a new payment and return it with its id and timestamp."""

    async def get_payments(self, appointment_id: str) -> List[Payment]:
        """Payments of one appointment, newest first."""

    async def update_payment_status(self, payment_id: str, status: PaymentStatus) -> Payment:
        ...


class PaymentService:
    """Records direct payments and lets managers correct their status."""

    def __init__(self, store: PaymentStoreProtocol, timezone: str = "UTC") -> None:
        self._store = store
        self._timezone = timezone

    async def record_payment(
        self,
        actor: Actor,
        appointment_id: str,
        method: PaymentMethod,
        amount: float | None = None,
        notes: str | None = None,
    ) -> Payment:
        """
        Record a cash or transfer payment as completed.

        ``amount`` defaults to the appointment's price.

        Raises:
            AuthorizationError: If the actor is not salon staff
            InvalidRequestError: For card payments, a non-positive amount or
                a cancelled/no-show appointment
            AppointmentNotFoundError: If the appointment does not exist
        """
        if not actor.role.is_staff:
            raise AuthorizationError("Only salon staff can record payments")
        if method not in DIRECT_METHODS:
            raise InvalidRequestError(f"{method.value} payments are processed by the card provider")

        appointment = await self._store.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        if appointment.status in UNPAYABLE_STATUSES:
            raise InvalidRequestError(f"Appointment {appointment_id} is {appointment.status.value}")

        amount = appointment.price if amount is None else amount
        if amount is None or amount <= 0:
            raise InvalidRequestError("Payment amount must be greater than zero")

        payment = Payment(
            id=None,
            appointment_id=appointment_id,
            amount=amount,
            method=method,
            status=PaymentStatus.COMPLETED,
            created_at=pendulum.now(self._timezone),
            transaction_id=f"{method.value}_{uuid.uuid4().hex[:12]}",
            notes=notes,
        )
        created = await self._store.create_payment(payment)
        logger.info("Recorded %s payment of %.2f for appointment %s", method.value, amount, appointment_id)
        return created

    async def get_payments(self, appointment_id: str) -> List[Payment]:
        return await self._store.get_payments(appointment_id)

    async def update_payment_status(self, actor: Actor, payment_id: str, status: PaymentStatus) -> Payment:
        """
        Raises:
            AuthorizationError: If the actor is not an owner or admin
            PaymentNotFoundError: If the payment does not exist
        """
        require_role(actor, Role.OWNER, Role.ADMIN)
        updated = await self._store.update_payment_status(payment_id, status)
        logger.info("Payment %s set to %s by %s", payment_id, status.value, actor.user_id)
        return updated
