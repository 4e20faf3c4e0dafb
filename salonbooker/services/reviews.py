"""
Client reviews of completed appointments.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

import pendulum

from ..domain.exceptions import (
    AppointmentNotFoundError,
    AuthorizationError,
    InvalidRequestError,
)
from ..domain.models import MAX_RATING, MIN_RATING, Appointment, AppointmentStatus, Review
from ..domain.roles import Actor

logger = logging.getLogger(__name__)


class ReviewStoreProtocol(Protocol):
    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        ...

    async def create_review(self, review: Review) -> Review:
        """Persist a new review and return it with its id and timestamp."""

    async def get_reviews(
        self, staff_id: Optional[str] = None, client_id: Optional[str] = None
    ) -> List[Review]:
        """Reviews matching the given filters, newest first."""


class ReviewService:
    """Lets a client rate an appointment they attended, once."""

    def __init__(self, store: ReviewStoreProtocol, timezone: str = "UTC") -> None:
        self._store = store
        self._timezone = timezone

    async def create_review(
        self,
        actor: Actor,
        appointment_id: str,
        rating: int,
        comment: str | None = None,
        preferences: Sequence[str] = (),
    ) -> Review:
        """
        Store the actor's review of ``appointment_id``.

        Raises:
            InvalidRequestError: If the rating is out of range, the
                appointment is not completed or was already reviewed
            AppointmentNotFoundError: If the appointment does not exist
            AuthorizationError: If the actor is not the appointment's client
        """
        if not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidRequestError(f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}")

        appointment = await self._store.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        if appointment.client_id != actor.user_id:
            raise AuthorizationError("Only the appointment's client can review it")
        if appointment.status != AppointmentStatus.COMPLETED:
            raise InvalidRequestError(
                f"Appointment {appointment_id} is {appointment.status.value}; only completed appointments can be reviewed"
            )

        existing = await self._store.get_reviews(client_id=actor.user_id)
        if any(r.appointment_id == appointment_id for r in existing):
            raise InvalidRequestError(f"Appointment {appointment_id} has already been reviewed")

        review = Review(
            id=None,
            appointment_id=appointment_id,
            client_id=appointment.client_id,
            staff_id=appointment.staff_id,
            rating=rating,
            created_at=pendulum.now(self._timezone),
            comment=comment or None,
            preferences=[p.strip() for p in preferences if p.strip()],
        )
        created = await self._store.create_review(review)
        logger.info("Client %s rated appointment %s with %d", actor.user_id, appointment_id, rating)
        return created

    async def get_reviews(self, staff_id: str | None = None, client_id: str | None = None) -> List[Review]:
        return await self._store.get_reviews(staff_id=staff_id, client_id=client_id)
