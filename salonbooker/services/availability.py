"""
Application service for finding bookable appointment times.

The service fetches the service duration, the staff member's weekly working
windows and the day's bookings through small collaborator protocols and
delegates the actual slot calculation to the domain-level ``SlotCalculator``.
Any backend adapter (or a stub in tests) that implements the protocols can be
plugged in.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from ..domain.models import (
    Appointment,
    BookedInterval,
    Service,
    SlotRequest,
    WorkingWindow,
)
from ..domain.slot_calculator import SlotCalculator

logger = logging.getLogger(__name__)


class ServiceCatalogProtocol(Protocol):
    async def get_service(self, service_id: str) -> Optional[Service]:
        """Return the service, or None if the id does not resolve."""


class StaffScheduleProtocol(Protocol):
    async def get_working_windows(self, staff_id: str) -> Optional[List[WorkingWindow]]:
        """Return the weekly working windows, or None for an unknown staff member."""


class AppointmentStoreProtocol(Protocol):
    async def get_active_appointments(self, staff_id: str, date: str) -> List[Appointment]:
        """Return the staff member's pending, confirmed and in-progress appointments on ``date``."""


class AvailabilityService:
    """
    Orchestrates the three lookups and the slot calculation.

    Missing reference data (unknown or inactive service, unknown staff member,
    no active window on that weekday) yields an empty list; a fully booked day
    looks exactly the same to the caller. Backend failures propagate.
    """

    def __init__(
        self,
        catalog: ServiceCatalogProtocol,
        schedule: StaffScheduleProtocol,
        appointments: AppointmentStoreProtocol,
        slot_calculator: SlotCalculator,
        timezone: str = "UTC",
    ) -> None:
        self._catalog = catalog
        self._schedule = schedule
        self._appointments = appointments
        self._slot_calculator = slot_calculator
        self._timezone = timezone

    async def get_available_slots(self, staff_id: str, service_id: str, date: str) -> List[str]:
        """
        Compute the ordered ``HH:MM`` start times bookable on ``date``.

        Raises:
            InvalidRequestError: If ``date`` is not a valid ISO date
            BackendError: If one of the lookups fails
        """
        return await self.find_slots(SlotRequest(staff_id=staff_id, service_id=service_id, date=date))

    async def find_slots(self, request: SlotRequest) -> List[str]:
        day = request.day(self._timezone)

        service = await self._catalog.get_service(request.service_id)
        if service is None or not service.is_active:
            logger.debug("Service %s not found or inactive", request.service_id)
            return []

        windows = await self._schedule.get_working_windows(request.staff_id)
        window = self.select_window(windows or [], request.weekday)
        if window is None or not window.is_active:
            logger.debug("Staff %s does not work on weekday %d", request.staff_id, request.weekday)
            return []

        booked = await self.fetch_booked_intervals(request.staff_id, request.date)

        return self._slot_calculator.find_available_slots(
            day=day,
            window=window,
            duration_minutes=service.duration_minutes,
            booked=booked,
        )

    async def fetch_booked_intervals(self, staff_id: str, date: str) -> List[BookedInterval]:
        """
        Fetch the day's bookings that block the calendar.

        The store is asked for active appointments only; the status filter is
        re-applied here so that a store returning cancelled or no-show rows
        can never hide a free slot.
        """
        appointments = await self._appointments.get_active_appointments(staff_id, date)
        return [a.booked_interval() for a in appointments if a.status.is_active]

    @staticmethod
    def select_window(windows: Sequence[WorkingWindow], weekday: int) -> WorkingWindow | None:
        """First window configured for ``weekday``, or None."""
        for window in windows:
            if window.weekday == weekday:
                return window
        return None


class LatestSlotRequest:
    """
    Drops slot results that were superseded while they were being fetched.

    Every ``load`` call gets a new generation number. When a later call
    started before an earlier one finished, the earlier result is stale and
    ``None`` is returned for it instead of the slots.
    """

    def __init__(self, service: AvailabilityService) -> None:
        self._service = service
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def load(self, staff_id: str, service_id: str, date: str) -> Optional[List[str]]:
        self._generation += 1
        generation = self._generation

        slots = await self._service.get_available_slots(staff_id, service_id, date)

        if generation != self._generation:
            logger.debug("Discarding superseded slot request for %s on %s", staff_id, date)
            return None
        return slots
