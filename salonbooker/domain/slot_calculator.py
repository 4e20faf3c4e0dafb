"""
Core business logic for calculating bookable appointment start times.

Pure domain logic without any external dependencies (no API calls, no
database, no I/O).
"""

from typing import Iterator, List, Sequence

from pendulum import DateTime

from .models import BookedInterval, TimeRange, WorkingWindow

DEFAULT_STEP_MINUTES = 30


class SlotCalculator:
    """
    Calculates the start times at which a service fits into a working window.

    Algorithm:
    1. Turn the working window into a concrete range on the requested day
    2. Walk candidate start times from the window start in fixed steps
    3. Keep candidates whose full service duration ends inside the window
    4. Drop candidates overlapping any booked interval
    5. Return the survivors as ``HH:MM`` strings (ascending by construction)
    """

    def __init__(self, step_minutes: int = DEFAULT_STEP_MINUTES):
        if step_minutes <= 0:
            raise ValueError(f"step_minutes must be greater than zero, got {step_minutes}")
        self.step_minutes = step_minutes

    def find_available_slots(
        self,
        day: DateTime,
        window: WorkingWindow | None,
        duration_minutes: int,
        booked: Sequence[BookedInterval] = (),
    ) -> List[str]:
        """
        Find all bookable start times for one staff member on one day.

        Args:
            day: The calendar day (any time component is ignored)
            window: Working window for the day's weekday, or None
            duration_minutes: Fixed duration of the requested service
            booked: Active bookings of the staff member on that day

        Returns:
            Ordered list of ``HH:MM`` start times; empty when nothing fits
        """
        if window is None or duration_minutes <= 0:
            return []

        working_range = window.on_date(day)
        if working_range is None:
            return []

        busy_ranges = self._busy_ranges(day, booked)

        return [
            candidate.start.format("HH:mm")
            for candidate in self._candidates(working_range, duration_minutes)
            if not any(candidate.overlaps(busy) for busy in busy_ranges)
        ]

    def _candidates(self, working_range: TimeRange, duration_minutes: int) -> Iterator[TimeRange]:
        """
        Yield every step-aligned range of ``duration_minutes`` inside the window.

        Example (step 30, duration 60):
        Working: 09:00 - 12:00
        Yields: 09:00-10:00, 09:30-10:30, ..., 11:00-12:00
        """
        start = working_range.start

        while True:
            end = start.add(minutes=duration_minutes)
            if end > working_range.end:
                return
            yield TimeRange(start=start, end=end)
            start = start.add(minutes=self.step_minutes)

    def _busy_ranges(self, day: DateTime, booked: Sequence[BookedInterval]) -> List[TimeRange]:
        ranges: List[TimeRange] = []
        for interval in booked:
            busy = interval.on_date(day)
            if busy is not None:
                ranges.append(busy)
        return ranges
