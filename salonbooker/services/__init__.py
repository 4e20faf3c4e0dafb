"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .access import AccessService
from .analytics import AnalyticsService
from .availability import AvailabilityService, LatestSlotRequest
from .booking import BookingService
from .notifications import NotificationService
from .payments import PaymentService
from .reminders import ReminderScheduler, ReminderService
from .reviews import ReviewService

__all__ = [
    "AccessService",
    "AnalyticsService",
    "AvailabilityService",
    "BookingService",
    "LatestSlotRequest",
    "NotificationService",
    "PaymentService",
    "ReminderScheduler",
    "ReminderService",
    "ReviewService",
]
