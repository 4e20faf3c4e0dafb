"""
Domain layer - Pure business logic without external dependencies.
"""

from .analytics import AnalyticsAggregator, AnalyticsReport
from .models import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentStatus,
    BookedInterval,
    Notification,
    NotificationType,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Review,
    Service,
    SlotRequest,
    TimeRange,
    WorkingWindow,
)
from .roles import Actor, Role, require_role
from .slot_calculator import SlotCalculator

__all__ = [
    "ACTIVE_STATUSES",
    "Actor",
    "AnalyticsAggregator",
    "AnalyticsReport",
    "Appointment",
    "AppointmentStatus",
    "BookedInterval",
    "Notification",
    "NotificationType",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Review",
    "Role",
    "Service",
    "SlotCalculator",
    "SlotRequest",
    "TimeRange",
    "WorkingWindow",
    "require_role",
]
