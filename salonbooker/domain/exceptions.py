"""
Domain-specific exception hierarchy for the salon booking application.
"""


class SalonBookerError(Exception):
    """Base class for all application-level errors."""


class BackendError(SalonBookerError):
    """Raised when the hosted backend cannot be reached or returns an error."""


class ConfigurationError(SalonBookerError):
    """Raised when required configuration values are missing or unusable."""


class AuthorizationError(SalonBookerError):
    """Raised when an actor's role does not permit the requested operation."""


class InvalidRequestError(SalonBookerError, ValueError):
    """Raised when caller-supplied input is malformed (e.g. an unparseable date)."""


class BookingError(SalonBookerError):
    """Base class for booking workflow errors."""


class SlotUnavailableError(BookingError):
    """Raised when the requested start time is no longer bookable."""


class InvalidTransitionError(BookingError):
    """Raised when an appointment status change is not allowed."""


class AppointmentNotFoundError(BookingError):
    """Raised when an appointment id does not resolve."""


class PaymentNotFoundError(SalonBookerError):
    """Raised when a payment id does not resolve."""


class NotificationNotFoundError(SalonBookerError):
    """Raised when a notification id does not resolve for the user."""
