"""
salonbooker - Appointment availability, booking, reminders and analytics for salons.
"""

__version__ = "0.1.0"
