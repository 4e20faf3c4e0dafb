"""
Tests for the analytics aggregator and service.
"""

import asyncio

import pendulum
import pytest

from salonbooker.domain.analytics import AnalyticsAggregator, KeyCount, RatingCount
from salonbooker.domain.exceptions import AuthorizationError
from salonbooker.domain.models import (
    AppointmentStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Review,
)
from salonbooker.domain.roles import Actor, Role
from salonbooker.services.analytics import AnalyticsService

from .stubs import make_appointment


def _payment(pid, amount, method=PaymentMethod.CASH, status=PaymentStatus.COMPLETED, created="2024-11-25T12:00:00"):
    return Payment(
        id=pid,
        appointment_id=f"apt-{pid}",
        amount=amount,
        method=method,
        status=status,
        created_at=pendulum.parse(created, tz="Europe/Madrid"),
    )


def _review(rid, appointment_id, rating, created="2024-11-25T18:00:00", preferences=()):
    return Review(
        id=rid,
        appointment_id=appointment_id,
        client_id="client",
        staff_id="",
        rating=rating,
        created_at=pendulum.parse(created, tz="Europe/Madrid"),
        preferences=list(preferences),
    )


APPOINTMENTS = [
    make_appointment("09:00", "10:00", appointment_id="a1", client_id="c1", staff_id="s1",
                     staff_name="Ana Lopez", service_name="Haircut", price=25.0),
    make_appointment("10:00", "11:30", appointment_id="a2", client_id="c2", staff_id="s1",
                     staff_name="Ana Lopez", service_name="Colour", price=60.0,
                     status=AppointmentStatus.PENDING),
    make_appointment("09:00", "10:00", appointment_id="a3", client_id="c1", staff_id="s2",
                     staff_name="Luis Mora", service_name="Haircut", price=25.0,
                     date="2024-11-26", status=AppointmentStatus.CANCELLED),
]

PAYMENTS = [
    _payment("p1", 25.0, created="2024-11-25T10:05:00"),
    _payment("p2", 60.0, method=PaymentMethod.STRIPE, created="2024-12-02T11:35:00"),
    _payment("p3", 40.0, status=PaymentStatus.FAILED),
]

REVIEWS = [
    _review("r1", "a1", 5, created="2024-11-25T11:00:00", preferences=["short", "natural"]),
    _review("r2", "a2", 4, created="2024-11-26T11:00:00", preferences=["natural"]),
    _review("r3", "a3", 2, created="2024-11-24T11:00:00"),
]


class TestAnalyticsAggregator:
    """Tests for AnalyticsAggregator."""

    def test_empty_input_yields_zeros(self):
        report = AnalyticsAggregator().build_report([], [], [])

        assert report.overview.total_appointments == 0
        assert report.overview.total_revenue == 0
        assert report.overview.average_rating == 0
        assert report.overview.total_clients == 0
        assert report.appointments.daily == []
        assert report.revenue.by_method == []
        assert report.reviews.rating_distribution == []
        assert report.performance.client_retention == 0
        assert report.performance.average_appointment_value == 0

    def test_overview(self):
        overview = AnalyticsAggregator().build_report(APPOINTMENTS, PAYMENTS, REVIEWS).overview

        assert overview.total_appointments == 3
        assert overview.total_revenue == 85.0  # failed payment ignored
        assert overview.average_rating == 3.7
        assert overview.total_clients == 2

    def test_appointment_groupings(self):
        analytics = AnalyticsAggregator().appointment_analytics(APPOINTMENTS)

        assert analytics.daily == [KeyCount("2024-11-25", 2), KeyCount("2024-11-26", 1)]
        assert {b.key: b.count for b in analytics.by_status} == {
            "confirmed": 1, "pending": 1, "cancelled": 1,
        }
        by_service = {b.key: (b.count, b.revenue) for b in analytics.by_service}
        assert by_service == {"Haircut": (2, 50.0), "Colour": (1, 60.0)}
        by_staff = {b.key: (b.count, b.revenue) for b in analytics.by_staff}
        assert by_staff == {"Ana Lopez": (2, 85.0), "Luis Mora": (1, 25.0)}

    def test_groupings_sum_to_totals(self):
        report = AnalyticsAggregator().build_report(APPOINTMENTS, PAYMENTS, REVIEWS)

        assert sum(b.count for b in report.appointments.by_status) == report.overview.total_appointments
        assert sum(b.amount for b in report.revenue.daily) == report.overview.total_revenue
        assert sum(b.amount for b in report.revenue.monthly) == report.overview.total_revenue
        assert sum(b.amount for b in report.revenue.by_method) == report.overview.total_revenue

    def test_revenue_analytics(self):
        revenue = AnalyticsAggregator().revenue_analytics(PAYMENTS)

        assert [(b.key, b.amount) for b in revenue.daily] == [("2024-11-25", 25.0), ("2024-12-02", 60.0)]
        assert [(b.key, b.amount) for b in revenue.monthly] == [("2024-11", 25.0), ("2024-12", 60.0)]
        assert {b.key: (b.amount, b.count) for b in revenue.by_method} == {
            "cash": (25.0, 1),
            "stripe": (60.0, 1),
        }

    def test_review_analytics(self):
        reviews = AnalyticsAggregator().review_analytics(REVIEWS)

        assert reviews.average_rating == 3.7
        assert reviews.rating_distribution == [RatingCount(2, 1), RatingCount(4, 1), RatingCount(5, 1)]
        assert [r.id for r in reviews.recent_reviews] == ["r2", "r1", "r3"]
        assert reviews.top_preferences[0] == KeyCount("natural", 2)

    def test_recent_reviews_are_limited(self):
        many = [_review(f"r{i}", "a1", 5, created=f"2024-11-{i + 1:02d}T10:00:00") for i in range(15)]

        recent = AnalyticsAggregator().review_analytics(many).recent_reviews

        assert len(recent) == 10
        assert recent[0].id == "r14"

    def test_performance_metrics(self):
        performance = AnalyticsAggregator().performance_metrics(APPOINTMENTS, PAYMENTS, REVIEWS)

        assert performance.popular_services[0].key == "Haircut"
        assert performance.popular_services[0].count == 2

        top = performance.top_staff[0]
        assert top.name == "Ana Lopez"
        assert top.bookings == 2
        assert top.rating == 4.5
        assert performance.top_staff[1].rating == 2.0

        # c1 booked twice, c2 once
        assert performance.client_retention == 50.0
        assert performance.average_appointment_value == pytest.approx(85.0 / 3, abs=0.01)


class StubAnalyticsStore:
    async def get_salon_appointments(self, salon_id, start, end):
        return APPOINTMENTS

    async def get_salon_payments(self, salon_id, start, end):
        return PAYMENTS

    async def get_salon_reviews(self, salon_id, start, end):
        return REVIEWS


class TestAnalyticsService:
    """Tests for AnalyticsService."""

    def test_owner_gets_report(self):
        service = AnalyticsService(store=StubAnalyticsStore(), aggregator=AnalyticsAggregator())

        report = asyncio.run(service.get_analytics(Actor("owner", Role.OWNER), "salon-1"))

        assert report.overview.total_appointments == 3

    @pytest.mark.parametrize("role", [Role.EMPLOYEE, Role.CLIENT])
    def test_other_roles_are_rejected(self, role):
        service = AnalyticsService(store=StubAnalyticsStore(), aggregator=AnalyticsAggregator())

        with pytest.raises(AuthorizationError):
            asyncio.run(service.get_analytics(Actor("user", role), "salon-1"))
