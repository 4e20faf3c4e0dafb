"""
Analytics aggregation over a salon's appointments, payments and reviews.

Everything here is a single pass of grouping and summing over lists that were
already fetched and scoped to one salon and date range.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from .models import Appointment, Payment, PaymentStatus, Review

UNKNOWN = "Unknown"
RECENT_REVIEWS_LIMIT = 10
TOP_PREFERENCES_LIMIT = 10


@dataclass(frozen=True)
class KeyCount:
    key: str
    count: int


@dataclass(frozen=True)
class KeyRevenue:
    key: str
    count: int
    revenue: float


@dataclass(frozen=True)
class KeyAmount:
    key: str
    amount: float
    count: int = 0


@dataclass(frozen=True)
class RatingCount:
    rating: int
    count: int


@dataclass(frozen=True)
class StaffPerformance:
    staff_id: str
    name: str
    bookings: int
    revenue: float
    rating: float


@dataclass(frozen=True)
class Overview:
    total_appointments: int = 0
    total_revenue: float = 0.0
    average_rating: float = 0.0
    total_clients: int = 0


@dataclass(frozen=True)
class AppointmentAnalytics:
    daily: List[KeyCount] = field(default_factory=list)
    by_status: List[KeyCount] = field(default_factory=list)
    by_service: List[KeyRevenue] = field(default_factory=list)
    by_staff: List[KeyRevenue] = field(default_factory=list)


@dataclass(frozen=True)
class RevenueAnalytics:
    daily: List[KeyAmount] = field(default_factory=list)
    monthly: List[KeyAmount] = field(default_factory=list)
    by_method: List[KeyAmount] = field(default_factory=list)


@dataclass(frozen=True)
class ReviewAnalytics:
    average_rating: float = 0.0
    rating_distribution: List[RatingCount] = field(default_factory=list)
    recent_reviews: List[Review] = field(default_factory=list)
    top_preferences: List[KeyCount] = field(default_factory=list)


@dataclass(frozen=True)
class PerformanceMetrics:
    popular_services: List[KeyRevenue] = field(default_factory=list)
    top_staff: List[StaffPerformance] = field(default_factory=list)
    client_retention: float = 0.0  # percent of clients with more than one appointment
    average_appointment_value: float = 0.0


@dataclass(frozen=True)
class AnalyticsReport:
    overview: Overview
    appointments: AppointmentAnalytics
    revenue: RevenueAnalytics
    reviews: ReviewAnalytics
    performance: PerformanceMetrics


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _service_key(appointment: Appointment) -> str:
    return appointment.service_name or UNKNOWN


def _staff_key(appointment: Appointment) -> str:
    return appointment.staff_name or appointment.staff_id or UNKNOWN


class AnalyticsAggregator:
    """
    Computes summary statistics for one salon.

    Only completed payments count as revenue; pending, failed and refunded
    payments are ignored even if the caller passes them in.
    """

    def build_report(
        self,
        appointments: Sequence[Appointment],
        payments: Sequence[Payment],
        reviews: Sequence[Review],
    ) -> AnalyticsReport:
        completed = self.completed_payments(payments)

        return AnalyticsReport(
            overview=self.overview(appointments, completed, reviews),
            appointments=self.appointment_analytics(appointments),
            revenue=self.revenue_analytics(completed),
            reviews=self.review_analytics(reviews),
            performance=self.performance_metrics(appointments, completed, reviews),
        )

    @staticmethod
    def completed_payments(payments: Iterable[Payment]) -> List[Payment]:
        return [p for p in payments if p.status == PaymentStatus.COMPLETED]

    def overview(
        self,
        appointments: Sequence[Appointment],
        payments: Sequence[Payment],
        reviews: Sequence[Review],
    ) -> Overview:
        payments = self.completed_payments(payments)
        return Overview(
            total_appointments=len(appointments),
            total_revenue=sum(p.amount for p in payments),
            average_rating=round(_average([r.rating for r in reviews]), 1),
            total_clients=len({a.client_id for a in appointments}),
        )

    def appointment_analytics(self, appointments: Sequence[Appointment]) -> AppointmentAnalytics:
        daily = Counter(a.date for a in appointments)
        by_status = Counter(a.status.value for a in appointments)

        return AppointmentAnalytics(
            daily=[KeyCount(key=d, count=c) for d, c in sorted(daily.items())],
            by_status=[KeyCount(key=s, count=c) for s, c in by_status.items()],
            by_service=self._count_and_revenue(appointments, _service_key),
            by_staff=self._count_and_revenue(appointments, _staff_key),
        )

    def revenue_analytics(self, payments: Sequence[Payment]) -> RevenueAnalytics:
        payments = self.completed_payments(payments)
        daily: Dict[str, float] = defaultdict(float)
        monthly: Dict[str, float] = defaultdict(float)
        method_amounts: Dict[str, float] = defaultdict(float)
        method_counts: Counter = Counter()

        for payment in payments:
            daily[payment.created_at.to_date_string()] += payment.amount
            monthly[payment.created_at.format("YYYY-MM")] += payment.amount
            method_amounts[payment.method.value] += payment.amount
            method_counts[payment.method.value] += 1

        return RevenueAnalytics(
            daily=[KeyAmount(key=k, amount=v) for k, v in sorted(daily.items())],
            monthly=[KeyAmount(key=k, amount=v) for k, v in sorted(monthly.items())],
            by_method=[
                KeyAmount(key=k, amount=v, count=method_counts[k])
                for k, v in method_amounts.items()
            ],
        )

    def review_analytics(self, reviews: Sequence[Review]) -> ReviewAnalytics:
        distribution = Counter(r.rating for r in reviews)
        preferences = Counter(p for r in reviews for p in r.preferences)
        recent = sorted(reviews, key=lambda r: r.created_at, reverse=True)

        return ReviewAnalytics(
            average_rating=round(_average([r.rating for r in reviews]), 1),
            rating_distribution=[
                RatingCount(rating=rating, count=count)
                for rating, count in sorted(distribution.items())
            ],
            recent_reviews=recent[:RECENT_REVIEWS_LIMIT],
            top_preferences=[
                KeyCount(key=p, count=c)
                for p, c in preferences.most_common(TOP_PREFERENCES_LIMIT)
            ],
        )

    def performance_metrics(
        self,
        appointments: Sequence[Appointment],
        payments: Sequence[Payment],
        reviews: Sequence[Review],
    ) -> PerformanceMetrics:
        payments = self.completed_payments(payments)

        popular = sorted(
            self._count_and_revenue(appointments, _service_key),
            key=lambda bucket: bucket.count,
            reverse=True,
        )

        visits = Counter(a.client_id for a in appointments)
        repeat_clients = sum(1 for count in visits.values() if count > 1)
        retention = repeat_clients / len(visits) * 100 if visits else 0.0

        total_revenue = sum(p.amount for p in payments)
        average_value = total_revenue / len(appointments) if appointments else 0.0

        return PerformanceMetrics(
            popular_services=popular,
            top_staff=self._staff_performance(appointments, reviews),
            client_retention=round(retention, 1),
            average_appointment_value=round(average_value, 2),
        )

    def _staff_performance(
        self,
        appointments: Sequence[Appointment],
        reviews: Sequence[Review],
    ) -> List[StaffPerformance]:
        bookings: Counter = Counter()
        revenue: Dict[str, float] = defaultdict(float)
        names: Dict[str, str] = {}
        ratings: Dict[str, List[int]] = defaultdict(list)
        staff_by_appointment = {a.id: a.staff_id for a in appointments if a.id}

        for appointment in appointments:
            bookings[appointment.staff_id] += 1
            revenue[appointment.staff_id] += appointment.price or 0.0
            names.setdefault(appointment.staff_id, _staff_key(appointment))

        for review in reviews:
            staff_id = staff_by_appointment.get(review.appointment_id, review.staff_id)
            # Reviews for staff outside this report's appointments are ignored
            if staff_id in bookings:
                ratings[staff_id].append(review.rating)

        performance = [
            StaffPerformance(
                staff_id=staff_id,
                name=names[staff_id],
                bookings=count,
                revenue=revenue[staff_id],
                rating=round(_average(ratings[staff_id]), 1),
            )
            for staff_id, count in bookings.items()
        ]
        return sorted(performance, key=lambda p: p.bookings, reverse=True)

    @staticmethod
    def _count_and_revenue(appointments: Iterable[Appointment], key_func) -> List[KeyRevenue]:
        counts: Counter = Counter()
        revenue: Dict[str, float] = defaultdict(float)

        for appointment in appointments:
            key = key_func(appointment)
            counts[key] += 1
            revenue[key] += appointment.price or 0.0

        return [KeyRevenue(key=k, count=c, revenue=revenue[k]) for k, c in counts.items()]
