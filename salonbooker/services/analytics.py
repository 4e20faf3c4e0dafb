"""
Application service assembling a salon's analytics report.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from ..domain.analytics import AnalyticsAggregator, AnalyticsReport
from ..domain.models import Appointment, Payment, Review
from ..domain.roles import Actor, Role, require_role

logger = logging.getLogger(__name__)


class AnalyticsStoreProtocol(Protocol):
    async def get_salon_appointments(
        self, salon_id: str, start: Optional[str], end: Optional[str]
    ) -> List[Appointment]:
        """Appointments whose date lies in the inclusive range."""

    async def get_salon_payments(
        self, salon_id: str, start: Optional[str], end: Optional[str]
    ) -> List[Payment]:
        """Payments of the salon's appointments created in the inclusive range."""

    async def get_salon_reviews(
        self, salon_id: str, start: Optional[str], end: Optional[str]
    ) -> List[Review]:
        """Reviews of the salon's appointments created in the inclusive range."""


class AnalyticsService:
    """Fetches a salon's data for a date range and aggregates it."""

    def __init__(self, store: AnalyticsStoreProtocol, aggregator: AnalyticsAggregator) -> None:
        self._store = store
        self._aggregator = aggregator

    async def get_analytics(
        self,
        actor: Actor,
        salon_id: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> AnalyticsReport:
        """
        Build the analytics report for ``salon_id``.

        Args:
            actor: Must be the salon's owner or an admin
            salon_id: Salon to report on
            start: Optional first day (YYYY-MM-DD), inclusive
            end: Optional last day (YYYY-MM-DD), inclusive

        Raises:
            AuthorizationError: If the actor cannot view salon analytics
            BackendError: If fetching data fails
        """
        require_role(actor, Role.OWNER, Role.ADMIN)

        appointments = await self._store.get_salon_appointments(salon_id, start, end)
        payments = await self._store.get_salon_payments(salon_id, start, end)
        reviews = await self._store.get_salon_reviews(salon_id, start, end)

        logger.debug(
            "Aggregating %d appointments, %d payments, %d reviews for salon %s",
            len(appointments), len(payments), len(reviews), salon_id,
        )
        return self._aggregator.build_report(appointments, payments, reviews)
