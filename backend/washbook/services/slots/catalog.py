# backend/washbook/services/slots/catalog.py
"""Service definitions and bay capacity, read from the database."""

import logging
from typing import Optional, Protocol

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...database import db_unavailable_guard
from ...models.generated import Services, WashBays
from .domain import ServiceDefinition

logger = logging.getLogger(__name__)


class ServiceCatalog(Protocol):
    def get_service(self, service_id: int) -> Optional[ServiceDefinition]:
        ...

    def bay_count(self) -> int:
        ...


class SqlServiceCatalog:
    def __init__(self, db: Session):
        self.db = db

    def get_service(self, service_id: int) -> Optional[ServiceDefinition]:
        """Service by ID, active or not. None if unknown or misconfigured."""
        with db_unavailable_guard(self.db, "catalog.get_service"):
            row = self.db.get(Services, service_id)
        if row is None:
            return None
        try:
            return ServiceDefinition(
                id=row.id,
                name=row.name,
                duration_minutes=row.duration_min,
                is_active=bool(row.is_active),
                capacity=row.capacity,
            )
        except ValueError as e:
            logger.warning(f"Service {service_id} is misconfigured: {e}")
            return None

    def bay_count(self) -> int:
        """Number of enabled wash bays (shared capacity)."""
        with db_unavailable_guard(self.db, "catalog.bay_count"):
            count = (
                self.db.query(func.count(WashBays.id))
                .filter(WashBays.is_enabled == 1)
                .scalar()
            )
        return count or 0


def capacity_for(service: ServiceDefinition, catalog: ServiceCatalog) -> tuple[int, bool]:
    """
    Capacity that applies to a service and whether it is service-scoped.

    Returns:
        (max_capacity, service_scoped). Dedicated capacity counts only that
        service's bookings; shared capacity counts all bookings of the day.
        Shared capacity is at least 1 (a site without configured bays still
        has one wash line).
    """
    if service.capacity is not None and service.capacity > 0:
        return service.capacity, True
    return max(1, catalog.bay_count()), False
