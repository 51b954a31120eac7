"""
Relationship integrity guard.

A customer referenced as owner or buyer by any property that is not itself
soft-deleted cannot be removed. The soft-delete path calls
`ensure_customer_removable` explicitly; ORM hard deletes hit the same rule through a
`before_delete` mapper event.
"""

from __future__ import annotations

import logging

from sqlalchemy import event, func, or_, select
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from app.crm.errors import ConflictError
from app.crm.modules.customers.models import Customer
from app.crm.modules.properties.models import Property

logger = logging.getLogger(__name__)


def _live_reference_count_stmt(customer_id: str):
    return select(func.count(Property.id)).where(
        Property.status != "deleted",
        or_(Property.owner_customer_id == customer_id, Property.sold_to_customer_id == customer_id),
    )


def live_reference_count(s: Session | Connection, customer_id: str) -> int:
    return int(s.execute(_live_reference_count_stmt(customer_id)).scalar_one())


def _blocked(customer_id: str, count: int) -> ConflictError:
    logger.info("Customer %s removal blocked by %d live property reference(s)", customer_id, count)
    noun = "property" if count == 1 else "properties"
    return ConflictError(
        f"Customer cannot be deleted while referenced by {count} active {noun}.",
        error="Customer has linked properties",
    )


def ensure_customer_removable(s: Session | Connection, customer_id: str) -> None:
    count = live_reference_count(s, customer_id)
    if count:
        raise _blocked(customer_id, count)


@event.listens_for(Customer, "before_delete")
def _guard_customer_hard_delete(mapper, connection: Connection, target: Customer) -> None:  # type: ignore[no-untyped-def]
    ensure_customer_removable(connection, target.id)
