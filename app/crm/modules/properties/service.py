"""
Property repository.

Same shape as the customer repository, scoped on `listed_by_agent_id`. A listing
is visible unless soft-deleted (status=deleted); active, sold, rented and
inactive listings all show up in lists.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from app.crm.errors import ConflictError, NotFoundError, ValidationError
from app.crm.fields import AREA_MAX, INT_MAX, MONEY_MAX, Field, extract
from app.crm.models import utcnow
from app.crm.modules.customers.models import Customer
from app.crm.modules.properties.models import PROPERTY_STATUSES, PROPERTY_TYPES, Property
from app.crm.scope import Identity, OwnerScope, resolve_owner
from app.crm.utils import Page, like_pattern

logger = logging.getLogger(__name__)

PROPERTY_SCOPE = OwnerScope(Property.listed_by_agent_id)

# Allowed status moves; re-setting the current status is always a no-op.
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "active": frozenset({"sold", "rented", "inactive", "deleted"}),
    "inactive": frozenset({"active", "deleted"}),
    "sold": frozenset({"deleted"}),
    "rented": frozenset({"deleted"}),
    "deleted": frozenset(),
}

PROPERTY_FIELDS = (
    Field("title", "Title", required=True, max_length=200),
    Field("description", "Description"),
    Field("property_type", "Property type", kind="choice", required=True, choices=PROPERTY_TYPES),
    Field("price", "Price", kind="number", required=True, max_value=MONEY_MAX),
    Field("bedrooms", "Bedrooms", kind="int", max_value=INT_MAX),
    Field("bathrooms", "Bathrooms", kind="int", max_value=INT_MAX),
    Field("area_sqm", "Area (sqm)", kind="number", max_value=AREA_MAX),
    Field("address", "Address"),
    Field("city", "City", max_length=100),
    Field("district", "District", max_length=100),
    Field("owner_customer_id", "Owner customer"),
    Field("sold_to_customer_id", "Buyer customer"),
)

# Only updates may set status; new listings always start active.
STATUS_FIELD = Field("status", "Status", kind="choice", nullable=False, choices=PROPERTY_STATUSES)

NOT_FOUND = "Property not found."


def can_transition(current: str, new: str) -> bool:
    return new == current or new in STATUS_TRANSITIONS.get(current, frozenset())


def _check_customer_refs(s: Session, agent_id: str, values: dict[str, Any]) -> None:
    """Linked owner/buyer must be an active customer of the listing agent, whoever makes the call."""
    for key, label in (("owner_customer_id", "Owner customer"), ("sold_to_customer_id", "Buyer customer")):
        customer_id = values.get(key)
        if customer_id is None:
            continue
        stmt = select(Customer.id).where(
            Customer.id == customer_id,
            Customer.status == "active",
            Customer.assigned_agent_id == agent_id,
        )
        if s.execute(stmt).scalar_one_or_none() is None:
            raise ValidationError(
                f"{label} must be an active customer of the listing agent.", error="Invalid customer"
            )


def _reload(s: Session, property_id: str) -> Property:
    stmt = select(Property).where(Property.id == property_id).execution_options(populate_existing=True)
    return s.execute(stmt).scalar_one()


def list_properties(
    s: Session,
    identity: Identity,
    *,
    search: str | None = None,
    property_type: str | None = None,
    status: str | None = None,
    city: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page[Property]:
    criteria = [Property.status != "deleted"]
    if search:
        like = like_pattern(search)
        criteria.append(
            or_(
                Property.title.ilike(like, escape="\\"),
                Property.description.ilike(like, escape="\\"),
                Property.address.ilike(like, escape="\\"),
            )
        )
    if property_type:
        if property_type not in PROPERTY_TYPES:
            raise ValidationError(f"Property type must be one of: {', '.join(PROPERTY_TYPES)}.")
        criteria.append(Property.property_type == property_type)
    if status:
        if status not in PROPERTY_STATUSES or status == "deleted":
            raise ValidationError("Status must be one of: active, sold, rented, inactive.")
        criteria.append(Property.status == status)
    if city:
        criteria.append(Property.city.ilike(like_pattern(city), escape="\\"))

    total = int(s.execute(PROPERTY_SCOPE.restrict(select(func.count(Property.id)).where(*criteria), identity)).scalar_one())
    offset = (page - 1) * limit
    if offset >= total:
        return Page(items=[], page=page, limit=limit, total=total)
    stmt = (
        PROPERTY_SCOPE.restrict(select(Property).where(*criteria), identity)
        .order_by(Property.created_at.desc(), Property.id.desc())
        .offset(offset)
        .limit(limit)
    )
    items = list(s.execute(stmt).scalars().all())
    return Page(items=items, page=page, limit=limit, total=total)


def get_property(s: Session, identity: Identity, property_id: str) -> Property:
    stmt = PROPERTY_SCOPE.restrict(
        select(Property).where(Property.id == property_id, Property.status != "deleted"),
        identity,
    )
    p = s.execute(stmt).scalar_one_or_none()
    if p is None:
        raise NotFoundError(NOT_FOUND, error="Property not found")
    return p


def create_property(s: Session, identity: Identity, payload: dict[str, Any]) -> Property:
    values = extract(payload, PROPERTY_FIELDS)
    agent_id = resolve_owner(s, identity, payload.get("listed_by_agent_id"))
    _check_customer_refs(s, agent_id, values)

    now = utcnow()
    p = Property(**values, status="active", listed_by_agent_id=agent_id, created_at=now, updated_at=now)
    s.add(p)
    s.flush()
    logger.info("property.create id=%s agent=%s by=%s", p.id, agent_id, identity.username)
    return p


def update_property(s: Session, identity: Identity, property_id: str, payload: dict[str, Any]) -> Property:
    """Merge-update: keys absent from `payload` keep their stored value."""
    values = extract(payload, PROPERTY_FIELDS + (STATUS_FIELD,), partial=True)
    current = get_property(s, identity, property_id)

    new_status = values.get("status")
    if new_status is not None and not can_transition(current.status, new_status):
        raise ValidationError(
            f"Cannot change status from {current.status} to {new_status}.",
            error="Invalid status transition",
        )
    _check_customer_refs(s, current.listed_by_agent_id, values)

    # Status is part of the WHERE so a concurrent status change cannot be overwritten.
    stmt = PROPERTY_SCOPE.restrict(
        update(Property).where(Property.id == property_id, Property.status == current.status),
        identity,
    ).values(**values, updated_at=utcnow())
    result = s.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        raise ConflictError("Property was modified concurrently; retry the update.", error="Concurrent update")

    logger.info("property.update id=%s fields=%s by=%s", property_id, sorted(values), identity.username)
    return _reload(s, property_id)


def delete_property(s: Session, identity: Identity, property_id: str) -> None:
    stmt = PROPERTY_SCOPE.restrict(
        update(Property).where(Property.id == property_id, Property.status != "deleted"),
        identity,
    ).values(status="deleted", updated_at=utcnow())
    result = s.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        raise NotFoundError(NOT_FOUND, error="Property not found or access denied")
    logger.info("property.delete id=%s by=%s", property_id, identity.username)
