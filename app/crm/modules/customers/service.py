"""
Customer repository.

All reads and writes are narrowed through `CUSTOMER_SCOPE`: agents see and mutate
only customers assigned to them, admins see everything. Rows outside the scope are
reported as not found. Deletion is a soft delete (status=inactive), guarded by the
relationship integrity check.

INVARIANTS:
- (assigned_agent_id, email) is unique among active customers
- check-then-mutate happens as one conditional UPDATE inside the request transaction
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from app.crm.errors import ConflictError, NotFoundError, ValidationError
from app.crm.fields import MONEY_MAX, Field, extract
from app.crm.integrity import ensure_customer_removable
from app.crm.models import utcnow
from app.crm.modules.customers.models import CUSTOMER_TYPES, Customer
from app.crm.scope import Identity, OwnerScope, resolve_owner
from app.crm.utils import Page, like_pattern

logger = logging.getLogger(__name__)

CUSTOMER_SCOPE = OwnerScope(Customer.assigned_agent_id)

CUSTOMER_FIELDS = (
    Field("first_name", "First name", required=True, max_length=50),
    Field("last_name", "Last name", required=True, max_length=50),
    Field("email", "Email", kind="email", required=True, max_length=100),
    Field("phone", "Phone", max_length=20),
    Field("customer_type", "Customer type", kind="choice", nullable=False, choices=CUSTOMER_TYPES, default="buyer"),
    Field("budget_min", "Minimum budget", kind="number", max_value=MONEY_MAX),
    Field("budget_max", "Maximum budget", kind="number", max_value=MONEY_MAX),
)

NOT_FOUND = "Customer not found."


def _check_budget(budget_min: float | None, budget_max: float | None) -> None:
    if budget_min is not None and budget_max is not None and budget_min > budget_max:
        raise ValidationError("Minimum budget cannot exceed maximum budget.")


def _email_taken(s: Session, *, agent_id: str, email: str, exclude_id: str | None = None) -> bool:
    stmt = select(Customer.id).where(
        Customer.assigned_agent_id == agent_id,
        func.lower(Customer.email) == email.lower(),
        Customer.status == "active",
    )
    if exclude_id is not None:
        stmt = stmt.where(Customer.id != exclude_id)
    return bool(s.execute(select(stmt.exists())).scalar())


def _reload(s: Session, customer_id: str) -> Customer:
    stmt = select(Customer).where(Customer.id == customer_id).execution_options(populate_existing=True)
    return s.execute(stmt).scalar_one()


def list_customers(
    s: Session,
    identity: Identity,
    *,
    search: str | None = None,
    customer_type: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page[Customer]:
    criteria = [Customer.status == "active"]
    if search:
        like = like_pattern(search)
        criteria.append(
            or_(
                Customer.first_name.ilike(like, escape="\\"),
                Customer.last_name.ilike(like, escape="\\"),
                Customer.email.ilike(like, escape="\\"),
            )
        )
    if customer_type:
        if customer_type not in CUSTOMER_TYPES:
            raise ValidationError(f"Customer type must be one of: {', '.join(CUSTOMER_TYPES)}.")
        criteria.append(Customer.customer_type == customer_type)

    total = int(s.execute(CUSTOMER_SCOPE.restrict(select(func.count(Customer.id)).where(*criteria), identity)).scalar_one())
    offset = (page - 1) * limit
    if offset >= total:
        # Past the last page; also keeps huge page numbers away from the driver.
        return Page(items=[], page=page, limit=limit, total=total)
    stmt = (
        CUSTOMER_SCOPE.restrict(select(Customer).where(*criteria), identity)
        .order_by(Customer.created_at.desc(), Customer.id.desc())
        .offset(offset)
        .limit(limit)
    )
    items = list(s.execute(stmt).scalars().all())
    return Page(items=items, page=page, limit=limit, total=total)


def get_customer(s: Session, identity: Identity, customer_id: str) -> Customer:
    stmt = CUSTOMER_SCOPE.restrict(
        select(Customer).where(Customer.id == customer_id, Customer.status == "active"),
        identity,
    )
    c = s.execute(stmt).scalar_one_or_none()
    if c is None:
        raise NotFoundError(NOT_FOUND, error="Customer not found")
    return c


def create_customer(s: Session, identity: Identity, payload: dict[str, Any]) -> Customer:
    values = extract(payload, CUSTOMER_FIELDS)
    _check_budget(values["budget_min"], values["budget_max"])
    agent_id = resolve_owner(s, identity, payload.get("assigned_agent_id"))

    if _email_taken(s, agent_id=agent_id, email=values["email"]):
        raise ConflictError("A customer with this email already exists.", error="Email already exists")

    now = utcnow()
    c = Customer(**values, status="active", assigned_agent_id=agent_id, created_at=now, updated_at=now)
    s.add(c)
    s.flush()
    logger.info("customer.create id=%s agent=%s by=%s", c.id, agent_id, identity.username)
    return c


def update_customer(s: Session, identity: Identity, customer_id: str, payload: dict[str, Any]) -> Customer:
    """Merge-update: keys absent from `payload` keep their stored value."""
    values = extract(payload, CUSTOMER_FIELDS, partial=True)

    if values.keys() & {"budget_min", "budget_max", "email"}:
        current = get_customer(s, identity, customer_id)
        _check_budget(
            values.get("budget_min", current.budget_min),
            values.get("budget_max", current.budget_max),
        )
        if "email" in values and _email_taken(
            s, agent_id=current.assigned_agent_id, email=values["email"], exclude_id=customer_id
        ):
            raise ConflictError("A customer with this email already exists.", error="Email already exists")

    stmt = CUSTOMER_SCOPE.restrict(
        update(Customer).where(Customer.id == customer_id, Customer.status == "active"),
        identity,
    ).values(**values, updated_at=utcnow())
    result = s.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        raise NotFoundError(NOT_FOUND, error="Customer not found or access denied")

    logger.info("customer.update id=%s fields=%s by=%s", customer_id, sorted(values), identity.username)
    return _reload(s, customer_id)


def delete_customer(s: Session, identity: Identity, customer_id: str) -> None:
    stmt = CUSTOMER_SCOPE.restrict(
        update(Customer).where(Customer.id == customer_id, Customer.status == "active"),
        identity,
    ).values(status="inactive", updated_at=utcnow())
    result = s.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        raise NotFoundError(NOT_FOUND, error="Customer not found or access denied")
    # Checked after the scoped update so out-of-scope callers only ever see 404;
    # a ConflictError here rolls the status change back with the request transaction.
    ensure_customer_removable(s, customer_id)
    logger.info("customer.delete id=%s by=%s", customer_id, identity.username)


def reactivate_customer(s: Session, identity: Identity, customer_id: str) -> Customer:
    stmt = CUSTOMER_SCOPE.restrict(
        select(Customer).where(Customer.id == customer_id, Customer.status == "inactive"),
        identity,
    )
    c = s.execute(stmt).scalar_one_or_none()
    if c is None:
        raise NotFoundError("Inactive customer not found.", error="Customer not found")
    if _email_taken(s, agent_id=c.assigned_agent_id, email=c.email, exclude_id=c.id):
        raise ConflictError(
            "Another active customer of this agent already uses this email.",
            error="Email already exists",
        )

    result = s.execute(
        update(Customer)
        .where(Customer.id == c.id, Customer.status == "inactive")
        .values(status="active", updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("Inactive customer not found.", error="Customer not found")
    logger.info("customer.reactivate id=%s by=%s", c.id, identity.username)
    return _reload(s, c.id)
