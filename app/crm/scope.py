"""
Access scope resolution.

Every customer/property query passes through an `OwnerScope` so that agents only
ever see or mutate rows they own, while admins are unrestricted. The restriction is
derived from the authenticated `Identity`, never from request parameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from app.crm.errors import ValidationError
from app.crm.models import User

Q = TypeVar("Q")


@dataclass(frozen=True)
class Identity:
    id: str
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class OwnerScope:
    """Ownership predicate bound to one owner column (e.g. `Customer.assigned_agent_id`)."""

    def __init__(self, owner_column: Any) -> None:
        self.owner_column = owner_column

    def predicate(self, identity: Identity):
        """SQL criterion for the rows `identity` may touch, or None when unrestricted."""
        if identity.is_admin:
            return None
        return self.owner_column == identity.id

    def restrict(self, query: Q, identity: Identity) -> Q:
        """Narrow a select/update statement to the caller's rows."""
        criterion = self.predicate(identity)
        if criterion is None:
            return query
        return query.where(criterion)  # type: ignore[attr-defined]


def resolve_owner(s: Session, identity: Identity, requested: Any) -> str:
    """
    Owning agent for a new row.

    Non-admins always own what they create, whatever the payload says. Admins may
    assign to any active user and default to themselves.
    """
    if not identity.is_admin:
        return identity.id
    owner_id = (str(requested).strip() if requested is not None else "")
    if not owner_id:
        return identity.id
    owner = s.get(User, owner_id)
    if owner is None or not owner.is_active:
        raise ValidationError("Assigned agent not found or inactive.", error="Invalid agent")
    return owner.id
