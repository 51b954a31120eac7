from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.crm.models import Base, User, new_id, utcnow

CUSTOMER_TYPES = ("buyer", "seller", "both")
CUSTOMER_STATUSES = ("active", "inactive")


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        CheckConstraint("customer_type IN ('buyer', 'seller', 'both')", name="ck_customers_customer_type"),
        CheckConstraint("status IN ('active', 'inactive')", name="ck_customers_status"),
        Index("idx_customers_assigned_agent", "assigned_agent_id"),
        Index("idx_customers_email", "email"),
        Index("idx_customers_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    customer_type: Mapped[str] = mapped_column(String(20), nullable=False, default="buyer")
    budget_min: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    budget_max: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    assigned_agent_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    assigned_agent: Mapped[User] = relationship("User", foreign_keys=[assigned_agent_id], lazy="joined")

    def to_dict(self) -> dict:
        agent = self.assigned_agent
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "customer_type": self.customer_type,
            "budget_min": self.budget_min,
            "budget_max": self.budget_max,
            "status": self.status,
            "assigned_agent_id": self.assigned_agent_id,
            "agent_username": agent.username if agent else None,
            "agent_first_name": agent.first_name if agent else None,
            "agent_last_name": agent.last_name if agent else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# One active customer per (agent, email), email compared case-insensitively;
# soft-deleted rows do not count.
Index(
    "uq_customers_agent_email_active",
    Customer.assigned_agent_id,
    func.lower(Customer.email),
    unique=True,
    postgresql_where=text("status = 'active'"),
    sqlite_where=text("status = 'active'"),
)
