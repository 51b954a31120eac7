from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.crm.models import Base, User, new_id, utcnow
from app.crm.modules.customers.models import Customer

PROPERTY_TYPES = ("apartment", "house", "villa", "land", "commercial")
PROPERTY_STATUSES = ("active", "sold", "rented", "inactive", "deleted")


class Property(Base):
    __tablename__ = "properties"
    __table_args__ = (
        CheckConstraint(
            "property_type IN ('apartment', 'house', 'villa', 'land', 'commercial')",
            name="ck_properties_property_type",
        ),
        CheckConstraint(
            "status IN ('active', 'sold', 'rented', 'inactive', 'deleted')",
            name="ck_properties_status",
        ),
        Index("idx_properties_listed_by_agent", "listed_by_agent_id"),
        Index("idx_properties_owner_customer", "owner_customer_id"),
        Index("idx_properties_sold_to_customer", "sold_to_customer_id"),
        Index("idx_properties_status", "status"),
        Index("idx_properties_city", "city"),
        Index("idx_properties_price", "price"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    property_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    bedrooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    area_sqm: Mapped[float | None] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=True)

    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)

    listed_by_agent_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    owner_customer_id: Mapped[str | None] = mapped_column(ForeignKey("customers.id", ondelete="RESTRICT"), nullable=True)
    sold_to_customer_id: Mapped[str | None] = mapped_column(ForeignKey("customers.id", ondelete="RESTRICT"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    listed_by_agent: Mapped[User] = relationship("User", foreign_keys=[listed_by_agent_id], lazy="joined")
    owner_customer: Mapped[Customer | None] = relationship("Customer", foreign_keys=[owner_customer_id], lazy="joined")
    sold_to_customer: Mapped[Customer | None] = relationship("Customer", foreign_keys=[sold_to_customer_id], lazy="selectin")

    def to_dict(self) -> dict:
        agent = self.listed_by_agent
        owner = self.owner_customer
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "property_type": self.property_type,
            "status": self.status,
            "price": self.price,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "area_sqm": self.area_sqm,
            "address": self.address,
            "city": self.city,
            "district": self.district,
            "listed_by_agent_id": self.listed_by_agent_id,
            "owner_customer_id": self.owner_customer_id,
            "sold_to_customer_id": self.sold_to_customer_id,
            "agent_username": agent.username if agent else None,
            "agent_first_name": agent.first_name if agent else None,
            "agent_last_name": agent.last_name if agent else None,
            "owner_first_name": owner.first_name if owner else None,
            "owner_last_name": owner.last_name if owner else None,
            "owner_email": owner.email if owner else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
