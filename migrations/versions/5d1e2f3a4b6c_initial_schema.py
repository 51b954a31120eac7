"""initial schema: users, customers, properties

Revision ID: 5d1e2f3a4b6c
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "5d1e2f3a4b6c"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_index(table: str, name: str) -> bool:
        try:
            return any(ix.get("name") == name for ix in inspect(op.get_bind()).get_indexes(table))
        except Exception:
            return False

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("username", sa.String(length=50), nullable=False),
            sa.Column("email", sa.String(length=100), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("first_name", sa.String(length=50), nullable=False),
            sa.Column("last_name", sa.String(length=50), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="agent"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            *_timestamps(),
            sa.UniqueConstraint("username", name="uq_users_username"),
            sa.UniqueConstraint("email", name="uq_users_email"),
            sa.CheckConstraint("role IN ('admin', 'agent')", name="ck_users_role"),
            sa.CheckConstraint("status IN ('active', 'inactive')", name="ck_users_status"),
        )
        existing_tables.add("users")

    for idx_name, cols in (("idx_users_role", ["role"]), ("idx_users_status", ["status"])):
        if not _has_index("users", idx_name):
            op.create_index(idx_name, "users", cols)

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("first_name", sa.String(length=50), nullable=False),
            sa.Column("last_name", sa.String(length=50), nullable=False),
            sa.Column("email", sa.String(length=100), nullable=False),
            sa.Column("phone", sa.String(length=20), nullable=True),
            sa.Column("customer_type", sa.String(length=20), nullable=False, server_default="buyer"),
            sa.Column("budget_min", sa.Numeric(12, 2), nullable=True),
            sa.Column("budget_max", sa.Numeric(12, 2), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("assigned_agent_id", sa.String(length=36), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["assigned_agent_id"], ["users.id"], ondelete="RESTRICT"),
            sa.CheckConstraint("customer_type IN ('buyer', 'seller', 'both')", name="ck_customers_customer_type"),
            sa.CheckConstraint("status IN ('active', 'inactive')", name="ck_customers_status"),
        )
        existing_tables.add("customers")

    for idx_name, cols in (
        ("idx_customers_assigned_agent", ["assigned_agent_id"]),
        ("idx_customers_email", ["email"]),
        ("idx_customers_status", ["status"]),
    ):
        if not _has_index("customers", idx_name):
            op.create_index(idx_name, "customers", cols)
    if not _has_index("customers", "uq_customers_agent_email_active"):
        op.create_index(
            "uq_customers_agent_email_active",
            "customers",
            ["assigned_agent_id", sa.text("lower(email)")],
            unique=True,
            postgresql_where=sa.text("status = 'active'"),
            sqlite_where=sa.text("status = 'active'"),
        )

    if "properties" not in existing_tables:
        op.create_table(
            "properties",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("property_type", sa.String(length=50), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("price", sa.Numeric(12, 2), nullable=False),
            sa.Column("bedrooms", sa.Integer(), nullable=True),
            sa.Column("bathrooms", sa.Integer(), nullable=True),
            sa.Column("area_sqm", sa.Numeric(8, 2), nullable=True),
            sa.Column("address", sa.Text(), nullable=True),
            sa.Column("city", sa.String(length=100), nullable=True),
            sa.Column("district", sa.String(length=100), nullable=True),
            sa.Column("listed_by_agent_id", sa.String(length=36), nullable=False),
            sa.Column("owner_customer_id", sa.String(length=36), nullable=True),
            sa.Column("sold_to_customer_id", sa.String(length=36), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["listed_by_agent_id"], ["users.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["owner_customer_id"], ["customers.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["sold_to_customer_id"], ["customers.id"], ondelete="RESTRICT"),
            sa.CheckConstraint(
                "property_type IN ('apartment', 'house', 'villa', 'land', 'commercial')",
                name="ck_properties_property_type",
            ),
            sa.CheckConstraint(
                "status IN ('active', 'sold', 'rented', 'inactive', 'deleted')",
                name="ck_properties_status",
            ),
        )
        existing_tables.add("properties")

    for idx_name, cols in (
        ("idx_properties_listed_by_agent", ["listed_by_agent_id"]),
        ("idx_properties_owner_customer", ["owner_customer_id"]),
        ("idx_properties_sold_to_customer", ["sold_to_customer_id"]),
        ("idx_properties_status", ["status"]),
        ("idx_properties_city", ["city"]),
        ("idx_properties_price", ["price"]),
    ):
        if not _has_index("properties", idx_name):
            op.create_index(idx_name, "properties", cols)


def downgrade() -> None:
    for idx_name in (
        "idx_properties_price",
        "idx_properties_city",
        "idx_properties_status",
        "idx_properties_sold_to_customer",
        "idx_properties_owner_customer",
        "idx_properties_listed_by_agent",
    ):
        op.drop_index(idx_name, table_name="properties")
    op.drop_table("properties")

    for idx_name in (
        "uq_customers_agent_email_active",
        "idx_customers_status",
        "idx_customers_email",
        "idx_customers_assigned_agent",
    ):
        op.drop_index(idx_name, table_name="customers")
    op.drop_table("customers")

    op.drop_index("idx_users_status", table_name="users")
    op.drop_index("idx_users_role", table_name="users")
    op.drop_table("users")
