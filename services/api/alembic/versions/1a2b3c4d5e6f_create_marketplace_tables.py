"""create_marketplace_tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "1a2b3c4d5e6f"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "requests",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("request_type", sa.String(length=20), nullable=True),
        sa.Column("category_id", sa.String(length=64), nullable=True),
        sa.Column("subcategory_id", sa.String(length=64), nullable=True),
        sa.Column("country_code", sa.String(length=2), nullable=False),
        sa.Column("city_id", sa.String(length=64), nullable=False),
        sa.Column("location_address", sa.String(length=500), nullable=True),
        sa.Column("location_latitude", sa.Float(), nullable=True),
        sa.Column("location_longitude", sa.Float(), nullable=True),
        sa.Column("budget", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("image_urls", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("requester_phone", sa.String(length=50), nullable=True),
        sa.Column("requester_email", sa.String(length=200), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("accepted_response_id", sa.String(length=36), nullable=True),
        sa.Column("is_urgent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("urgent_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("urgent_payment_ref", sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in (
        "owner_id",
        "request_type",
        "category_id",
        "subcategory_id",
        "country_code",
        "city_id",
        "status",
        "accepted_response_id",
        "created_at",
    ):
        op.create_index(op.f(f"ix_requests_{column}"), "requests", [column], unique=False)

    op.create_table(
        "responses",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("request_id", sa.String(length=36), nullable=False),
        sa.Column("responder_id", sa.String(length=128), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("image_urls", sa.JSON(), nullable=True),
        sa.Column("location_address", sa.String(length=500), nullable=True),
        sa.Column("country_code", sa.String(length=2), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["request_id"], ["requests.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("request_id", "responder_id", name="uq_responses_request_responder"),
    )
    op.create_index(op.f("ix_responses_request_id"), "responses", ["request_id"], unique=False)
    op.create_index(op.f("ix_responses_responder_id"), "responses", ["responder_id"], unique=False)
    op.create_index(op.f("ix_responses_created_at"), "responses", ["created_at"], unique=False)

    op.create_table(
        "usage_monthly",
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("year_month", sa.Integer(), nullable=False),
        sa.Column("response_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "year_month"),
    )

    op.create_table(
        "urgent_boost_transactions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("request_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("country_code", sa.String(length=2), nullable=False),
        sa.Column("purpose", sa.String(length=30), nullable=False, server_default="urgent_boost"),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["request_id"], ["requests.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_urgent_boost_transactions_request_id"), "urgent_boost_transactions", ["request_id"], unique=False
    )
    op.create_index(
        op.f("ix_urgent_boost_transactions_user_id"), "urgent_boost_transactions", ["user_id"], unique=False
    )

    op.create_table(
        "business_types",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    flags = [
        "item",
        "service",
        "rent",
        "delivery",
        "ride",
        "tours",
        "events",
        "construction",
        "education",
        "hiring",
    ]
    op.create_table(
        "country_business_types",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("country_code", sa.String(length=2), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        *[sa.Column(f"can_respond_{flag}", sa.Boolean(), nullable=True) for flag in flags],
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_country_business_types_country_code"), "country_business_types", ["country_code"], unique=False
    )

    op.create_table(
        "business_profiles",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("business_name", sa.String(length=200), nullable=False),
        sa.Column("business_email", sa.String(length=200), nullable=True),
        sa.Column("country_code", sa.String(length=2), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("is_subscribed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("categories", sa.JSON(), nullable=True),
        sa.Column("legacy_business_type", sa.String(length=50), nullable=True),
        sa.Column("business_category", sa.String(length=100), nullable=True),
        sa.Column("business_type_id", sa.String(length=64), nullable=True),
        sa.Column("country_business_type_id", sa.String(length=64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["business_type_id"], ["business_types.id"]),
        sa.ForeignKeyConstraint(["country_business_type_id"], ["country_business_types.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_business_profiles_business_name"), "business_profiles", ["business_name"], unique=False)
    op.create_index(op.f("ix_business_profiles_country_code"), "business_profiles", ["country_code"], unique=False)

    op.create_table(
        "country_module_configs",
        sa.Column("country_code", sa.String(length=2), nullable=False),
        sa.Column("enabled_modules", sa.JSON(), nullable=False),
        sa.Column("disabled_modules", sa.JSON(), nullable=False),
        sa.Column("updated_by", sa.String(length=128), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("country_code"),
    )


def downgrade() -> None:
    op.drop_table("country_module_configs")
    op.drop_index(op.f("ix_business_profiles_country_code"), table_name="business_profiles")
    op.drop_index(op.f("ix_business_profiles_business_name"), table_name="business_profiles")
    op.drop_table("business_profiles")
    op.drop_index(op.f("ix_country_business_types_country_code"), table_name="country_business_types")
    op.drop_table("country_business_types")
    op.drop_table("business_types")
    op.drop_index(op.f("ix_urgent_boost_transactions_user_id"), table_name="urgent_boost_transactions")
    op.drop_index(op.f("ix_urgent_boost_transactions_request_id"), table_name="urgent_boost_transactions")
    op.drop_table("urgent_boost_transactions")
    op.drop_table("usage_monthly")
    op.drop_index(op.f("ix_responses_created_at"), table_name="responses")
    op.drop_index(op.f("ix_responses_responder_id"), table_name="responses")
    op.drop_index(op.f("ix_responses_request_id"), table_name="responses")
    op.drop_table("responses")
    for column in (
        "created_at",
        "accepted_response_id",
        "status",
        "city_id",
        "country_code",
        "subcategory_id",
        "request_type",
        "category_id",
        "owner_id",
    ):
        op.drop_index(op.f(f"ix_requests_{column}"), table_name="requests")
    op.drop_table("requests")
