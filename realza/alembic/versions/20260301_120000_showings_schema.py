"""initial schema: users, listings, showings, showing_bids, showing_requests

Revision ID: 20260301120000
Revises:
Create Date: 2026-03-01 12:00:00

Notes:
- Status/claim-mode/role columns are plain VARCHAR(20) holding enum values.
- showing_requests has a unique (showing_id, agent_id) pair: one claim attempt per agent.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20260301120000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("total_showings", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("service_zip", sa.String(length=10), nullable=True),
        sa.Column("service_city", sa.String(length=100), nullable=True),
        sa.Column("service_state", sa.String(length=50), nullable=True),
        sa.Column("service_radius_miles", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column("state", sa.String(length=50), nullable=False),
        sa.Column("zip", sa.String(length=10), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("lock_code", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_listings_id", "listings", ["id"])
    op.create_index("ix_listings_seller_id", "listings", ["seller_id"])
    op.create_index("ix_listings_zip", "listings", ["zip"])
    op.create_index("ix_listings_status", "listings", ["status"])

    op.create_table(
        "showings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("requested_date", sa.Date(), nullable=False),
        sa.Column("requested_time", sa.Time(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("claim_mode", sa.String(length=20), nullable=True),
        sa.Column("assigned_agent_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("payout_amount", sa.Integer(), nullable=True),
        sa.Column("lock_code_revealed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("buyer_name", sa.String(length=255), nullable=True),
        sa.Column("buyer_email", sa.String(length=255), nullable=True),
        sa.Column("buyer_phone", sa.String(length=50), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_showings_id", "showings", ["id"])
    op.create_index("ix_showings_listing_id", "showings", ["listing_id"])
    op.create_index("ix_showings_assigned_agent_id", "showings", ["assigned_agent_id"])
    op.create_index("ix_showings_status", "showings", ["status"])
    op.create_index("ix_showings_requested", "showings", ["requested_date", "requested_time"])

    op.create_table(
        "showing_bids",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("showing_id", sa.Integer(), sa.ForeignKey("showings.id"), nullable=False),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("bid_amount", sa.Integer(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_showing_bids_id", "showing_bids", ["id"])
    op.create_index("ix_showing_bids_showing_id", "showing_bids", ["showing_id"])
    op.create_index("ix_showing_bids_agent_id", "showing_bids", ["agent_id"])
    op.create_index("ix_showing_bids_showing_status", "showing_bids", ["showing_id", "status"])

    op.create_table(
        "showing_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("showing_id", sa.Integer(), sa.ForeignKey("showings.id"), nullable=False),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("bid_amount", sa.Integer(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("showing_id", "agent_id", name="uq_showing_requests_showing_agent"),
    )
    op.create_index("ix_showing_requests_id", "showing_requests", ["id"])
    op.create_index("ix_showing_requests_showing_id", "showing_requests", ["showing_id"])
    op.create_index("ix_showing_requests_agent_id", "showing_requests", ["agent_id"])


def downgrade() -> None:
    op.drop_table("showing_requests")
    op.drop_table("showing_bids")
    op.drop_table("showings")
    op.drop_table("listings")
    op.drop_table("users")
