# SQLAlchemy ORM models for users, listings and the showing marketplace tables.
# State transitions live in realza.showings; models only describe shape and constraints.
import enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_mixin, relationship

from .db import Base


class UserRole(str, enum.Enum):
    SELLER = "seller"
    AGENT = "agent"


class ListingStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    ACTIVE = "active"
    SOLD = "sold"
    CANCELLED = "cancelled"


class ShowingStatus(str, enum.Enum):
    PENDING = "pending"
    BIDDING = "bidding"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses from which a showing can still be handed to an agent
OPEN_SHOWING_STATUSES = (ShowingStatus.PENDING, ShowingStatus.BIDDING)


class ClaimMode(str, enum.Enum):
    SELLER_APPROVES = "seller_approves"
    FIRST_CLAIM = "first_claim"


class BidStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    WITHDRAWN = "withdrawn"
    REJECTED = "rejected"


def _enum_column(enum_cls, **kwargs) -> Column:
    # Persist enum values ("pending"), not member names ("PENDING"), as plain strings
    return Column(
        Enum(
            enum_cls,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        **kwargs,
    )


@declarative_mixin
class TimestampMixin:
    """Common UTC-aware timestamps automatically managed by the database.

    - created_at: set on insert
    - updated_at: set on insert and updated on each modification
    """
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class User(Base, TimestampMixin):
    """Marketplace account.

    Roles:
    - seller: owns listings, approves or rejects showing bids
    - agent: requests, bids on and claims showings
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = _enum_column(UserRole, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    # Agent-only profile fields
    rating = Column(Integer, nullable=True)
    total_showings = Column(Integer, nullable=False, default=0)
    service_zip = Column(String(10), nullable=True)
    service_city = Column(String(100), nullable=True)
    service_state = Column(String(50), nullable=True)
    service_radius_miles = Column(Integer, nullable=True)


class Listing(Base, TimestampMixin):
    """Property for sale. Only `status` and `lock_code` matter to showings."""
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(50), nullable=False)
    zip = Column(String(10), nullable=False, index=True)
    price = Column(Integer, nullable=False)
    status = _enum_column(ListingStatus, nullable=False, default=ListingStatus.DRAFT, index=True)
    lock_code = Column(String(64), nullable=True)


class Showing(Base, TimestampMixin):
    """Scheduled property visit and the allocation state machine's row.

    pending --accept_bid--> assigned --complete_showing--> completed
    pending --all bids rejected--> cancelled
    pending/bidding --claim_showing (claimable only)--> assigned

    assigned_agent_id is written only by conditional updates guarded by
    `assigned_agent_id IS NULL`.
    """
    __tablename__ = "showings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    requested_date = Column(Date, nullable=False)
    requested_time = Column(Time, nullable=False)
    status = _enum_column(ShowingStatus, nullable=False, default=ShowingStatus.PENDING)
    # NULL for legacy buyer-created showings
    claim_mode = _enum_column(ClaimMode, nullable=True)
    assigned_agent_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    payout_amount = Column(Integer, nullable=True)
    lock_code_revealed = Column(Boolean, nullable=False, default=False)
    buyer_name = Column(String(255), nullable=True)
    buyer_email = Column(String(255), nullable=True)
    buyer_phone = Column(String(50), nullable=True)
    feedback = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)

    listing = relationship("Listing", lazy="joined")
    assigned_agent = relationship("User", foreign_keys=[assigned_agent_id])
    bids = relationship("ShowingBid", back_populates="showing", order_by="ShowingBid.id")

    __table_args__ = (
        Index("ix_showings_status", "status"),
        Index("ix_showings_requested", "requested_date", "requested_time"),
    )


class ShowingBid(Base):
    """Agent offer on a showing that needs seller approval."""
    __tablename__ = "showing_bids"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    showing_id = Column(Integer, ForeignKey("showings.id"), nullable=False, index=True)
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    bid_amount = Column(Integer, nullable=False)
    message = Column(Text, nullable=True)
    status = _enum_column(BidStatus, nullable=False, default=BidStatus.PENDING)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    showing = relationship("Showing", back_populates="bids")
    agent = relationship("User")

    __table_args__ = (
        Index("ix_showing_bids_showing_status", "showing_id", "status"),
    )


class ShowingRequest(Base, TimestampMixin):
    """Agent claim attempt on a first-come showing. One row per (showing, agent)."""
    __tablename__ = "showing_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    showing_id = Column(Integer, ForeignKey("showings.id"), nullable=False, index=True)
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    bid_amount = Column(Integer, nullable=False)
    message = Column(Text, nullable=True)
    status = _enum_column(RequestStatus, nullable=False, default=RequestStatus.PENDING)

    __table_args__ = (
        UniqueConstraint("showing_id", "agent_id", name="uq_showing_requests_showing_agent"),
    )
