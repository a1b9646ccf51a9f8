# Showing allocation engine: the lifecycle of a showing from request to assignment,
# lock-code disclosure and completion. Every assignment goes through a single
# conditional UPDATE guarded by `assigned_agent_id IS NULL`, so concurrent sellers
# and agents can never both win the same showing.
from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import ErrorKind, ShowingError, returns_result
from .models import (
    BidStatus,
    ClaimMode,
    ListingStatus,
    OPEN_SHOWING_STATUSES,
    RequestStatus,
    ShowingStatus,
    UserRole,
)

logger = logging.getLogger("realza.showings")

# Smallest bid or claim an agent may place, in whole dollars
MIN_BID_AMOUNT = int(os.getenv("MIN_BID_AMOUNT", "75"))
# How long before the scheduled start the lock code becomes available on request
LOCK_CODE_LEAD_MINUTES = int(os.getenv("LOCK_CODE_LEAD_MINUTES", "60"))
# Zone in which requested_date/requested_time are interpreted
SHOWING_TIMEZONE = os.getenv("SHOWING_TIMEZONE", "UTC")

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2}(?:\.\d+)?)?$")


@dataclass(frozen=True)
class RequestedShowing:
    showing: models.Showing
    bid: models.ShowingBid


# ----------------
# Helpers
# ----------------
def require_actor(actor: Optional[models.User]) -> models.User:
    if actor is None:
        raise ShowingError(ErrorKind.UNAUTHENTICATED, "Not authenticated")
    return actor


def require_agent(actor: Optional[models.User], action: str) -> models.User:
    user = require_actor(actor)
    if user.role != UserRole.AGENT:
        raise ShowingError(ErrorKind.FORBIDDEN, f"Only agents can {action}")
    return user


def _validate_bid_amount(bid_amount) -> int:
    if isinstance(bid_amount, bool) or not isinstance(bid_amount, (int, float)):
        raise ShowingError(ErrorKind.VALIDATION_ERROR, "Bid amount must be a number")
    if not math.isfinite(bid_amount) or bid_amount < MIN_BID_AMOUNT:
        raise ShowingError(ErrorKind.VALIDATION_ERROR, f"Bid amount must be at least ${MIN_BID_AMOUNT}")
    if int(bid_amount) != bid_amount:
        raise ShowingError(ErrorKind.VALIDATION_ERROR, "Bid amount must be in whole dollars")
    return int(bid_amount)


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except (TypeError, ValueError):
        raise ShowingError(ErrorKind.VALIDATION_ERROR, "Please choose a valid date and time")


def _parse_time(value) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    match = _TIME_RE.match(str(value or "").strip())
    if not match:
        raise ShowingError(ErrorKind.VALIDATION_ERROR, "Please choose a valid date and time")
    try:
        return time(int(match.group(1)), int(match.group(2)))
    except ValueError:
        raise ShowingError(ErrorKind.VALIDATION_ERROR, "Please choose a valid date and time")


def parse_requested_at(value: str) -> Tuple[date, time]:
    """Split a datetime-local value ("YYYY-MM-DDTHH:MM") into date and time-of-day.

    Seconds are accepted and dropped. Anything else is a VALIDATION_ERROR.
    """
    date_part, sep, time_part = str(value or "").partition("T")
    if not sep:
        raise ShowingError(ErrorKind.VALIDATION_ERROR, "Please choose a valid date and time")
    return _parse_date(date_part), _parse_time(time_part)


def _showing_tz() -> tzinfo:
    if SHOWING_TIMEZONE.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(SHOWING_TIMEZONE)


def showing_starts_at(showing: models.Showing) -> datetime:
    """Timezone-aware start of the showing."""
    return datetime.combine(showing.requested_date, showing.requested_time, tzinfo=_showing_tz())


def is_claimable(showing: models.Showing) -> bool:
    """First-come claiming is open for legacy bidding showings and first_claim showings.

    A pending seller_approves showing is never claimable; it goes through accept_bid.
    """
    if showing.assigned_agent_id is not None or showing.status not in OPEN_SHOWING_STATUSES:
        return False
    return showing.status == ShowingStatus.BIDDING or showing.claim_mode == ClaimMode.FIRST_CLAIM


def _get_showing(db: Session, showing_id: int) -> Optional[models.Showing]:
    return db.get(models.Showing, showing_id)


def _get_owned_bid(db: Session, seller: models.User, bid_id: int) -> Tuple[models.ShowingBid, models.Showing]:
    bid = db.get(models.ShowingBid, bid_id)
    if bid is None:
        raise ShowingError(ErrorKind.NOT_FOUND, "Bid not found")
    showing = _get_showing(db, bid.showing_id)
    listing = db.get(models.Listing, showing.listing_id) if showing is not None else None
    # Ownership of the listing, not the seller role, is what authorizes a decision
    if listing is None or listing.seller_id != seller.id:
        raise ShowingError(ErrorKind.FORBIDDEN, "Unauthorized")
    return bid, showing


def _assign_if_unassigned(db: Session, showing_id: int, agent_id: int, payout_amount: int) -> bool:
    """Compare-and-set assignment. True only for the single caller whose UPDATE matched."""
    rows = (
        db.query(models.Showing)
        .filter(
            models.Showing.id == showing_id,
            models.Showing.assigned_agent_id.is_(None),
            models.Showing.status.in_(OPEN_SHOWING_STATUSES),
        )
        .update(
            {
                models.Showing.status: ShowingStatus.ASSIGNED,
                models.Showing.assigned_agent_id: agent_id,
                models.Showing.payout_amount: payout_amount,
                models.Showing.lock_code_revealed: True,
            },
            synchronize_session=False,
        )
    )
    return rows == 1


# ----------------
# Operations
# ----------------
@returns_result
def request_showing(
    db: Session,
    actor: Optional[models.User],
    listing_id: int,
    requested_at: str,
    bid_amount,
) -> RequestedShowing:
    """Agent asks to show an active listing; the seller must approve the opening bid."""
    agent = require_agent(actor, "request showings")
    amount = _validate_bid_amount(bid_amount)

    listing = db.get(models.Listing, listing_id)
    if listing is None:
        raise ShowingError(ErrorKind.NOT_FOUND, "Listing not found")
    if listing.status != ListingStatus.ACTIVE:
        raise ShowingError(ErrorKind.INVALID_STATE, "Listing is not active")

    requested_date, requested_time = parse_requested_at(requested_at)

    showing = models.Showing(
        listing_id=listing.id,
        requested_date=requested_date,
        requested_time=requested_time,
        status=ShowingStatus.PENDING,
        claim_mode=ClaimMode.SELLER_APPROVES,
        lock_code_revealed=False,
    )
    db.add(showing)
    db.flush()

    bid = models.ShowingBid(
        showing_id=showing.id,
        agent_id=agent.id,
        bid_amount=amount,
        status=BidStatus.PENDING,
    )
    db.add(bid)
    db.commit()
    db.refresh(showing)
    db.refresh(bid)

    logger.info(
        "showings.requested",
        extra={"showing_id": showing.id, "listing_id": listing.id, "agent_id": agent.id, "bid_amount": amount},
    )
    return RequestedShowing(showing=showing, bid=bid)


@returns_result
def request_buyer_showing(
    db: Session,
    listing_id: int,
    buyer_name: str,
    buyer_email: str,
    requested_date,
    requested_time,
    buyer_phone: Optional[str] = None,
) -> models.Showing:
    """Legacy buyer flow: the showing opens in 'bidding' and any agent may claim it."""
    listing = db.get(models.Listing, listing_id)
    if listing is None:
        raise ShowingError(ErrorKind.NOT_FOUND, "Listing not found")

    showing = models.Showing(
        listing_id=listing.id,
        buyer_name=buyer_name,
        buyer_email=buyer_email,
        buyer_phone=buyer_phone,
        requested_date=_parse_date(requested_date),
        requested_time=_parse_time(requested_time),
        status=ShowingStatus.BIDDING,
        claim_mode=None,
        lock_code_revealed=False,
    )
    db.add(showing)
    db.commit()
    db.refresh(showing)

    logger.info("showings.buyer_requested", extra={"showing_id": showing.id, "listing_id": listing.id})
    return showing


@returns_result
def bid_on_showing(
    db: Session,
    actor: Optional[models.User],
    showing_id: int,
    bid_amount,
    message: Optional[str] = None,
) -> models.ShowingBid:
    """Add a competing bid. Any existing showing accepts bids regardless of its state."""
    agent = require_agent(actor, "bid on showings")
    amount = _validate_bid_amount(bid_amount)
    if _get_showing(db, showing_id) is None:
        raise ShowingError(ErrorKind.NOT_FOUND, "Showing not found")

    bid = models.ShowingBid(
        showing_id=showing_id,
        agent_id=agent.id,
        bid_amount=amount,
        message=message,
        status=BidStatus.PENDING,
    )
    db.add(bid)
    db.commit()
    db.refresh(bid)

    logger.info("showings.bid", extra={"showing_id": showing_id, "agent_id": agent.id, "bid_id": bid.id})
    return bid


@returns_result
def accept_bid(db: Session, actor: Optional[models.User], bid_id: int) -> models.Showing:
    """
    Seller approves a bid: the bid's agent is assigned and the lock code is revealed.

    One transaction:
    - conditional assignment of the showing (fails if anyone got there first)
    - target bid -> accepted
    - every sibling bid -> rejected
    """
    seller = require_actor(actor)
    bid, showing = _get_owned_bid(db, seller, bid_id)
    if bid.status != BidStatus.PENDING:
        raise ShowingError(ErrorKind.INVALID_STATE, "Only pending bids can be accepted")

    if not _assign_if_unassigned(db, showing.id, bid.agent_id, bid.bid_amount):
        raise ShowingError(ErrorKind.INVALID_STATE, "This showing has already been assigned")

    bid.status = BidStatus.ACCEPTED
    db.add(bid)
    (
        db.query(models.ShowingBid)
        .filter(models.ShowingBid.showing_id == showing.id, models.ShowingBid.id != bid.id)
        .update({models.ShowingBid.status: BidStatus.REJECTED}, synchronize_session=False)
    )
    db.commit()
    db.refresh(showing)

    logger.info(
        "showings.bid_accepted",
        extra={"showing_id": showing.id, "bid_id": bid.id, "agent_id": bid.agent_id, "payout_amount": bid.bid_amount},
    )
    return showing


@returns_result
def reject_bid(db: Session, actor: Optional[models.User], bid_id: int) -> models.Showing:
    """
    Seller rejects a bid. A pending showing left with no pending bids is cancelled.

    The emptiness check and the cancel are a single conditional UPDATE, so a bid
    placed concurrently keeps the showing alive.
    """
    seller = require_actor(actor)
    bid, showing = _get_owned_bid(db, seller, bid_id)
    if bid.status == BidStatus.ACCEPTED:
        raise ShowingError(ErrorKind.INVALID_STATE, "An accepted bid cannot be rejected")

    bid.status = BidStatus.REJECTED
    db.add(bid)
    db.flush()

    pending_bids = exists().where(
        models.ShowingBid.showing_id == showing.id,
        models.ShowingBid.status == BidStatus.PENDING,
    )
    cancelled = (
        db.query(models.Showing)
        .filter(
            models.Showing.id == showing.id,
            models.Showing.status == ShowingStatus.PENDING,
            ~pending_bids,
        )
        .update({models.Showing.status: ShowingStatus.CANCELLED}, synchronize_session=False)
    )
    db.commit()
    db.refresh(showing)

    logger.info(
        "showings.bid_rejected",
        extra={"showing_id": showing.id, "bid_id": bid.id, "showing_cancelled": bool(cancelled)},
    )
    return showing


@returns_result
def claim_showing(
    db: Session,
    actor: Optional[models.User],
    showing_id: int,
    bid_amount,
    message: Optional[str] = None,
) -> models.Showing:
    """
    First-come claim. Safe under any number of concurrent callers.

    Flow (one transaction):
    - insert a 'claimed' ShowingRequest (unique per showing/agent)
    - conditional UPDATE of the showing WHERE assigned_agent_id IS NULL
    - zero rows matched: the request is stored as 'rejected' and ALREADY_CLAIMED returned
    - on a win, every pending bid on the showing is rejected
    """
    agent = require_agent(actor, "claim showings")
    amount = _validate_bid_amount(bid_amount)

    showing = _get_showing(db, showing_id)
    if showing is None:
        raise ShowingError(ErrorKind.NOT_FOUND, "Showing not found")
    if showing.assigned_agent_id is not None:
        raise ShowingError(ErrorKind.INVALID_STATE, "This showing has already been claimed")
    if showing.status not in OPEN_SHOWING_STATUSES:
        raise ShowingError(ErrorKind.INVALID_STATE, "This showing is not available to claim")
    if not is_claimable(showing):
        raise ShowingError(
            ErrorKind.INVALID_STATE,
            "This showing requires seller approval and cannot be claimed instantly",
        )

    request = models.ShowingRequest(
        showing_id=showing_id,
        agent_id=agent.id,
        bid_amount=amount,
        message=message,
        status=RequestStatus.CLAIMED,
    )
    db.add(request)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ShowingError(ErrorKind.INVALID_STATE, "You have already tried to claim this showing")

    if not _assign_if_unassigned(db, showing_id, agent.id, amount):
        request.status = RequestStatus.REJECTED
        db.add(request)
        db.commit()
        logger.warning("showings.claim_lost", extra={"showing_id": showing_id, "agent_id": agent.id})
        raise ShowingError(ErrorKind.ALREADY_CLAIMED, "This showing was claimed by someone else")

    (
        db.query(models.ShowingBid)
        .filter(models.ShowingBid.showing_id == showing_id, models.ShowingBid.status == BidStatus.PENDING)
        .update({models.ShowingBid.status: BidStatus.REJECTED}, synchronize_session=False)
    )
    db.commit()
    claimed = db.get(models.Showing, showing_id)

    logger.info(
        "showings.claimed",
        extra={"showing_id": showing_id, "agent_id": agent.id, "payout_amount": amount},
    )
    return claimed


@returns_result
def get_lock_code(
    db: Session,
    actor: Optional[models.User],
    showing_id: int,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    Return the listing's lock code to the assigned agent, no earlier than
    LOCK_CODE_LEAD_MINUTES before the showing starts.

    Marks lock_code_revealed (never cleared). A TOO_EARLY call writes nothing.
    """
    agent = require_actor(actor)
    showing = _get_showing(db, showing_id)
    if showing is None:
        raise ShowingError(ErrorKind.NOT_FOUND, "Showing not found")
    # Wrong agent and wrong status look the same to the caller
    if showing.assigned_agent_id != agent.id or showing.status != ShowingStatus.ASSIGNED:
        raise ShowingError(ErrorKind.FORBIDDEN, "Showing not found or not authorized")

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        # Naive "now" values are treated as UTC
        now = now.replace(tzinfo=timezone.utc)
    hours_until = (showing_starts_at(showing) - now) / timedelta(hours=1)
    if hours_until > LOCK_CODE_LEAD_MINUTES / 60:
        raise ShowingError(
            ErrorKind.TOO_EARLY,
            f"Lock code available {LOCK_CODE_LEAD_MINUTES} minutes before showing",
        )

    if not showing.lock_code_revealed:
        (
            db.query(models.Showing)
            .filter(models.Showing.id == showing.id, models.Showing.assigned_agent_id == agent.id)
            .update({models.Showing.lock_code_revealed: True}, synchronize_session=False)
        )
        db.commit()

    listing = db.get(models.Listing, showing.listing_id)
    logger.info("showings.lock_code_revealed", extra={"showing_id": showing_id, "agent_id": agent.id})
    return listing.lock_code if listing is not None else None


@returns_result
def complete_showing(
    db: Session,
    actor: Optional[models.User],
    showing_id: int,
    feedback: Optional[str] = None,
    rating: Optional[int] = None,
) -> models.Showing:
    """Assigned agent closes the showing; feedback and rating are stored as given."""
    agent = require_actor(actor)
    showing = _get_showing(db, showing_id)
    if showing is None:
        raise ShowingError(ErrorKind.NOT_FOUND, "Showing not found")
    if showing.assigned_agent_id != agent.id:
        raise ShowingError(ErrorKind.FORBIDDEN, "Showing not found or not authorized")
    if showing.status != ShowingStatus.ASSIGNED:
        raise ShowingError(ErrorKind.INVALID_STATE, "Only assigned showings can be completed")

    rows = (
        db.query(models.Showing)
        .filter(
            models.Showing.id == showing.id,
            models.Showing.assigned_agent_id == agent.id,
            models.Showing.status == ShowingStatus.ASSIGNED,
        )
        .update(
            {
                models.Showing.status: ShowingStatus.COMPLETED,
                models.Showing.feedback: feedback,
                models.Showing.rating: rating,
            },
            synchronize_session=False,
        )
    )
    if not rows:
        raise ShowingError(ErrorKind.INVALID_STATE, "Only assigned showings can be completed")

    (
        db.query(models.User)
        .filter(models.User.id == agent.id)
        .update(
            {models.User.total_showings: models.User.total_showings + 1},
            synchronize_session=False,
        )
    )
    db.commit()
    db.refresh(showing)

    logger.info("showings.completed", extra={"showing_id": showing.id, "agent_id": agent.id, "rating": rating})
    return showing
