# Read models behind the agent and seller showing dashboards.
# These never change allocation state; the only write here is the agent's service area.
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from . import models
from .capabilities import ServiceRole
from .errors import ErrorKind, ShowingError, returns_result
from .models import BidStatus, ClaimMode, ListingStatus, OPEN_SHOWING_STATUSES, ShowingStatus, UserRole
from .showings import require_actor, require_agent

logger = logging.getLogger("realza.queries")


@dataclass
class AgentShowings:
    pending_bids: List[models.ShowingBid] = field(default_factory=list)
    approved_showings: List[models.Showing] = field(default_factory=list)
    claim_requests: List[models.ShowingRequest] = field(default_factory=list)


@dataclass
class ListingSlots:
    listing: models.Listing
    slots: List[models.Showing] = field(default_factory=list)


@dataclass
class SellerDashboard:
    pending: List[models.Showing] = field(default_factory=list)
    assigned: List[models.Showing] = field(default_factory=list)


def _by_schedule(q):
    return q.order_by(
        models.Showing.requested_date.asc(),
        models.Showing.requested_time.asc(),
        models.Showing.id.asc(),
    )


@returns_result
def available_showings(db: Session, actor: Optional[models.User]) -> List[models.Showing]:
    """Showings still open for bids or claims, soonest first."""
    require_actor(actor)
    q = db.query(models.Showing).filter(
        models.Showing.status.in_(OPEN_SHOWING_STATUSES),
        models.Showing.assigned_agent_id.is_(None),
    )
    return _by_schedule(q).all()


@returns_result
def agent_showings(db: Session, actor: Optional[models.User]) -> AgentShowings:
    """
    The agent's own dashboard.

    - pending_bids: bids still waiting for a seller decision, newest first
    - approved_showings: showings assigned to the agent (assigned or completed)
    - claim_requests: every first-come claim attempt, won or lost, newest first
    """
    agent = require_agent(actor, "view agent showings")
    pending_bids = (
        db.query(models.ShowingBid)
        .options(selectinload(models.ShowingBid.showing))
        .filter(models.ShowingBid.agent_id == agent.id, models.ShowingBid.status == BidStatus.PENDING)
        .order_by(models.ShowingBid.created_at.desc(), models.ShowingBid.id.desc())
        .all()
    )
    approved = _by_schedule(
        db.query(models.Showing).filter(
            models.Showing.assigned_agent_id == agent.id,
            models.Showing.status.in_((ShowingStatus.ASSIGNED, ShowingStatus.COMPLETED)),
        )
    ).all()
    claim_requests = (
        db.query(models.ShowingRequest)
        .filter(models.ShowingRequest.agent_id == agent.id)
        .order_by(models.ShowingRequest.created_at.desc(), models.ShowingRequest.id.desc())
        .all()
    )
    return AgentShowings(pending_bids=pending_bids, approved_showings=approved, claim_requests=claim_requests)


@returns_result
def showings_for_listing(db: Session, actor: Optional[models.User], listing_id: int) -> List[models.Showing]:
    require_actor(actor)
    if db.get(models.Listing, listing_id) is None:
        raise ShowingError(ErrorKind.NOT_FOUND, "Listing not found")
    q = (
        db.query(models.Showing)
        .options(selectinload(models.Showing.assigned_agent))
        .filter(models.Showing.listing_id == listing_id)
    )
    return _by_schedule(q).all()


@returns_result
def claimable_showings_in_area(
    db: Session,
    actor: Optional[models.User],
    today: Optional[date] = None,
) -> List[ListingSlots]:
    """
    Claimable showings from today on, grouped by listing.

    Filtering:
    - unassigned, pending/bidding, and either legacy 'bidding' or claim_mode 'first_claim'
    - when the agent has a service area, only active listings matching every set
      field (zip, city, state); exact matches only, no geo radius yet

    Groups are ordered by their earliest slot.
    """
    agent = require_agent(actor, "browse claimable showings")
    today = today or datetime.now(timezone.utc).date()

    q = (
        db.query(models.Showing)
        .join(models.Listing, models.Listing.id == models.Showing.listing_id)
        .filter(
            models.Showing.assigned_agent_id.is_(None),
            models.Showing.status.in_(OPEN_SHOWING_STATUSES),
            models.Showing.requested_date >= today,
            or_(
                models.Showing.status == ShowingStatus.BIDDING,
                models.Showing.claim_mode == ClaimMode.FIRST_CLAIM,
            ),
        )
    )
    if agent.service_zip or agent.service_city or agent.service_state:
        q = q.filter(models.Listing.status == ListingStatus.ACTIVE)
        if agent.service_zip:
            q = q.filter(models.Listing.zip == agent.service_zip)
        if agent.service_city:
            q = q.filter(models.Listing.city == agent.service_city)
        if agent.service_state:
            q = q.filter(models.Listing.state == agent.service_state)

    groups: dict = {}
    for showing in _by_schedule(q).all():
        group = groups.get(showing.listing_id)
        if group is None:
            groups[showing.listing_id] = ListingSlots(listing=showing.listing, slots=[showing])
        else:
            group.slots.append(showing)

    # Slots are already in schedule order, so insertion order is earliest-first per group
    ordered = sorted(
        groups.values(),
        key=lambda g: (g.slots[0].requested_date, g.slots[0].requested_time, g.listing.id),
    )
    logger.info("queries.claimable", extra={"agent_id": agent.id, "groups": len(ordered)})
    return ordered


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@returns_result
def update_service_area(
    db: Session,
    actor: Optional[models.User],
    service_zip: Optional[str] = None,
    service_city: Optional[str] = None,
    service_state: Optional[str] = None,
    service_radius_miles: Optional[int] = None,
) -> models.User:
    """Blank strings clear a field; the radius is only changed when given and is at least 1."""
    agent = require_agent(actor, "set a service area")
    agent.service_zip = _clean(service_zip)
    agent.service_city = _clean(service_city)
    agent.service_state = _clean(service_state)
    if service_radius_miles is not None:
        agent.service_radius_miles = max(1, int(service_radius_miles))
    db.add(agent)
    db.commit()
    db.refresh(agent)
    return agent


@returns_result
def seller_showings_dashboard(
    db: Session,
    actor: Optional[models.User],
    service: ServiceRole,
) -> SellerDashboard:
    """
    Pending and assigned showings on the seller's listings, with every bid and bidding agent.

    The seller's own listings are read through `db`; bids and agent profiles
    belong to other users and are read through the `service` capability.
    """
    seller = require_actor(actor)
    if seller.role != UserRole.SELLER:
        raise ShowingError(ErrorKind.FORBIDDEN, "Only sellers can view the showings dashboard")

    listing_ids = [
        row.id for row in db.query(models.Listing.id).filter(models.Listing.seller_id == seller.id).all()
    ]
    if not listing_ids:
        return SellerDashboard()

    showings = _by_schedule(
        service.query(models.Showing)
        .options(selectinload(models.Showing.bids).selectinload(models.ShowingBid.agent))
        .filter(
            models.Showing.listing_id.in_(listing_ids),
            models.Showing.status.in_((ShowingStatus.PENDING, ShowingStatus.ASSIGNED)),
        )
    ).all()
    return SellerDashboard(
        pending=[s for s in showings if s.status == ShowingStatus.PENDING],
        assigned=[s for s in showings if s.status == ShowingStatus.ASSIGNED],
    )
