# Showing marketplace endpoints: request, bid, seller decisions, first-come claims,
# lock-code disclosure and completion. Each handler is a thin wrapper over
# realza.showings; allocation rules and conditional writes live there.
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, queries, schemas, showings
from ..rate_limit import rate_limit
from .auth import get_current_user_optional
from .results import unwrap

router = APIRouter()


@router.post(
    "/showings",
    response_model=schemas.ShowingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def request_showing(
    payload: schemas.ShowingCreate,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> schemas.ShowingCreateResponse:
    created = unwrap(
        showings.request_showing(db, user, payload.listing_id, payload.requested_at, payload.bid_amount)
    )
    return schemas.ShowingCreateResponse(
        showing=schemas.ShowingRead.model_validate(created.showing),
        bid=schemas.BidRead.model_validate(created.bid),
    )


@router.post(
    "/showings/buyer",
    response_model=schemas.ShowingRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def request_buyer_showing(
    payload: schemas.BuyerShowingCreate,
    db: Session = Depends(get_db),
) -> models.Showing:
    """Legacy buyer request; public, opens the showing for first-come claims."""
    return unwrap(
        showings.request_buyer_showing(
            db,
            payload.listing_id,
            payload.buyer_name,
            payload.buyer_email,
            payload.requested_date,
            payload.requested_time,
            buyer_phone=payload.buyer_phone,
        )
    )


@router.get("/showings/available", response_model=List[schemas.ShowingRead])
def list_available_showings(
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> List[models.Showing]:
    return unwrap(queries.available_showings(db, user))


@router.get("/showings/claimable", response_model=List[schemas.ListingSlotsRead])
def list_claimable_showings(
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> List[schemas.ListingSlotsRead]:
    """Claimable showings in the agent's service area, grouped by listing."""
    groups = unwrap(queries.claimable_showings_in_area(db, user))
    return [schemas.ListingSlotsRead.model_validate(g) for g in groups]


@router.get("/listings/{listing_id}/showings", response_model=List[schemas.ShowingWithAgent])
def list_listing_showings(
    listing_id: int,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> List[models.Showing]:
    return unwrap(queries.showings_for_listing(db, user, listing_id))


@router.post(
    "/showings/{showing_id}/bids",
    response_model=schemas.BidRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def bid_on_showing(
    showing_id: int,
    payload: schemas.BidCreate,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> models.ShowingBid:
    return unwrap(showings.bid_on_showing(db, user, showing_id, payload.bid_amount, payload.message))


@router.post(
    "/showings/{showing_id}/claim",
    response_model=schemas.ShowingRead,
    dependencies=[Depends(rate_limit("claim"))],
)
def claim_showing(
    showing_id: int,
    payload: schemas.ClaimCreate,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> models.Showing:
    """
    First-come claim. Losing a race returns 409 already_claimed; clients should
    refresh the claimable list rather than retry the same showing.
    """
    return unwrap(showings.claim_showing(db, user, showing_id, payload.bid_amount, payload.message))


@router.get("/showings/{showing_id}/lock-code", response_model=schemas.LockCodeResponse)
def get_lock_code(
    showing_id: int,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> schemas.LockCodeResponse:
    lock_code = unwrap(showings.get_lock_code(db, user, showing_id))
    return schemas.LockCodeResponse(showing_id=showing_id, lock_code=lock_code)


@router.post(
    "/showings/{showing_id}/complete",
    response_model=schemas.ShowingRead,
    dependencies=[Depends(rate_limit("write"))],
)
def complete_showing(
    showing_id: int,
    payload: schemas.ShowingComplete,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> models.Showing:
    return unwrap(showings.complete_showing(db, user, showing_id, payload.feedback, payload.rating))


@router.post(
    "/bids/{bid_id}/accept",
    response_model=schemas.ShowingRead,
    dependencies=[Depends(rate_limit("write"))],
)
def accept_bid(
    bid_id: int,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> models.Showing:
    return unwrap(showings.accept_bid(db, user, bid_id))


@router.post(
    "/bids/{bid_id}/reject",
    response_model=schemas.ShowingRead,
    dependencies=[Depends(rate_limit("write"))],
)
def reject_bid(
    bid_id: int,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> models.Showing:
    return unwrap(showings.reject_bid(db, user, bid_id))
