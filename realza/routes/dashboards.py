# Agent and seller dashboard endpoints.
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..capabilities import ServiceRole, grant_service_role
from ..db import get_db
from .. import models, queries, schemas
from ..rate_limit import rate_limit
from .auth import get_current_user_optional
from .results import unwrap

router = APIRouter()


def get_service_role(db: Session = Depends(get_db)) -> ServiceRole:
    return grant_service_role(db)


def _agent_showing(showing: models.Showing) -> schemas.AgentShowingRead:
    base = schemas.ShowingRead.model_validate(showing).model_dump()
    # Lock code rides along only once it has been revealed to this agent
    lock_code = showing.listing.lock_code if showing.lock_code_revealed and showing.listing else None
    return schemas.AgentShowingRead(**base, lock_code=lock_code)


@router.get("/agents/me/showings", response_model=schemas.AgentShowingsResponse)
def my_showings(
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> schemas.AgentShowingsResponse:
    result = unwrap(queries.agent_showings(db, user))
    return schemas.AgentShowingsResponse(
        pending_bids=[schemas.BidWithShowing.model_validate(b) for b in result.pending_bids],
        approved_showings=[_agent_showing(s) for s in result.approved_showings],
        claim_requests=[schemas.ShowingRequestRead.model_validate(r) for r in result.claim_requests],
    )


@router.patch(
    "/agents/me/service-area",
    response_model=schemas.UserRead,
    dependencies=[Depends(rate_limit("write"))],
)
def update_service_area(
    payload: schemas.ServiceAreaUpdate,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> models.User:
    return unwrap(
        queries.update_service_area(
            db,
            user,
            service_zip=payload.service_zip,
            service_city=payload.service_city,
            service_state=payload.service_state,
            service_radius_miles=payload.service_radius_miles,
        )
    )


@router.get("/seller/showings", response_model=schemas.SellerDashboardResponse)
def seller_showings(
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
    service: ServiceRole = Depends(get_service_role),
) -> schemas.SellerDashboardResponse:
    """Pending requests (with every bid) and assigned showings across the seller's listings."""
    dashboard = unwrap(queries.seller_showings_dashboard(db, user, service))
    return schemas.SellerDashboardResponse.model_validate(dashboard)
