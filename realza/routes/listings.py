# Listing endpoints: just enough of the listing collaborator for showings to reference.
# Sellers create and activate listings; lock codes are write-only over HTTP.
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..models import ListingStatus
from ..rate_limit import rate_limit
from .auth import require_seller

router = APIRouter()


@router.get("/listings", response_model=List[schemas.ListingRead])
def list_active_listings(db: Session = Depends(get_db)) -> List[models.Listing]:
    """Active listings, newest first."""
    return (
        db.query(models.Listing)
        .filter(models.Listing.status == ListingStatus.ACTIVE)
        .order_by(models.Listing.id.desc())
        .all()
    )


@router.post(
    "/listings",
    response_model=schemas.ListingRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_listing(
    payload: schemas.ListingCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_seller),
) -> models.Listing:
    obj = models.Listing(
        seller_id=user.id,
        address=payload.address,
        city=payload.city,
        state=payload.state,
        zip=payload.zip,
        price=payload.price,
        status=payload.status,
        lock_code=payload.lock_code,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@router.patch(
    "/listings/{listing_id}/status",
    response_model=schemas.ListingRead,
    dependencies=[Depends(rate_limit("write"))],
)
def update_listing_status(
    listing_id: int,
    payload: schemas.ListingStatusUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_seller),
) -> models.Listing:
    obj = db.get(models.Listing, listing_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Listing not found")
    if obj.seller_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not owner of listing")
    obj.status = payload.status
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj
