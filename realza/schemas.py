# Pydantic models (request/response DTOs) used by the API layer.
# Keep models minimal and serializable; allocation rules live in realza.showings.
from pydantic import BaseModel, Field, ConfigDict, field_validator, EmailStr, StrictFloat, StrictInt, StrictStr
from typing import List, Optional, Union
from datetime import date, datetime, time

from .models import BidStatus, ClaimMode, ListingStatus, RequestStatus, ShowingStatus, UserRole


# Listings
# Public listing fields; the lock code is accepted on create but never read back
class ListingBase(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=50)
    zip: str = Field(..., min_length=1, max_length=10)
    price: int = Field(..., ge=0)

    @field_validator("address", "city", "state", "zip", mode="before")
    @classmethod
    def strip_text(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip()
        return v


class ListingCreate(ListingBase):
    status: ListingStatus = ListingStatus.DRAFT
    lock_code: Optional[str] = Field(None, max_length=64)


class ListingStatusUpdate(BaseModel):
    status: ListingStatus


class ListingRead(ListingBase):
    id: int
    seller_id: int
    status: ListingStatus

    model_config = ConfigDict(from_attributes=True)


# Users
class AgentProfile(BaseModel):
    id: int
    full_name: Optional[str] = None
    rating: Optional[int] = None
    total_showings: int = 0

    model_config = ConfigDict(from_attributes=True)


class UserBase(BaseModel):
    email: EmailStr
    role: UserRole

    # Normalize email input to lowercase without surrounding whitespace
    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip().lower()
        return v


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.AGENT
    full_name: Optional[str] = Field(None, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip().lower()
        return v


class UserRead(UserBase):
    id: int
    full_name: Optional[str] = None
    service_zip: Optional[str] = None
    service_city: Optional[str] = None
    service_state: Optional[str] = None
    service_radius_miles: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip().lower()
        return v


# OAuth2-style token response bundled with the current user profile
class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class ServiceAreaUpdate(BaseModel):
    service_zip: Optional[str] = Field(None, max_length=10)
    service_city: Optional[str] = Field(None, max_length=100)
    service_state: Optional[str] = Field(None, max_length=50)
    service_radius_miles: Optional[int] = None


# Showings
# Bid amounts are whole dollars; range, fraction and type checks happen in the engine,
# so a bad bid surfaces as a 400 validation_error rather than a 422.
BidAmount = Union[StrictInt, StrictFloat, StrictStr]


class ShowingCreate(BaseModel):
    listing_id: int = Field(..., ge=1)
    requested_at: str = Field(..., description="datetime-local value, YYYY-MM-DDTHH:MM")
    bid_amount: BidAmount


class BuyerShowingCreate(BaseModel):
    listing_id: int = Field(..., ge=1)
    buyer_name: str = Field(..., min_length=1, max_length=255)
    buyer_email: EmailStr
    buyer_phone: Optional[str] = Field(None, max_length=50)
    requested_date: str
    requested_time: str

    @field_validator("buyer_email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip().lower()
        return v


class BidCreate(BaseModel):
    bid_amount: BidAmount
    message: Optional[str] = Field(None, max_length=1000)


# Same shape as a bid; claims go through the first-come path
class ClaimCreate(BidCreate):
    pass


class ShowingComplete(BaseModel):
    feedback: Optional[str] = None
    rating: Optional[int] = None


class ShowingRead(BaseModel):
    id: int
    listing_id: int
    requested_date: date
    requested_time: time
    status: ShowingStatus
    claim_mode: Optional[ClaimMode] = None
    assigned_agent_id: Optional[int] = None
    payout_amount: Optional[int] = None
    lock_code_revealed: bool
    feedback: Optional[str] = None
    rating: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class ShowingWithAgent(ShowingRead):
    assigned_agent: Optional[AgentProfile] = None


class BidRead(BaseModel):
    id: int
    showing_id: int
    agent_id: int
    bid_amount: int
    message: Optional[str] = None
    status: BidStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BidWithAgent(BidRead):
    agent: Optional[AgentProfile] = None


class BidWithShowing(BidRead):
    showing: ShowingRead


class ShowingRequestRead(BaseModel):
    id: int
    showing_id: int
    agent_id: int
    bid_amount: int
    message: Optional[str] = None
    status: RequestStatus

    model_config = ConfigDict(from_attributes=True)


# Returned after an agent requests a showing: the showing plus the opening bid
class ShowingCreateResponse(BaseModel):
    showing: ShowingRead
    bid: BidRead


class LockCodeResponse(BaseModel):
    showing_id: int
    lock_code: Optional[str] = None


# Assigned showing as the agent sees it; lock_code is set only once revealed
class AgentShowingRead(ShowingRead):
    lock_code: Optional[str] = None


class AgentShowingsResponse(BaseModel):
    pending_bids: List[BidWithShowing]
    approved_showings: List[AgentShowingRead]
    claim_requests: List[ShowingRequestRead] = []


class ListingSlotsRead(BaseModel):
    listing: ListingRead
    slots: List[ShowingRead]

    model_config = ConfigDict(from_attributes=True)


class SellerShowingRead(ShowingRead):
    bids: List[BidWithAgent] = []


class SellerDashboardResponse(BaseModel):
    pending: List[SellerShowingRead]
    assigned: List[SellerShowingRead]

    model_config = ConfigDict(from_attributes=True)
