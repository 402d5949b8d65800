"""
Booking token request and response schemas.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from hoarding_rental.models.base import (
    DesignStatus,
    FitterStatus,
    HoardingStatus,
    TokenStatus,
)
from hoarding_rental.schemas.common import BaseCreateSchema, BaseSchema

__all__ = [
    "TokenCreate",
    "TokenConfirm",
    "VersionedAction",
    "TokenCancel",
    "DesignStatusUpdate",
    "FitterAssign",
    "FitterStatusUpdate",
    "ExtensionRequest",
    "BookingTokenResponse",
    "HoardingStatusResponse",
]


class TokenCreate(BaseCreateSchema):
    """Create a token on a hoarding for a client."""

    hoarding_id: str = Field(..., min_length=1)
    client_id: str = Field(..., min_length=1)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    duration_months: Optional[int] = Field(default=None, gt=0)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def check_window(self) -> "TokenCreate":
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to must not be before date_from")
        return self


class TokenConfirm(BaseCreateSchema):
    """Confirm a token; unset fields fall back to their defaults."""

    designer_id: Optional[str] = None
    execution_type: Optional[str] = Field(default=None, max_length=50)
    planned_live_date: Optional[date] = None
    duration_months: Optional[int] = None
    duration_days: Optional[int] = None
    expected_version: Optional[int] = None


class VersionedAction(BaseCreateSchema):
    """Body for actions whose only input is the version the caller last read."""

    expected_version: Optional[int] = None


class TokenCancel(VersionedAction):
    reason: Optional[str] = Field(default=None, max_length=255)


class DesignStatusUpdate(BaseCreateSchema):
    status: DesignStatus
    expected_version: Optional[int] = None


class FitterAssign(BaseCreateSchema):
    fitter_id: Optional[str] = None
    expected_version: Optional[int] = None


class FitterStatusUpdate(BaseCreateSchema):
    status: FitterStatus
    proof_refs: List[str] = Field(default_factory=list)
    expected_version: Optional[int] = None

    @field_validator("proof_refs")
    @classmethod
    def drop_blank_refs(cls, v: List[str]) -> List[str]:
        return [ref.strip() for ref in v if ref and ref.strip()]


class ExtensionRequest(BaseCreateSchema):
    hours: Optional[int] = Field(default=None, gt=0)


class BookingTokenResponse(BaseSchema):
    """
    Snapshot of a booking token.

    `effective_status` reports EXPIRED for an ACTIVE token whose hold has
    lapsed, even before the expiry sweep has persisted it.
    """

    id: str
    hoarding_id: str
    client_id: str
    sales_user_id: str
    status: TokenStatus
    effective_status: TokenStatus
    queue_position: int
    expires_at: datetime
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    duration_months: Optional[int] = None
    duration_days: Optional[int] = None
    notes: Optional[str] = None
    confirmed_by: Optional[str] = None
    confirmed_by_role: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    execution_type: Optional[str] = None
    planned_live_date: Optional[date] = None
    designer_id: Optional[str] = None
    design_status: Optional[DesignStatus] = None
    fitter_id: Optional[str] = None
    fitter_status: Optional[FitterStatus] = None
    fitter_assigned_by: Optional[str] = None
    fitter_assigned_by_role: Optional[str] = None
    installation_proof_refs: List[str] = Field(default_factory=list)
    installed_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    extension_requested_until: Optional[datetime] = None
    finalized_by: Optional[str] = None
    finalized_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime


class HoardingStatusResponse(BaseSchema):
    id: str
    code: str
    status: HoardingStatus
    locked_by_token_id: Optional[str] = None
    status_changed_at: Optional[datetime] = None
