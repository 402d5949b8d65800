"""
FastAPI dependencies shared by the v1 routes.

Authentication happens upstream; the caller identity arrives in the
`X-User-Id` / `X-User-Role` headers and is trusted as given.

Example usage in a router:
    @router.get("/booking-tokens/mine")
    def my_tokens(actor: Principal = Depends(deps.get_actor)):
        ...
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from hoarding_rental.core.logging import user_id as user_id_ctx
from hoarding_rental.db.session import get_db
from hoarding_rental.services.base import Principal, normalize_role
from hoarding_rental.services.booking_token import BookingTokenService, Deadline
from hoarding_rental.services.rent import RentEscalationService

__all__ = [
    "get_db",
    "get_actor",
    "get_deadline",
    "get_booking_token_service",
    "get_rent_service",
]


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Principal:
    """Resolve the calling staff member from request headers."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    if x_user_role and normalize_role(x_user_role) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {x_user_role}",
        )

    user_id_ctx.set(x_user_id.strip())
    return Principal.of(x_user_id.strip(), x_user_role)


def get_deadline(
    x_request_timeout_ms: Optional[int] = Header(default=None, gt=0),
) -> Optional[Deadline]:
    """Optional caller deadline; mutations that outlive it fail with TIMEOUT."""
    if x_request_timeout_ms is None:
        return None
    return Deadline.after(x_request_timeout_ms / 1000.0)


def get_booking_token_service(db: Session = Depends(get_db)) -> BookingTokenService:
    return BookingTokenService(db)


def get_rent_service(db: Session = Depends(get_db)) -> RentEscalationService:
    return RentEscalationService(db)
