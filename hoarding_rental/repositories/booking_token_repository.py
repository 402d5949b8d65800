"""
Booking token repository.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hoarding_rental.models.base import TokenStatus
from hoarding_rental.models.booking_token import BookingToken
from hoarding_rental.repositories.base import BaseRepository

QUEUED_STATUSES = (TokenStatus.ACTIVE, TokenStatus.CONFIRMED)


class BookingTokenRepository(BaseRepository[BookingToken]):

    def __init__(self, db: Session):
        super().__init__(BookingToken, db)

    def find_hoarding_id(self, token_id: str) -> Optional[str]:
        """Resolve which hoarding a token belongs to without loading it."""
        stmt = select(BookingToken.hoarding_id).where(BookingToken.id == token_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def count_queued(self, hoarding_id: str) -> int:
        """Tokens still holding a place in the hoarding's queue."""
        stmt = (
            select(func.count())
            .select_from(BookingToken)
            .where(
                BookingToken.hoarding_id == hoarding_id,
                BookingToken.status.in_(QUEUED_STATUSES),
            )
        )
        return int(self.db.execute(stmt).scalar_one())

    def list_for_hoarding(self, hoarding_id: str) -> List[BookingToken]:
        """All tokens for a hoarding in queue order."""
        stmt = (
            select(BookingToken)
            .where(BookingToken.hoarding_id == hoarding_id)
            .order_by(BookingToken.queue_position, BookingToken.created_at)
            .execution_options(populate_existing=True)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_sales_user(self, sales_user_id: str) -> List[BookingToken]:
        stmt = (
            select(BookingToken)
            .where(BookingToken.sales_user_id == sales_user_id)
            .order_by(BookingToken.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_due_for_expiry(self, now: datetime, hoarding_id: Optional[str] = None) -> List[BookingToken]:
        """ACTIVE tokens whose hold ended strictly before `now` (naive UTC)."""
        stmt = select(BookingToken).where(
            BookingToken.status == TokenStatus.ACTIVE,
            BookingToken.expires_at < now,
        )
        if hoarding_id is not None:
            stmt = stmt.where(BookingToken.hoarding_id == hoarding_id)
        return list(self.db.execute(stmt).scalars().all())
