"""
Hoarding model.

Only the fields the booking lifecycle reads and writes live here; the wider
hoarding catalog (dimensions, pricing, photos) is managed elsewhere.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hoarding_rental.models.base import HoardingStatus, TimestampModel

if TYPE_CHECKING:
    from hoarding_rental.models.booking_token import BookingToken

__all__ = ["Hoarding"]


class Hoarding(TimestampModel):
    """
    Status mirror of an advertising hoarding.

    Attributes:
        code: Human-readable hoarding code
        location: Free-text site description
        status: Current availability status
        locked_by_token_id: Confirmed token holding the hoarding while
            design and installation are in flight
        status_changed_at: When status last changed
    """

    __tablename__ = "hoardings"

    code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Human-readable hoarding code",
    )

    location: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Site description",
    )

    status: Mapped[HoardingStatus] = mapped_column(
        Enum(HoardingStatus),
        nullable=False,
        default=HoardingStatus.AVAILABLE,
        index=True,
        comment="Current availability status",
    )

    locked_by_token_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        comment="Confirmed booking token that holds the hoarding",
    )

    status_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        comment="When status last changed (naive UTC)",
    )

    tokens: Mapped[List["BookingToken"]] = relationship(
        "BookingToken",
        back_populates="hoarding",
        order_by="BookingToken.queue_position",
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<Hoarding(id={self.id}, code={self.code}, status={self.status})>"
