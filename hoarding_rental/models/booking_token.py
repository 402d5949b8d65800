"""
Booking token model.

A token is a time-boxed reservation claim on a hoarding, queued FIFO per
hoarding. Once confirmed it carries the design and installation pipelines
until the hoarding is finalized as booked.
"""

from datetime import date as Date, datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date as SQLDate,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hoarding_rental.models.base import (
    DesignStatus,
    FitterStatus,
    TimestampModel,
    TokenStatus,
)

if TYPE_CHECKING:
    from hoarding_rental.models.hoarding import Hoarding

__all__ = ["BookingToken"]


class BookingToken(TimestampModel):
    """
    Reservation claim on a hoarding.

    Attributes:
        hoarding_id: Hoarding being reserved
        client_id: Client the reservation is for (immutable)
        sales_user_id: Sales user who created the token (immutable)
        status: ACTIVE, CONFIRMED, EXPIRED or CANCELLED
        queue_position: 1-based rank at creation time (immutable)
        expires_at: When an ACTIVE token becomes eligible for expiry
        designer_id / design_status: Design pipeline, set on confirm
        fitter_id / fitter_status: Installation pipeline, set on assignment
        installation_proof_refs: Opaque proof references, set on FITTED
        version: Optimistic concurrency counter
    """

    __tablename__ = "booking_tokens"

    hoarding_id: Mapped[str] = mapped_column(
        ForeignKey("hoardings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Hoarding being reserved",
    )

    client_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    sales_user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    status: Mapped[TokenStatus] = mapped_column(
        Enum(TokenStatus),
        nullable=False,
        default=TokenStatus.ACTIVE,
        index=True,
    )

    queue_position: Mapped[int] = mapped_column(Integer, nullable=False)

    expires_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        index=True,
        comment="Hold expiry (naive UTC)",
    )

    # Requested campaign window
    date_from: Mapped[Optional[Date]] = mapped_column(SQLDate, nullable=True)
    date_to: Mapped[Optional[Date]] = mapped_column(SQLDate, nullable=True)
    duration_months: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    duration_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Confirmation
    confirmed_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    confirmed_by_role: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    execution_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    planned_live_date: Mapped[Optional[Date]] = mapped_column(SQLDate, nullable=True)

    # Design pipeline
    designer_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    design_status: Mapped[Optional[DesignStatus]] = mapped_column(Enum(DesignStatus), nullable=True)

    # Installation pipeline
    fitter_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    fitter_status: Mapped[Optional[FitterStatus]] = mapped_column(Enum(FitterStatus), nullable=True)
    fitter_assigned_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    fitter_assigned_by_role: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    fitter_assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    installation_proof_refs: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    installed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Cancellation / release
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Hold extension
    extension_requested_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    extension_requested_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Finalization
    finalized_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    hoarding: Mapped["Hoarding"] = relationship("Hoarding", back_populates="tokens")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("queue_position >= 1", name="ck_booking_tokens_queue_position"),
        Index("ix_booking_tokens_hoarding_status", "hoarding_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<BookingToken(id={self.id}, hoarding_id={self.hoarding_id}, "
            f"status={self.status}, version={self.version})>"
        )
