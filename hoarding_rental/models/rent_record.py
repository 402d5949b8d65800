"""
Landlord rent record feeding the escalation calculator.
"""

from datetime import date as Date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Date as SQLDate, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from hoarding_rental.config.settings import settings
from hoarding_rental.models.base import IncrementType, PaymentFrequency, TimestampModel

__all__ = ["RentRecord"]


class RentRecord(TimestampModel):
    """
    Rent paid to a landlord for a hoarding site.

    Attributes:
        base_rent: Rent at rent_start_date
        increment_cycle_years: Years between increments
        increment_type: PERCENTAGE or AMOUNT
        increment_value: Percent or flat amount per cycle
        rent_start_date: Anchor date for cycle arithmetic
        payment_frequency: How often rent falls due
        last_payment_date: Most recent payment, if any
        reminder_days: Days before a due date to remind
    """

    __tablename__ = "rent_records"

    hoarding_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("hoardings.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    landlord_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    base_rent: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    increment_cycle_years: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    increment_type: Mapped[Optional[IncrementType]] = mapped_column(Enum(IncrementType), nullable=True)
    increment_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)
    rent_start_date: Mapped[Optional[Date]] = mapped_column(SQLDate, nullable=True)

    payment_frequency: Mapped[Optional[PaymentFrequency]] = mapped_column(
        Enum(PaymentFrequency),
        nullable=True,
    )
    last_payment_date: Mapped[Optional[Date]] = mapped_column(SQLDate, nullable=True)
    reminder_days: Mapped[List[int]] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: list(settings.RENT_DEFAULT_REMINDER_DAYS),
    )
