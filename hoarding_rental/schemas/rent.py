"""
Rent escalation schemas.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from hoarding_rental.models.base import IncrementType
from hoarding_rental.schemas.common import BaseCreateSchema, BaseSchema


class IncrementPreviewRequest(BaseCreateSchema):
    """Ad-hoc preview for values still being edited."""

    base_rent: Optional[Decimal] = None
    increment_cycle_years: Optional[int] = None
    increment_type: Optional[IncrementType] = None
    increment_value: Optional[Decimal] = None
    rent_start_date: Optional[date] = None
    reference_date: Optional[date] = None


class IncrementPreviewResponse(BaseSchema):
    available: bool
    cycles_passed: Optional[int] = None
    current_rent: Optional[Decimal] = None
    last_increment_date: Optional[date] = None
    next_increment_date: Optional[date] = None
    next_rent: Optional[Decimal] = None


class RentPreviewResponse(IncrementPreviewResponse):
    rent_record_id: str
    reference_date: date
    next_payment_due: Optional[date] = None
    reminder_dates: List[date] = Field(default_factory=list)
