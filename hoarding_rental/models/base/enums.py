"""
Database enums mirroring schema enums.

Values are the lower/upper-case strings used on the wire; the same enums are
reused by the Pydantic schemas.
"""

import enum


class StaffRole(str, enum.Enum):
    """Roles recognised by the role authority."""
    OWNER = "owner"
    MANAGER = "manager"
    SALES = "sales"
    DESIGNER = "designer"
    FITTER = "fitter"
    ADMIN = "admin"


class HoardingStatus(str, enum.Enum):
    """Hoarding availability status."""
    AVAILABLE = "available"
    UNDER_PROCESS = "under_process"
    LIVE = "live"
    BOOKED = "booked"
    REMOVAL_PENDING = "removal_pending"
    REMOUNT_PENDING = "remount_pending"


class TokenStatus(str, enum.Enum):
    """Booking token lifecycle status."""
    ACTIVE = "ACTIVE"
    CONFIRMED = "CONFIRMED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class DesignStatus(str, enum.Enum):
    """Design pipeline, forward only."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class FitterStatus(str, enum.Enum):
    """Installation pipeline, forward only."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    FITTED = "FITTED"


class IncrementType(str, enum.Enum):
    """How a rent increment is applied each cycle."""
    PERCENTAGE = "PERCENTAGE"
    AMOUNT = "AMOUNT"


class PaymentFrequency(str, enum.Enum):
    """Rent payment period."""
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    HALF_YEARLY = "HALF_YEARLY"
    YEARLY = "YEARLY"


DESIGN_PIPELINE = (DesignStatus.PENDING, DesignStatus.IN_PROGRESS, DesignStatus.COMPLETED)
FITTER_PIPELINE = (FitterStatus.PENDING, FitterStatus.IN_PROGRESS, FitterStatus.FITTED)
