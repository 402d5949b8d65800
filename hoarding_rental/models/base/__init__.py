"""
Base model components.
"""

from hoarding_rental.models.base.base_model import Base, BaseModel, TimestampModel, utcnow_naive
from hoarding_rental.models.base.enums import (
    DESIGN_PIPELINE,
    FITTER_PIPELINE,
    DesignStatus,
    FitterStatus,
    HoardingStatus,
    IncrementType,
    PaymentFrequency,
    StaffRole,
    TokenStatus,
)

__all__ = [
    "Base",
    "BaseModel",
    "TimestampModel",
    "utcnow_naive",
    "DESIGN_PIPELINE",
    "FITTER_PIPELINE",
    "DesignStatus",
    "FitterStatus",
    "HoardingStatus",
    "IncrementType",
    "PaymentFrequency",
    "StaffRole",
    "TokenStatus",
]
