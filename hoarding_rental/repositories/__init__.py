"""
Data access layer.
"""

from hoarding_rental.repositories.base import BaseRepository
from hoarding_rental.repositories.booking_token_repository import BookingTokenRepository
from hoarding_rental.repositories.hoarding_repository import HoardingRepository
from hoarding_rental.repositories.rent_record_repository import RentRecordRepository
from hoarding_rental.repositories.staff_repository import StaffRepository

__all__ = [
    "BaseRepository",
    "BookingTokenRepository",
    "HoardingRepository",
    "RentRecordRepository",
    "StaffRepository",
]
