"""
SQLAlchemy models.
"""

from hoarding_rental.models.base import Base
from hoarding_rental.models.booking_token import BookingToken
from hoarding_rental.models.hoarding import Hoarding
from hoarding_rental.models.rent_record import RentRecord
from hoarding_rental.models.staff_member import StaffMember

__all__ = ["Base", "BookingToken", "Hoarding", "RentRecord", "StaffMember"]
