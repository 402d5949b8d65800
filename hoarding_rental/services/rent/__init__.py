from hoarding_rental.services.rent.rent_escalation import (
    IncrementPreview,
    next_increment,
    next_payment_due,
    reminder_dates,
)
from hoarding_rental.services.rent.rent_escalation_service import RentEscalationService

__all__ = [
    "IncrementPreview",
    "next_increment",
    "next_payment_due",
    "reminder_dates",
    "RentEscalationService",
]
