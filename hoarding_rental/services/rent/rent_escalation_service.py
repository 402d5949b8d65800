"""
Rent escalation service: previews for stored rent records.
"""

from datetime import date
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from hoarding_rental.config.settings import settings
from hoarding_rental.models.rent_record import RentRecord
from hoarding_rental.repositories.rent_record_repository import RentRecordRepository
from hoarding_rental.services.base import BaseService, ServiceResult
from hoarding_rental.services.rent.rent_escalation import (
    next_increment,
    next_payment_due,
    reminder_dates,
)
from hoarding_rental.utils.date_utils import DateLike, DateUtilsError, parse_date, today_utc


class RentEscalationService(BaseService):
    """
    Builds the rent schedule preview for a landlord rent record.
    """

    def __init__(self, db_session: Session, today: Callable[[], date] = today_utc):
        super().__init__(db_session)
        self.repository = RentRecordRepository(db_session)
        self._today = today

    def preview(
        self,
        rent_record_id: str,
        reference_date: Optional[DateLike] = None,
    ) -> ServiceResult[Dict[str, Any]]:
        """
        Increment preview, payment due date and reminders for a record.

        "No preview available" is a successful result with
        `available = False`; only a missing record or a malformed reference
        date is a failure.
        """
        try:
            record = self.repository.find_by_id(rent_record_id)
            if record is None:
                return ServiceResult.not_found("RentRecord", rent_record_id)

            if reference_date is None:
                reference = self._today()
            else:
                try:
                    reference = parse_date(reference_date)
                except DateUtilsError as e:
                    return ServiceResult.validation_failure(str(e), details={"field": "reference_date"})

            return ServiceResult.success(self.build_preview(record, reference))
        except Exception as e:
            return self._handle_exception(e, "preview rent escalation", rent_record_id)

    def build_preview(self, record: RentRecord, reference: date) -> Dict[str, Any]:
        increment = next_increment(
            record.base_rent,
            record.increment_cycle_years,
            record.increment_type,
            record.increment_value,
            record.rent_start_date,
            reference,
        )
        due = next_payment_due(
            record.rent_start_date,
            record.payment_frequency,
            record.last_payment_date,
            reference,
        )
        reminder_days = (
            record.reminder_days if record.reminder_days is not None else settings.RENT_DEFAULT_REMINDER_DAYS
        )

        preview = {
            "rent_record_id": record.id,
            "reference_date": reference.isoformat(),
            "available": increment is not None,
            "cycles_passed": None,
            "current_rent": None,
            "last_increment_date": None,
            "next_increment_date": None,
            "next_rent": None,
            "next_payment_due": due.isoformat() if due else None,
            "reminder_dates": [d.isoformat() for d in reminder_dates(due, reminder_days)],
        }

        if increment is not None:
            preview.update({
                "cycles_passed": increment.cycles_passed,
                "current_rent": str(increment.current_rent),
                "last_increment_date": (
                    increment.last_increment_date.isoformat() if increment.last_increment_date else None
                ),
                "next_increment_date": increment.next_date.isoformat(),
                "next_rent": str(increment.next_rent),
            })

        self._logger.debug(
            "Rent preview built",
            extra={"rent_record_id": record.id, "available": preview["available"]},
        )
        return preview
