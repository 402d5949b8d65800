"""
Rent escalation preview endpoints.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from hoarding_rental.api import deps
from hoarding_rental.api.responses import respond
from hoarding_rental.schemas.rent import IncrementPreviewRequest, IncrementPreviewResponse
from hoarding_rental.services.base import ServiceResult
from hoarding_rental.services.rent import RentEscalationService, next_increment

router = APIRouter(tags=["rent"])


@router.post("/rent/preview")
def preview_increment(payload: IncrementPreviewRequest):
    """Preview for values that are not saved yet, e.g. while a form is edited."""
    increment = next_increment(
        payload.base_rent,
        payload.increment_cycle_years,
        payload.increment_type,
        payload.increment_value,
        payload.rent_start_date,
        payload.reference_date,
    )
    if increment is None:
        return respond(ServiceResult.success(IncrementPreviewResponse(available=False)))

    return respond(ServiceResult.success(IncrementPreviewResponse(
        available=True,
        cycles_passed=increment.cycles_passed,
        current_rent=increment.current_rent,
        last_increment_date=increment.last_increment_date,
        next_increment_date=increment.next_date,
        next_rent=increment.next_rent,
    )))


@router.get("/rent-records/{rent_record_id}/preview")
def preview_rent_record(
    rent_record_id: str,
    reference_date: Optional[date] = None,
    service: RentEscalationService = Depends(deps.get_rent_service),
):
    return respond(service.preview(rent_record_id, reference_date))
