"""
Booking token and hoarding status endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from hoarding_rental.api import deps
from hoarding_rental.api.responses import respond
from hoarding_rental.schemas.booking_token import (
    DesignStatusUpdate,
    ExtensionRequest,
    FitterAssign,
    FitterStatusUpdate,
    TokenCancel,
    TokenConfirm,
    TokenCreate,
    VersionedAction,
)
from hoarding_rental.services.base import Principal
from hoarding_rental.services.booking_token import BookingTokenService, Deadline

router = APIRouter(tags=["booking-tokens"])


@router.post("/booking-tokens", status_code=status.HTTP_201_CREATED)
def create_token(
    payload: TokenCreate,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    result = service.create_token(
        actor,
        payload.hoarding_id,
        payload.client_id,
        date_from=payload.date_from,
        date_to=payload.date_to,
        duration_months=payload.duration_months,
        notes=payload.notes,
        deadline=deadline,
    )
    return respond(result, actor, success_status=status.HTTP_201_CREATED)


@router.get("/booking-tokens/mine")
def list_my_tokens(
    actor: Principal = Depends(deps.get_actor),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    return respond(service.list_my_tokens(actor), actor)


@router.get("/booking-tokens/{token_id}")
def get_token(
    token_id: str,
    actor: Principal = Depends(deps.get_actor),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    return respond(service.get_token(token_id), actor)


@router.post("/booking-tokens/{token_id}/confirm")
def confirm_token(
    token_id: str,
    payload: Optional[TokenConfirm] = None,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    payload = payload or TokenConfirm()
    result = service.confirm_token(
        token_id,
        actor,
        designer_id=payload.designer_id,
        execution_type=payload.execution_type,
        planned_live_date=payload.planned_live_date,
        duration_months=payload.duration_months,
        duration_days=payload.duration_days,
        expected_version=payload.expected_version,
        deadline=deadline,
    )
    return respond(result, actor)


@router.post("/booking-tokens/{token_id}/cancel")
def cancel_token(
    token_id: str,
    payload: Optional[TokenCancel] = None,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    payload = payload or TokenCancel()
    result = service.cancel_token(
        token_id,
        actor,
        reason=payload.reason,
        expected_version=payload.expected_version,
        deadline=deadline,
    )
    return respond(result, actor)


@router.post("/booking-tokens/{token_id}/release")
def release_token(
    token_id: str,
    payload: Optional[VersionedAction] = None,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    payload = payload or VersionedAction()
    result = service.release_token(
        token_id,
        actor,
        expected_version=payload.expected_version,
        deadline=deadline,
    )
    return respond(result, actor)


@router.post("/booking-tokens/{token_id}/extension")
def request_extension(
    token_id: str,
    payload: Optional[ExtensionRequest] = None,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    payload = payload or ExtensionRequest()
    return respond(service.request_extension(token_id, actor, hours=payload.hours, deadline=deadline), actor)


@router.post("/booking-tokens/{token_id}/extension/approve")
def approve_extension(
    token_id: str,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    return respond(service.approve_extension(token_id, actor, deadline=deadline), actor)


@router.post("/booking-tokens/{token_id}/extension/reject")
def reject_extension(
    token_id: str,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    return respond(service.reject_extension(token_id, actor, deadline=deadline), actor)


@router.post("/booking-tokens/{token_id}/design-status")
def set_design_status(
    token_id: str,
    payload: DesignStatusUpdate,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    result = service.set_design_status(
        token_id,
        actor,
        payload.status,
        expected_version=payload.expected_version,
        deadline=deadline,
    )
    return respond(result, actor)


@router.post("/booking-tokens/{token_id}/assign-fitter")
def assign_fitter(
    token_id: str,
    payload: Optional[FitterAssign] = None,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    payload = payload or FitterAssign()
    result = service.assign_fitter(
        token_id,
        actor,
        fitter_id=payload.fitter_id,
        expected_version=payload.expected_version,
        deadline=deadline,
    )
    return respond(result, actor)


@router.post("/booking-tokens/{token_id}/fitter-status")
def set_fitter_status(
    token_id: str,
    payload: FitterStatusUpdate,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    result = service.set_fitter_status(
        token_id,
        actor,
        payload.status,
        proof_refs=payload.proof_refs,
        expected_version=payload.expected_version,
        deadline=deadline,
    )
    return respond(result, actor)


@router.post("/booking-tokens/{token_id}/finalize")
def finalize(
    token_id: str,
    payload: Optional[VersionedAction] = None,
    actor: Principal = Depends(deps.get_actor),
    deadline: Optional[Deadline] = Depends(deps.get_deadline),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    payload = payload or VersionedAction()
    result = service.finalize(token_id, actor, expected_version=payload.expected_version, deadline=deadline)
    return respond(result, actor)


@router.get("/hoardings/{hoarding_id}/status")
def get_hoarding_status(
    hoarding_id: str,
    actor: Principal = Depends(deps.get_actor),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    return respond(service.get_hoarding_status(hoarding_id), actor)


@router.get("/hoardings/{hoarding_id}/tokens")
def list_hoarding_tokens(
    hoarding_id: str,
    actor: Principal = Depends(deps.get_actor),
    service: BookingTokenService = Depends(deps.get_booking_token_service),
):
    return respond(service.list_tokens_for_hoarding(hoarding_id), actor)
