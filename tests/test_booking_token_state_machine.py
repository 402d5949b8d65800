from datetime import timedelta

import pytest

from hoarding_rental.models import StaffMember
from hoarding_rental.models.base import (
    DesignStatus,
    FitterStatus,
    HoardingStatus,
    StaffRole,
    TokenStatus,
)
from hoarding_rental.services.base import ErrorCode
from hoarding_rental.services.booking_token import explain_failure
from tests.conftest import (
    ADMIN,
    DESIGNER,
    FITTER,
    MANAGER,
    NOW,
    OTHER_DESIGNER,
    OTHER_SALES,
    OWNER,
    SALES,
)


def hoarding_status(service, hoarding):
    return service.get_hoarding_status(hoarding.id).unwrap()


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


def test_create_queues_active_tokens(service, hoardings):
    first = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()
    second = service.create_token(OTHER_SALES, hoardings["H-1"].id, "client-2").unwrap()

    assert first.status == TokenStatus.ACTIVE
    assert first.queue_position == 1
    assert second.queue_position == 2
    assert first.sales_user_id == SALES.user_id
    assert first.expires_at == NOW + timedelta(hours=48)
    assert first.version == 1


def test_create_on_remount_pending_hoarding_is_allowed(service, hoardings):
    result = service.create_token(SALES, hoardings["H-REMOUNT"].id, "client-1")

    assert result.is_success


@pytest.mark.parametrize("code", ["H-LIVE", "H-BOOKED", "H-REMOVAL"])
def test_create_on_unavailable_hoarding_is_rejected(service, hoardings, code):
    result = service.create_token(SALES, hoardings[code].id, "client-1")

    assert result.code == ErrorCode.HOARDING_UNAVAILABLE
    assert result.error.details["reason"] == hoardings[code].status.value


def test_create_on_unknown_hoarding_is_unavailable(service):
    result = service.create_token(SALES, "no-such-hoarding", "client-1")

    assert result.code == ErrorCode.HOARDING_UNAVAILABLE


def test_create_on_hoarding_under_process_explains_why(service, hoardings, confirmed_token):
    result = service.create_token(OTHER_SALES, hoardings["H-1"].id, "client-2")

    assert result.code == ErrorCode.HOARDING_UNAVAILABLE
    assert explain_failure(result.error, "sales") == "This hoarding is Under Process and cannot be tokenized"


def test_only_sales_can_create(service, hoardings):
    result = service.create_token(MANAGER, hoardings["H-1"].id, "client-1")

    assert result.code == ErrorCode.FORBIDDEN_TRANSITION


@pytest.mark.parametrize(
    "kwargs",
    [
        {"client_id": ""},
        {"duration_months": 0},
        {"date_from": NOW.date(), "date_to": NOW.date() - timedelta(days=1)},
    ],
)
def test_create_validates_input(service, hoardings, kwargs):
    options = {"client_id": "client-1"}
    options.update(kwargs)

    result = service.create_token(SALES, hoardings["H-1"].id, **options)

    assert result.code == ErrorCode.VALIDATION_ERROR


# ---------------------------------------------------------------------------
# confirm
# ---------------------------------------------------------------------------


def test_confirm_locks_hoarding_and_starts_design(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    confirmed = service.confirm_token(token.id, MANAGER, execution_type="flex", duration_months=3).unwrap()

    assert confirmed.status == TokenStatus.CONFIRMED
    assert confirmed.confirmed_by == MANAGER.user_id
    assert confirmed.confirmed_by_role == "manager"
    assert confirmed.designer_id == DESIGNER.user_id
    assert confirmed.design_status == DesignStatus.PENDING
    assert confirmed.planned_live_date == NOW.date()
    assert confirmed.execution_type == "flex"
    assert confirmed.duration_months == 3
    assert confirmed.version == token.version + 1

    status = hoarding_status(service, hoardings["H-1"])
    assert status.status == HoardingStatus.UNDER_PROCESS
    assert status.locked_by_token_id == token.id


def test_admin_confirms_like_owner(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    assert service.confirm_token(token.id, ADMIN).is_success


def test_sales_cannot_confirm(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    result = service.confirm_token(token.id, SALES)

    assert result.code == ErrorCode.FORBIDDEN_TRANSITION
    assert service.get_token(token.id).unwrap().status == TokenStatus.ACTIVE


def test_second_confirm_on_hoarding_loses_with_conflict(service, hoardings):
    first = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()
    second = service.create_token(OTHER_SALES, hoardings["H-1"].id, "client-2").unwrap()
    service.confirm_token(first.id, MANAGER).unwrap()

    result = service.confirm_token(second.id, OWNER)

    assert result.code == ErrorCode.ALREADY_UNDER_PROCESS
    conflict = result.error.conflict
    assert conflict.winner_user_id == MANAGER.user_id
    assert conflict.winner_role == "manager"
    assert conflict.winner_token_id == first.id
    assert service.get_token(second.id).unwrap().status == TokenStatus.ACTIVE


def test_confirming_a_confirmed_token_is_a_conflict(service, confirmed_token):
    result = service.confirm_token(confirmed_token.id, OWNER)

    assert result.code == ErrorCode.ALREADY_UNDER_PROCESS
    assert result.error.conflict.winner_token_id == confirmed_token.id


def test_confirm_with_explicit_designer(db, service, hoardings):
    db.add(StaffMember(id=OTHER_DESIGNER.user_id, name="Second Designer", role=StaffRole.DESIGNER))
    db.commit()
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    confirmed = service.confirm_token(token.id, OWNER, designer_id=OTHER_DESIGNER.user_id).unwrap()

    assert confirmed.designer_id == OTHER_DESIGNER.user_id


def test_confirm_needs_a_designer_choice_when_several_exist(db, service, hoardings):
    db.add(StaffMember(id=OTHER_DESIGNER.user_id, name="Second Designer", role=StaffRole.DESIGNER))
    db.commit()
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    result = service.confirm_token(token.id, OWNER)

    assert result.code == ErrorCode.VALIDATION_ERROR
    assert result.error.details["candidates"] == 2
    assert hoarding_status(service, hoardings["H-1"]).status == HoardingStatus.AVAILABLE


def test_confirm_rejects_inactive_designer(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    result = service.confirm_token(token.id, OWNER, designer_id="designer-retired")

    assert result.code == ErrorCode.VALIDATION_ERROR


def test_confirm_rejects_non_positive_duration(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    result = service.confirm_token(token.id, OWNER, duration_days=0)

    assert result.code == ErrorCode.VALIDATION_ERROR


def test_confirm_with_stale_version_is_rejected(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    result = service.confirm_token(token.id, OWNER, expected_version=token.version + 5)

    assert result.code == ErrorCode.STALE_VERSION
    assert hoarding_status(service, hoardings["H-1"]).status == HoardingStatus.AVAILABLE


def test_missing_token_is_not_found(service):
    assert service.confirm_token("missing", OWNER).code == ErrorCode.NOT_FOUND
    assert service.get_token("missing").code == ErrorCode.NOT_FOUND


# ---------------------------------------------------------------------------
# cancel / release
# ---------------------------------------------------------------------------


def test_cancel_active_token(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    cancelled = service.cancel_token(token.id, OWNER, reason="client withdrew").unwrap()

    assert cancelled.status == TokenStatus.CANCELLED
    assert cancelled.cancelled_by == OWNER.user_id
    assert cancelled.cancel_reason == "client withdrew"


def test_cancelled_token_is_terminal(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()
    service.cancel_token(token.id, OWNER).unwrap()

    assert service.confirm_token(token.id, OWNER).code == ErrorCode.INVALID_STATE
    assert service.cancel_token(token.id, OWNER).code == ErrorCode.INVALID_STATE


def test_confirmed_token_cannot_be_cancelled(service, confirmed_token):
    result = service.cancel_token(confirmed_token.id, OWNER)

    assert result.code == ErrorCode.INVALID_STATE
    assert result.error.details["reason"] == "token_not_active"


def test_queued_token_on_locked_hoarding_cannot_be_cancelled(service, hoardings):
    first = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()
    second = service.create_token(OTHER_SALES, hoardings["H-1"].id, "client-2").unwrap()
    service.confirm_token(first.id, MANAGER).unwrap()

    result = service.cancel_token(second.id, OWNER)

    assert result.code == ErrorCode.INVALID_STATE
    assert result.error.details["reason"] == "hoarding_locked"


def test_sales_cannot_cancel(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    assert service.cancel_token(token.id, SALES).code == ErrorCode.FORBIDDEN_TRANSITION


def test_cancel_with_stale_version_is_rejected(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()
    service.confirm_token(token.id, MANAGER).unwrap()

    result = service.cancel_token(token.id, OWNER, expected_version=token.version)

    assert result.code == ErrorCode.STALE_VERSION


def test_sales_owner_releases_token(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    released = service.release_token(token.id, SALES).unwrap()

    assert released.status == TokenStatus.CANCELLED
    assert released.cancel_reason == "released"


def test_other_sales_user_cannot_release(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    result = service.release_token(token.id, OTHER_SALES)

    assert result.code == ErrorCode.FORBIDDEN_TRANSITION


# ---------------------------------------------------------------------------
# design pipeline
# ---------------------------------------------------------------------------


def test_design_moves_forward_one_step_at_a_time(service, confirmed_token):
    step = service.set_design_status(confirmed_token.id, DESIGNER, "in_progress").unwrap()
    assert step.design_status == DesignStatus.IN_PROGRESS

    done = service.set_design_status(confirmed_token.id, DESIGNER, DesignStatus.COMPLETED).unwrap()
    assert done.design_status == DesignStatus.COMPLETED


def test_other_designer_is_forbidden(service, confirmed_token):
    result = service.set_design_status(confirmed_token.id, OTHER_DESIGNER, "IN_PROGRESS")

    assert result.code == ErrorCode.FORBIDDEN_TRANSITION
    assert explain_failure(result.error, "designer") == "Only the assigned designer can update design status."
    assert service.get_token(confirmed_token.id).unwrap().design_status == DesignStatus.PENDING


def test_design_cannot_skip(service, confirmed_token):
    result = service.set_design_status(confirmed_token.id, DESIGNER, "COMPLETED")

    assert result.code == ErrorCode.FORBIDDEN_TRANSITION
    assert result.error.details["reason"] == "cannot_skip"


@pytest.mark.parametrize(
    "target, reason",
    [("PENDING", "cannot_revert"), ("IN_PROGRESS", "not_forward"), ("COMPLETED", "not_forward")],
)
def test_completed_design_never_regresses(service, confirmed_token, target, reason):
    service.set_design_status(confirmed_token.id, DESIGNER, "IN_PROGRESS").unwrap()
    service.set_design_status(confirmed_token.id, DESIGNER, "COMPLETED").unwrap()

    result = service.set_design_status(confirmed_token.id, DESIGNER, target)

    assert result.code == ErrorCode.FORBIDDEN_TRANSITION
    assert result.error.details["reason"] == reason
    assert service.get_token(confirmed_token.id).unwrap().design_status == DesignStatus.COMPLETED


def test_reverting_to_pending_is_explained(service, confirmed_token):
    service.set_design_status(confirmed_token.id, DESIGNER, "IN_PROGRESS").unwrap()

    result = service.set_design_status(confirmed_token.id, DESIGNER, "PENDING")

    assert explain_failure(result.error, "designer") == "Cannot move back to pending"


def test_unknown_design_status_is_invalid(service, confirmed_token):
    assert service.set_design_status(confirmed_token.id, DESIGNER, "DONE").code == ErrorCode.VALIDATION_ERROR


def test_design_on_unconfirmed_token_is_invalid(service, hoardings):
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()

    assert service.set_design_status(token.id, DESIGNER, "IN_PROGRESS").code == ErrorCode.INVALID_STATE


# ---------------------------------------------------------------------------
# installation pipeline
# ---------------------------------------------------------------------------


def test_fitter_needs_completed_design(service, confirmed_token):
    result = service.assign_fitter(confirmed_token.id, MANAGER)

    assert result.code == ErrorCode.INVALID_STATE
    assert result.error.details["reason"] == "design_not_completed"


def test_assign_fitter(fitted_ready_token):
    assert fitted_ready_token.fitter_id == FITTER.user_id
    assert fitted_ready_token.fitter_status == FitterStatus.PENDING
    assert fitted_ready_token.fitter_assigned_by == MANAGER.user_id


def test_second_assignment_is_already_assigned(service, fitted_ready_token):
    result = service.assign_fitter(fitted_ready_token.id, OWNER, fitter_id=FITTER.user_id)

    assert result.code == ErrorCode.ALREADY_ASSIGNED
    assert result.error.conflict.winner_role == "manager"
    assert explain_failure(result.error, "owner") == "This hoarding has already been assigned by the manager."


def test_only_assigned_fitter_updates_installation(service, fitted_ready_token):
    result = service.set_fitter_status(fitted_ready_token.id, DESIGNER, "IN_PROGRESS")

    assert result.code == ErrorCode.FORBIDDEN_TRANSITION
    assert explain_failure(result.error) == "Only the assigned fitter can update installation status."


def test_fitted_requires_in_progress_first(service, fitted_ready_token):
    result = service.set_fitter_status(fitted_ready_token.id, FITTER, "FITTED", proof_refs=["img-1"])

    assert result.code == ErrorCode.FORBIDDEN_TRANSITION
    assert explain_failure(result.error) == "Must be in progress before fitting"


def test_fitted_without_proof_is_rejected(service, fitted_ready_token):
    service.set_fitter_status(fitted_ready_token.id, FITTER, "IN_PROGRESS").unwrap()

    result = service.set_fitter_status(fitted_ready_token.id, FITTER, "FITTED", proof_refs=["  ", None])

    assert result.code == ErrorCode.PROOF_REQUIRED
    assert explain_failure(result.error) == "Please upload at least 1 proof image."
    token = service.get_token(fitted_ready_token.id).unwrap()
    assert token.fitter_status == FitterStatus.IN_PROGRESS
    assert token.installation_proof_refs == []


def test_fitted_with_proof_takes_hoarding_live(service, hoardings, fitted_ready_token):
    service.set_fitter_status(fitted_ready_token.id, FITTER, "IN_PROGRESS").unwrap()

    fitted = service.set_fitter_status(
        fitted_ready_token.id, FITTER, "FITTED", proof_refs=["proof/1.jpg", "proof/2.jpg"]
    ).unwrap()

    assert fitted.fitter_status == FitterStatus.FITTED
    assert fitted.installation_proof_refs == ["proof/1.jpg", "proof/2.jpg"]
    assert fitted.installed_at == NOW
    assert hoarding_status(service, hoardings["H-1"]).status == HoardingStatus.LIVE


@pytest.mark.parametrize(
    "target, reason",
    [("PENDING", "cannot_revert"), ("IN_PROGRESS", "not_forward"), ("FITTED", "not_forward")],
)
def test_fitted_installation_never_regresses(service, hoardings, fitted_ready_token, target, reason):
    service.set_fitter_status(fitted_ready_token.id, FITTER, "IN_PROGRESS").unwrap()
    service.set_fitter_status(fitted_ready_token.id, FITTER, "FITTED", proof_refs=["proof/1.jpg"]).unwrap()

    result = service.set_fitter_status(fitted_ready_token.id, FITTER, target, proof_refs=["proof/2.jpg"])

    assert result.code == ErrorCode.FORBIDDEN_TRANSITION
    assert result.error.details["reason"] == reason
    token = service.get_token(fitted_ready_token.id).unwrap()
    assert token.fitter_status == FitterStatus.FITTED
    assert token.installation_proof_refs == ["proof/1.jpg"]
    assert hoarding_status(service, hoardings["H-1"]).status == HoardingStatus.LIVE


def test_installation_in_progress_cannot_go_back_to_pending(service, fitted_ready_token):
    service.set_fitter_status(fitted_ready_token.id, FITTER, "IN_PROGRESS").unwrap()

    result = service.set_fitter_status(fitted_ready_token.id, FITTER, "PENDING")

    assert result.code == ErrorCode.FORBIDDEN_TRANSITION
    assert result.error.details["reason"] == "cannot_revert"
    assert service.get_token(fitted_ready_token.id).unwrap().fitter_status == FitterStatus.IN_PROGRESS


# ---------------------------------------------------------------------------
# finalize
# ---------------------------------------------------------------------------


def test_finalize_while_under_process_is_not_ready(service, confirmed_token):
    result = service.finalize(confirmed_token.id, OWNER)

    assert result.code == ErrorCode.NOT_READY


def test_finalize_books_live_hoarding(service, hoardings, fitted_ready_token):
    service.set_fitter_status(fitted_ready_token.id, FITTER, "IN_PROGRESS").unwrap()
    service.set_fitter_status(fitted_ready_token.id, FITTER, "FITTED", proof_refs=["p1"]).unwrap()

    finalized = service.finalize(fitted_ready_token.id, SALES).unwrap()

    assert finalized.finalized_by == SALES.user_id
    assert hoarding_status(service, hoardings["H-1"]).status == HoardingStatus.BOOKED

    again = service.finalize(fitted_ready_token.id, OWNER)
    assert again.code == ErrorCode.INVALID_STATE
    assert explain_failure(again.error) == "Already booked"


def test_finalize_forbidden_for_designer(service, confirmed_token):
    assert service.finalize(confirmed_token.id, DESIGNER).code == ErrorCode.FORBIDDEN_TRANSITION


def test_hoarding_pending_removal_is_not_taken_live(db, service, hoardings, fitted_ready_token):
    service.set_fitter_status(fitted_ready_token.id, FITTER, "IN_PROGRESS").unwrap()
    hoarding = hoardings["H-1"]
    hoarding.status = HoardingStatus.REMOVAL_PENDING
    db.commit()

    service.set_fitter_status(fitted_ready_token.id, FITTER, "FITTED", proof_refs=["p1"]).unwrap()
    assert hoarding_status(service, hoarding).status == HoardingStatus.REMOVAL_PENDING

    result = service.finalize(fitted_ready_token.id, OWNER)
    assert result.code == ErrorCode.NOT_READY
    assert explain_failure(result.error) == "Hoarding must be Live to mark as booked"


# ---------------------------------------------------------------------------
# listings
# ---------------------------------------------------------------------------


def test_listings(service, hoardings):
    first = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()
    second = service.create_token(OTHER_SALES, hoardings["H-1"].id, "client-2").unwrap()
    other = service.create_token(SALES, hoardings["H-2"].id, "client-3").unwrap()

    queue = service.list_tokens_for_hoarding(hoardings["H-1"].id).unwrap()
    assert [t.id for t in queue] == [first.id, second.id]

    mine = service.list_my_tokens(SALES).unwrap()
    assert {t.id for t in mine} == {first.id, other.id}

    assert service.list_tokens_for_hoarding("missing").code == ErrorCode.NOT_FOUND
    assert service.get_hoarding_status("missing").code == ErrorCode.NOT_FOUND
