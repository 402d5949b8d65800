"""
Conflict messaging policy.

Turns a typed failure into the sentence shown to the actor. Lost races are
explained from a table keyed by (conflict kind, loser role, winner role) so
that an owner learns when a manager already acted, while everyone else gets
the neutral wording. Guard failures carry a `reason` in their details which
selects a fixed message; anything unrecognised falls back to the error's own
message.
"""

from typing import Dict, Optional, Tuple

from hoarding_rental.core.exceptions import Conflict, ErrorCode
from hoarding_rental.models.base import StaffRole
from hoarding_rental.services.base.authorization_service import RoleLike, normalize_role
from hoarding_rental.services.base.service_result import ServiceError

ANY = None

CONFIRMED_BY_OTHER = "By the time you confirm the token, it was already confirmed by other"
CONFIRMED_BY_MANAGER = "By the time you confirm the token, it was already confirmed by the manager"
ASSIGNED_BY_OTHER = "This hoarding has already been assigned by another user."
ASSIGNED_BY_MANAGER = "This hoarding has already been assigned by the manager."

# (kind, loser role, winner role) -> message; ANY matches every role
CONFLICT_MESSAGES: Dict[Tuple[ErrorCode, Optional[StaffRole], Optional[StaffRole]], str] = {
    (ErrorCode.ALREADY_UNDER_PROCESS, StaffRole.OWNER, StaffRole.MANAGER): CONFIRMED_BY_MANAGER,
    (ErrorCode.ALREADY_UNDER_PROCESS, StaffRole.ADMIN, StaffRole.MANAGER): CONFIRMED_BY_MANAGER,
    (ErrorCode.ALREADY_UNDER_PROCESS, ANY, ANY): CONFIRMED_BY_OTHER,
    (ErrorCode.ALREADY_ASSIGNED, StaffRole.OWNER, StaffRole.MANAGER): ASSIGNED_BY_MANAGER,
    (ErrorCode.ALREADY_ASSIGNED, StaffRole.ADMIN, StaffRole.MANAGER): ASSIGNED_BY_MANAGER,
    (ErrorCode.ALREADY_ASSIGNED, ANY, ANY): ASSIGNED_BY_OTHER,
}

# (code, reason) -> message for guard failures that are not races
REASON_MESSAGES: Dict[Tuple[ErrorCode, str], str] = {
    (ErrorCode.PROOF_REQUIRED, "no_proof"): "Please upload at least 1 proof image.",
    (ErrorCode.NOT_READY, "hoarding_not_live"): "Hoarding must be Live to mark as booked",
    (ErrorCode.NOT_READY, "not_fitted"): "Installation must be fitted before finalizing",
    (ErrorCode.FORBIDDEN_TRANSITION, "not_assigned_fitter"): "Only the assigned fitter can update installation status.",
    (ErrorCode.FORBIDDEN_TRANSITION, "not_assigned_designer"): "Only the assigned designer can update design status.",
    (ErrorCode.FORBIDDEN_TRANSITION, "cannot_revert"): "Cannot move back to pending",
    (ErrorCode.FORBIDDEN_TRANSITION, "must_be_in_progress"): "Must be in progress before fitting",
    (ErrorCode.HOARDING_UNAVAILABLE, "under_process"): "This hoarding is Under Process and cannot be tokenized",
    (ErrorCode.INVALID_STATE, "already_booked"): "Already booked",
    (ErrorCode.RETRYABLE_CONFLICT, "lock_timeout"): "Someone else is updating this hoarding. Please try again.",
}


def explain_conflict(
    conflict: Conflict,
    actor_role: Optional[RoleLike],
    winner_role: Optional[RoleLike] = None,
) -> str:
    """
    Message for an actor who lost a race.

    `winner_role` overrides the role recorded on the conflict; when neither
    is known the generic wording is used.
    """
    loser = normalize_role(actor_role)
    winner = normalize_role(winner_role) or normalize_role(conflict.winner_role)

    for key in (
        (conflict.kind, loser, winner),
        (conflict.kind, loser, ANY),
        (conflict.kind, ANY, ANY),
    ):
        message = CONFLICT_MESSAGES.get(key)
        if message is not None:
            return message

    return CONFIRMED_BY_OTHER


def explain_failure(error: ServiceError, actor_role: Optional[RoleLike] = None) -> str:
    """User-facing explanation for any failed operation."""
    if error.conflict is not None:
        return explain_conflict(error.conflict, actor_role)

    reason = (error.details or {}).get("reason")
    if reason:
        message = REASON_MESSAGES.get((error.code, reason))
        if message is not None:
            return message

    if error.code == ErrorCode.RETRYABLE_CONFLICT:
        return REASON_MESSAGES[(ErrorCode.RETRYABLE_CONFLICT, "lock_timeout")]

    return error.message
