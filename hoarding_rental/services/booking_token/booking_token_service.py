"""
Booking token state machine.

Token lifecycle:

    ACTIVE -> CONFIRMED | CANCELLED | EXPIRED

A confirmed token then carries two forward-only pipelines:

    design:  PENDING -> IN_PROGRESS -> COMPLETED
    fitter:  PENDING -> IN_PROGRESS -> FITTED      (after design COMPLETED)

and the hoarding mirror moves available -> under_process (confirm) ->
live (FITTED) -> booked (finalize).

Operations that touch the hoarding (create, confirm, assign fitter, FITTED,
finalize) run in the hoarding-keyed critical section from
confirmation_arbitration; the rest are keyed by token and rely on the
token's optimistic version. Guards raise GuardViolation inside the
transaction, so a rejected operation leaves no partial state; the public
methods convert everything into a ServiceResult.
"""

from datetime import date, datetime, timedelta
from functools import partial
from typing import Any, Callable, Iterable, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from hoarding_rental.config.settings import settings
from hoarding_rental.core.events import (
    DESIGN_STATUS_CHANNEL,
    FITTER_STATUS_CHANNEL,
    EventBus,
    TokenStatusEvent,
    event_bus,
)
from hoarding_rental.core.exceptions import (
    Conflict,
    EntityNotFoundError,
    ErrorCode,
    GuardViolation,
    StaleStateError,
)
from hoarding_rental.models.base import (
    DESIGN_PIPELINE,
    FITTER_PIPELINE,
    DesignStatus,
    FitterStatus,
    HoardingStatus,
    StaffRole,
    TokenStatus,
)
from hoarding_rental.models.booking_token import BookingToken
from hoarding_rental.models.hoarding import Hoarding
from hoarding_rental.repositories import (
    BookingTokenRepository,
    HoardingRepository,
    StaffRepository,
)
from hoarding_rental.schemas.booking_token import BookingTokenResponse, HoardingStatusResponse
from hoarding_rental.services.base import (
    APPROVER_ROLES,
    FINALIZER_ROLES,
    SALES_ROLES,
    AuthorizationService,
    BaseService,
    Principal,
    ServiceResult,
    TransactionContext,
    authorization_service,
)
from hoarding_rental.services.booking_token.confirmation_arbitration import (
    Deadline,
    HoardingLockManager,
    get_lock_manager,
)
from hoarding_rental.utils.date_utils import now_utc, to_naive_utc

T = TypeVar("T")
E = TypeVar("E")

# Hoarding states in which no new token may be taken
NOT_TOKENIZABLE = frozenset({
    HoardingStatus.UNDER_PROCESS,
    HoardingStatus.LIVE,
    HoardingStatus.BOOKED,
    HoardingStatus.REMOVAL_PENDING,
})

# Hoarding states that mean another token already won the hoarding
HELD_BY_TOKEN = frozenset({
    HoardingStatus.UNDER_PROCESS,
    HoardingStatus.LIVE,
    HoardingStatus.BOOKED,
})


def effective_status(token: BookingToken, now: datetime) -> TokenStatus:
    """Status as observed at `now` (naive UTC): a lapsed ACTIVE hold reads as EXPIRED."""
    if token.status == TokenStatus.ACTIVE and now > token.expires_at:
        return TokenStatus.EXPIRED
    return token.status


class BookingTokenService(BaseService):
    """
    Guarded, multi-role lifecycle of booking tokens.
    """

    def __init__(
        self,
        db_session: Session,
        lock_manager: Optional[HoardingLockManager] = None,
        events: Optional[EventBus] = None,
        authorization: Optional[AuthorizationService] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        super().__init__(db_session)
        self.tokens = BookingTokenRepository(db_session)
        self.hoardings = HoardingRepository(db_session)
        self.staff = StaffRepository(db_session)
        self.locks = lock_manager or get_lock_manager()
        self.events = events or event_bus
        self.auth = authorization or authorization_service
        self._clock = clock

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_token(
        self,
        actor: Principal,
        hoarding_id: str,
        client_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        duration_months: Optional[int] = None,
        notes: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        """
        Queue a new ACTIVE token on a hoarding for a client.

        Fails with HOARDING_UNAVAILABLE when the hoarding does not exist or
        is already under process, live, booked or pending removal.
        """
        operation = "create booking token"
        try:
            self._require_role(actor, SALES_ROLES, operation)
            self._guard(bool(client_id), ErrorCode.VALIDATION_ERROR, "client_id is required",
                        reason="client_required")
            self._guard(not (date_from and date_to and date_to < date_from), ErrorCode.VALIDATION_ERROR,
                        "date_to must not be before date_from", reason="invalid_window")
            duration_months = self._positive_int(duration_months, "duration_months")

            if not self.hoardings.exists(hoarding_id):
                raise GuardViolation(
                    ErrorCode.HOARDING_UNAVAILABLE,
                    "Hoarding not found",
                    details={"reason": "not_found", "hoarding_id": hoarding_id},
                )

            now = self._now()

            def create(ctx: TransactionContext, hoarding: Hoarding) -> BookingToken:
                if hoarding.status in NOT_TOKENIZABLE:
                    raise GuardViolation(
                        ErrorCode.HOARDING_UNAVAILABLE,
                        f"Hoarding is {hoarding.status.value} and cannot be tokenized",
                        details={"reason": hoarding.status.value, "hoarding_id": hoarding.id},
                    )

                self._expire_due(now, hoarding_id=hoarding.id)
                position = self.tokens.count_queued(hoarding.id) + 1

                return self.tokens.create(BookingToken(
                    hoarding_id=hoarding.id,
                    client_id=client_id,
                    sales_user_id=actor.user_id,
                    status=TokenStatus.ACTIVE,
                    queue_position=position,
                    expires_at=now + timedelta(hours=settings.TOKEN_HOLD_HOURS),
                    date_from=date_from,
                    date_to=date_to,
                    duration_months=duration_months,
                    notes=notes,
                    installation_proof_refs=[],
                ))

            token = self._in_hoarding_section(operation, hoarding_id, deadline, create)
            self._log_transition(operation, token, actor, queue_position=token.queue_position)
            return ServiceResult.success(self._to_response(token), message="Token created")
        except Exception as e:
            return self._handle_exception(e, operation, hoarding_id)

    # -------------------------------------------------------------------------
    # Confirmation and cancellation
    # -------------------------------------------------------------------------

    def confirm_token(
        self,
        token_id: str,
        actor: Principal,
        designer_id: Optional[str] = None,
        execution_type: Optional[str] = None,
        planned_live_date: Optional[date] = None,
        duration_months: Optional[int] = None,
        duration_days: Optional[int] = None,
        expected_version: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        """
        Confirm an ACTIVE token and lock its hoarding for design and install.

        Exactly one confirm per hoarding can win. A caller who lost the race
        receives ALREADY_UNDER_PROCESS with the winner attached as a Conflict.
        The designer is the one given, or the only active designer when
        exactly one exists.
        """
        operation = "confirm booking token"
        try:
            self._require_role(actor, APPROVER_ROLES, operation)
            duration_months = self._positive_int(duration_months, "duration_months")
            duration_days = self._positive_int(duration_days, "duration_days")
            now = self._now()

            def confirm(ctx: TransactionContext, token: BookingToken, hoarding: Hoarding) -> None:
                if token.status == TokenStatus.CONFIRMED or hoarding.status in HELD_BY_TOKEN:
                    raise self._under_process_conflict(token, hoarding)
                if hoarding.status == HoardingStatus.REMOVAL_PENDING:
                    raise GuardViolation(
                        ErrorCode.HOARDING_UNAVAILABLE,
                        "Hoarding is pending removal",
                        details={"reason": "removal_pending"},
                    )
                self._require_live_hold(token, now)
                self._check_version(token, expected_version)

                token.designer_id = self._resolve_staff(StaffRole.DESIGNER, designer_id)
                token.status = TokenStatus.CONFIRMED
                token.confirmed_by = actor.user_id
                token.confirmed_by_role = actor.role_name
                token.confirmed_at = now
                token.design_status = DesignStatus.PENDING
                token.execution_type = execution_type
                token.planned_live_date = planned_live_date or self._today()
                if duration_months is not None:
                    token.duration_months = duration_months
                if duration_days is not None:
                    token.duration_days = duration_days

                self.hoardings.write_status(hoarding, HoardingStatus.UNDER_PROCESS, now,
                                            locked_by_token_id=token.id)
                self._emit_on_commit(ctx, DESIGN_STATUS_CHANNEL, token, DesignStatus.PENDING,
                                     designer_id=token.designer_id)

            token = self._in_token_hoarding_section(operation, token_id, deadline, confirm)
            self._log_transition(operation, token, actor, designer_id=token.designer_id)
            return ServiceResult.success(self._to_response(token), message="Token confirmed")
        except Exception as e:
            return self._handle_exception(e, operation, token_id)

    def cancel_token(
        self,
        token_id: str,
        actor: Principal,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        """Cancel an ACTIVE token while its hoarding is not locked."""
        operation = "cancel booking token"
        try:
            self._require_role(actor, APPROVER_ROLES, operation)
            now = self._now()

            def cancel(ctx: TransactionContext, token: BookingToken) -> None:
                self._check_version(token, expected_version)
                self._require_cancellable(token, now)
                self._mark_cancelled(token, actor, now, reason or "cancelled")

            token = self._in_token_section(operation, token_id, deadline, cancel)
            self._log_transition(operation, token, actor, cancel_reason=token.cancel_reason)
            return ServiceResult.success(self._to_response(token), message="Token cancelled")
        except Exception as e:
            return self._handle_exception(e, operation, token_id)

    def release_token(
        self,
        token_id: str,
        actor: Principal,
        expected_version: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        """The token's sales owner (or an approver) gives up an ACTIVE hold."""
        operation = "release booking token"
        try:
            now = self._now()

            def release(ctx: TransactionContext, token: BookingToken) -> None:
                is_owner = (
                    actor is not None
                    and actor.user_id == token.sales_user_id
                    and self.auth.has_role(actor, SALES_ROLES)
                )
                if not is_owner and not self.auth.has_role(actor, APPROVER_ROLES):
                    raise GuardViolation(
                        ErrorCode.FORBIDDEN_TRANSITION,
                        "Only the sales owner of the token or an approver can release it",
                        details={"reason": "not_token_owner"},
                    )
                self._check_version(token, expected_version)
                self._require_cancellable(token, now)
                self._mark_cancelled(token, actor, now, "released")

            token = self._in_token_section(operation, token_id, deadline, release)
            self._log_transition(operation, token, actor)
            return ServiceResult.success(self._to_response(token), message="Token released")
        except Exception as e:
            return self._handle_exception(e, operation, token_id)

    def expire_due_tokens(self, now: Optional[datetime] = None) -> ServiceResult[int]:
        """Persist EXPIRED for every ACTIVE token whose hold ended before `now`."""
        operation = "expire due booking tokens"
        try:
            moment = to_naive_utc(now) if now is not None else self._now()
            with self.tx.start():
                expired = self._expire_due(moment)
            if expired:
                self._logger.info(f"Expired {expired} booking tokens", extra={"expired_count": expired})
            return ServiceResult.success(expired)
        except Exception as e:
            return self._handle_exception(e, operation)

    # -------------------------------------------------------------------------
    # Hold extension
    # -------------------------------------------------------------------------

    def request_extension(
        self,
        token_id: str,
        actor: Principal,
        hours: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        """Sales owner of the head-of-queue token asks for a longer hold."""
        operation = "request token extension"
        try:
            hours = self._positive_int(hours, "hours") or settings.TOKEN_EXTENSION_HOURS
            now = self._now()

            def request(ctx: TransactionContext, token: BookingToken) -> None:
                if not (actor and actor.user_id == token.sales_user_id
                        and self.auth.has_role(actor, SALES_ROLES)):
                    raise GuardViolation(
                        ErrorCode.FORBIDDEN_TRANSITION,
                        "Only the sales owner of the token can request an extension",
                        details={"reason": "not_token_owner"},
                    )
                self._require_live_hold(token, now)
                if token.queue_position != 1:
                    raise GuardViolation(
                        ErrorCode.INVALID_STATE,
                        "Only the first token in the queue can be extended",
                        details={"reason": "not_queue_head", "queue_position": token.queue_position},
                    )
                if token.extension_requested_until is not None:
                    raise GuardViolation(
                        ErrorCode.INVALID_STATE,
                        "An extension request is already pending",
                        details={"reason": "extension_pending"},
                    )
                token.extension_requested_until = token.expires_at + timedelta(hours=hours)
                token.extension_requested_at = now

            token = self._in_token_section(operation, token_id, deadline, request)
            self._log_transition(operation, token, actor, requested_until=str(token.extension_requested_until))
            return ServiceResult.success(self._to_response(token), message="Extension requested")
        except Exception as e:
            return self._handle_exception(e, operation, token_id)

    def approve_extension(
        self,
        token_id: str,
        actor: Principal,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        return self._decide_extension(token_id, actor, approve=True, deadline=deadline)

    def reject_extension(
        self,
        token_id: str,
        actor: Principal,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        return self._decide_extension(token_id, actor, approve=False, deadline=deadline)

    def _decide_extension(
        self,
        token_id: str,
        actor: Principal,
        approve: bool,
        deadline: Optional[Deadline],
    ) -> ServiceResult[BookingTokenResponse]:
        operation = "approve token extension" if approve else "reject token extension"
        try:
            self._require_role(actor, APPROVER_ROLES, operation)
            now = self._now()

            def decide(ctx: TransactionContext, token: BookingToken) -> None:
                if token.extension_requested_until is None:
                    raise GuardViolation(
                        ErrorCode.INVALID_STATE,
                        "No extension request is pending",
                        details={"reason": "no_extension_pending"},
                    )
                self._require_live_hold(token, now)
                if approve:
                    token.expires_at = token.extension_requested_until
                token.extension_requested_until = None
                token.extension_requested_at = None

            token = self._in_token_section(operation, token_id, deadline, decide)
            self._log_transition(operation, token, actor, expires_at=str(token.expires_at))
            return ServiceResult.success(self._to_response(token))
        except Exception as e:
            return self._handle_exception(e, operation, token_id)

    # -------------------------------------------------------------------------
    # Design pipeline
    # -------------------------------------------------------------------------

    def set_design_status(
        self,
        token_id: str,
        actor: Principal,
        new_status: Any,
        expected_version: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        """Advance the design pipeline; only the exact assigned designer may."""
        operation = "update design status"
        try:
            target = self._parse_enum(DesignStatus, new_status, "design status")

            def advance(ctx: TransactionContext, token: BookingToken) -> None:
                if token.status != TokenStatus.CONFIRMED:
                    raise GuardViolation(
                        ErrorCode.INVALID_STATE,
                        "Design can only be updated on a confirmed token",
                        details={"reason": "not_confirmed", "token_status": token.status.value},
                    )
                if actor is None or token.designer_id is None or actor.user_id != token.designer_id:
                    raise GuardViolation(
                        ErrorCode.FORBIDDEN_TRANSITION,
                        "Only the assigned designer can update design status",
                        details={"reason": "not_assigned_designer"},
                    )
                self._check_version(token, expected_version)
                self._require_forward(DESIGN_PIPELINE, token.design_status, target)

                token.design_status = target
                self._emit_on_commit(ctx, DESIGN_STATUS_CHANNEL, token, target,
                                     designer_id=token.designer_id)

            token = self._in_token_section(operation, token_id, deadline, advance)
            self._log_transition(operation, token, actor, design_status=target.value)
            return ServiceResult.success(self._to_response(token))
        except Exception as e:
            return self._handle_exception(e, operation, token_id)

    # -------------------------------------------------------------------------
    # Installation pipeline
    # -------------------------------------------------------------------------

    def assign_fitter(
        self,
        token_id: str,
        actor: Principal,
        fitter_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        """
        Assign the installing fitter once design is COMPLETED.

        A second assignment, including the loser of a race, receives
        ALREADY_ASSIGNED with the first assigner attached as a Conflict.
        """
        operation = "assign fitter"
        try:
            self._require_role(actor, APPROVER_ROLES, operation)
            now = self._now()

            def assign(ctx: TransactionContext, token: BookingToken, hoarding: Hoarding) -> None:
                if token.status != TokenStatus.CONFIRMED:
                    raise GuardViolation(
                        ErrorCode.INVALID_STATE,
                        "A fitter can only be assigned to a confirmed token",
                        details={"reason": "not_confirmed", "token_status": token.status.value},
                    )
                if token.fitter_id is not None:
                    raise GuardViolation(
                        ErrorCode.ALREADY_ASSIGNED,
                        "A fitter is already assigned",
                        conflict=Conflict(
                            kind=ErrorCode.ALREADY_ASSIGNED,
                            token_id=token.id,
                            hoarding_id=hoarding.id,
                            winner_user_id=token.fitter_assigned_by,
                            winner_role=token.fitter_assigned_by_role,
                            winner_token_id=token.id,
                        ),
                    )
                if token.design_status != DesignStatus.COMPLETED:
                    raise GuardViolation(
                        ErrorCode.INVALID_STATE,
                        "Design must be completed before assigning a fitter",
                        details={"reason": "design_not_completed"},
                    )
                self._check_version(token, expected_version)

                token.fitter_id = self._resolve_staff(StaffRole.FITTER, fitter_id)
                token.fitter_status = FitterStatus.PENDING
                token.fitter_assigned_by = actor.user_id
                token.fitter_assigned_by_role = actor.role_name
                token.fitter_assigned_at = now
                self._emit_on_commit(ctx, FITTER_STATUS_CHANNEL, token, FitterStatus.PENDING,
                                     fitter_id=token.fitter_id)

            token = self._in_token_hoarding_section(operation, token_id, deadline, assign)
            self._log_transition(operation, token, actor, fitter_id=token.fitter_id)
            return ServiceResult.success(self._to_response(token), message="Fitter assigned")
        except Exception as e:
            return self._handle_exception(e, operation, token_id)

    def set_fitter_status(
        self,
        token_id: str,
        actor: Principal,
        new_status: Any,
        proof_refs: Optional[Iterable[str]] = None,
        expected_version: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        """
        Advance the installation pipeline; only the assigned fitter may.

        FITTED needs at least one proof reference. It records the proofs and
        moves a hoarding this token holds from under_process to live.
        """
        operation = "update fitter status"
        try:
            target = self._parse_enum(FitterStatus, new_status, "fitter status")
            refs = [str(ref).strip() for ref in (proof_refs or []) if ref is not None and str(ref).strip()]
            now = self._now()

            def advance(ctx: TransactionContext, token: BookingToken, hoarding: Optional[Hoarding] = None) -> None:
                if token.status != TokenStatus.CONFIRMED:
                    raise GuardViolation(
                        ErrorCode.INVALID_STATE,
                        "Installation can only be updated on a confirmed token",
                        details={"reason": "not_confirmed", "token_status": token.status.value},
                    )
                if actor is None or token.fitter_id is None or actor.user_id != token.fitter_id:
                    raise GuardViolation(
                        ErrorCode.FORBIDDEN_TRANSITION,
                        "Only the assigned fitter can update installation status",
                        details={"reason": "not_assigned_fitter"},
                    )
                self._check_version(token, expected_version)
                self._require_forward(FITTER_PIPELINE, token.fitter_status, target)

                if target == FitterStatus.FITTED:
                    if not refs:
                        raise GuardViolation(
                            ErrorCode.PROOF_REQUIRED,
                            "At least one installation proof is required",
                            details={"reason": "no_proof"},
                        )
                    token.installation_proof_refs = list(refs)
                    token.installed_at = now
                    if (
                        hoarding is not None
                        and hoarding.status == HoardingStatus.UNDER_PROCESS
                        and hoarding.locked_by_token_id == token.id
                    ):
                        self.hoardings.write_status(hoarding, HoardingStatus.LIVE, now,
                                                    locked_by_token_id=token.id)

                token.fitter_status = target
                self._emit_on_commit(ctx, FITTER_STATUS_CHANNEL, token, target,
                                     fitter_id=token.fitter_id)

            if target == FitterStatus.FITTED:
                token = self._in_token_hoarding_section(operation, token_id, deadline, advance)
            else:
                token = self._in_token_section(operation, token_id, deadline, advance)

            self._log_transition(operation, token, actor, fitter_status=target.value)
            return ServiceResult.success(self._to_response(token))
        except Exception as e:
            return self._handle_exception(e, operation, token_id)

    def finalize(
        self,
        token_id: str,
        actor: Principal,
        expected_version: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> ServiceResult[BookingTokenResponse]:
        """Mark the hoarding booked once installation is FITTED and it is live."""
        operation = "finalize hoarding booking"
        try:
            self._require_role(actor, FINALIZER_ROLES, operation)
            now = self._now()

            def finalize(ctx: TransactionContext, token: BookingToken, hoarding: Hoarding) -> None:
                self._check_version(token, expected_version)
                if hoarding.status == HoardingStatus.BOOKED:
                    raise GuardViolation(
                        ErrorCode.INVALID_STATE,
                        "Hoarding is already booked",
                        details={"reason": "already_booked"},
                    )
                if token.status != TokenStatus.CONFIRMED:
                    raise GuardViolation(
                        ErrorCode.INVALID_STATE,
                        "Only a confirmed token can be finalized",
                        details={"reason": "not_confirmed", "token_status": token.status.value},
                    )
                if token.fitter_status != FitterStatus.FITTED:
                    raise GuardViolation(
                        ErrorCode.NOT_READY,
                        "Installation is not fitted yet",
                        details={"reason": "not_fitted"},
                    )
                if hoarding.status != HoardingStatus.LIVE:
                    raise GuardViolation(
                        ErrorCode.NOT_READY,
                        f"Hoarding is {hoarding.status.value}, not live",
                        details={"reason": "hoarding_not_live", "hoarding_status": hoarding.status.value},
                    )

                self.hoardings.write_status(hoarding, HoardingStatus.BOOKED, now,
                                            locked_by_token_id=token.id)
                token.finalized_by = actor.user_id
                token.finalized_at = now

            token = self._in_token_hoarding_section(operation, token_id, deadline, finalize)
            self._log_transition(operation, token, actor, hoarding_status=HoardingStatus.BOOKED.value)
            return ServiceResult.success(self._to_response(token), message="Hoarding booked")
        except Exception as e:
            return self._handle_exception(e, operation, token_id)

    # -------------------------------------------------------------------------
    # Snapshot reads (lock-free)
    # -------------------------------------------------------------------------

    def get_token(self, token_id: str) -> ServiceResult[BookingTokenResponse]:
        try:
            token = self.tokens.find_by_id(token_id, refresh=True)
            if token is None:
                return ServiceResult.not_found("BookingToken", token_id)
            return ServiceResult.success(self._to_response(token))
        except Exception as e:
            return self._handle_exception(e, "get booking token", token_id)

    def list_tokens_for_hoarding(self, hoarding_id: str) -> ServiceResult[List[BookingTokenResponse]]:
        try:
            if not self.hoardings.exists(hoarding_id):
                return ServiceResult.not_found("Hoarding", hoarding_id)
            now = self._now()
            tokens = self.tokens.list_for_hoarding(hoarding_id)
            return ServiceResult.success([self._to_response(t, now) for t in tokens])
        except Exception as e:
            return self._handle_exception(e, "list hoarding tokens", hoarding_id)

    def list_my_tokens(self, actor: Principal) -> ServiceResult[List[BookingTokenResponse]]:
        try:
            now = self._now()
            tokens = self.tokens.list_for_sales_user(actor.user_id)
            return ServiceResult.success([self._to_response(t, now) for t in tokens])
        except Exception as e:
            return self._handle_exception(e, "list my tokens", actor.user_id if actor else None)

    def get_hoarding_status(self, hoarding_id: str) -> ServiceResult[HoardingStatusResponse]:
        try:
            hoarding = self.hoardings.find_by_id(hoarding_id, refresh=True)
            if hoarding is None:
                return ServiceResult.not_found("Hoarding", hoarding_id)
            return ServiceResult.success(HoardingStatusResponse.model_validate(hoarding))
        except Exception as e:
            return self._handle_exception(e, "get hoarding status", hoarding_id)

    # -------------------------------------------------------------------------
    # Critical sections
    # -------------------------------------------------------------------------

    def _in_hoarding_section(
        self,
        operation: str,
        hoarding_id: str,
        deadline: Optional[Deadline],
        work: Callable[[TransactionContext, Hoarding], T],
    ) -> T:
        """Run `work` in one transaction while holding the hoarding's lock."""
        # End any read transaction so nothing stale is held while waiting
        self.db.rollback()

        with self.locks.acquire(hoarding_id, deadline=deadline, operation=operation) as remaining:
            with self.tx.start() as ctx:
                hoarding = self.hoardings.lock_for_update(hoarding_id, remaining)
                result = work(ctx, hoarding)
                self.db.flush()
                if deadline is not None:
                    deadline.check(operation)
        return result

    def _in_token_hoarding_section(
        self,
        operation: str,
        token_id: str,
        deadline: Optional[Deadline],
        work: Callable[[TransactionContext, BookingToken, Hoarding], None],
    ) -> BookingToken:
        hoarding_id = self.tokens.find_hoarding_id(token_id)
        if hoarding_id is None:
            raise EntityNotFoundError("BookingToken", token_id)

        def locked(ctx: TransactionContext, hoarding: Hoarding) -> BookingToken:
            token = self.tokens.get_by_id(token_id, refresh=True)
            work(ctx, token, hoarding)
            return token

        return self._in_hoarding_section(operation, hoarding_id, deadline, locked)

    def _in_token_section(
        self,
        operation: str,
        token_id: str,
        deadline: Optional[Deadline],
        work: Callable[[TransactionContext, BookingToken], None],
    ) -> BookingToken:
        """Token-keyed transition guarded by the token's optimistic version."""
        if deadline is not None:
            deadline.check(operation)

        with self.tx.start() as ctx:
            token = self.tokens.get_by_id(token_id, refresh=True)
            work(ctx, token)
            self.db.flush()
            if deadline is not None:
                deadline.check(operation)
        return token

    # -------------------------------------------------------------------------
    # Guards and helpers
    # -------------------------------------------------------------------------

    def _now(self) -> datetime:
        return to_naive_utc(self._clock())

    def _today(self) -> date:
        return self._now().date()

    def _require_role(self, actor: Optional[Principal], roles: Iterable[StaffRole], action: str) -> None:
        if not self.auth.has_role(actor, roles):
            raise GuardViolation(
                ErrorCode.FORBIDDEN_TRANSITION,
                f"Role '{actor.role_name if actor else None}' is not allowed to {action}",
                details={"reason": "role_not_allowed", "required_roles": sorted(r.value for r in roles)},
            )

    def _require_live_hold(self, token: BookingToken, now: datetime) -> None:
        if token.status != TokenStatus.ACTIVE:
            raise GuardViolation(
                ErrorCode.INVALID_STATE,
                f"Token is {token.status.value}",
                details={"reason": "token_not_active", "token_status": token.status.value},
            )
        if now > token.expires_at:
            raise GuardViolation(
                ErrorCode.INVALID_STATE,
                "Token hold has expired",
                details={"reason": "hold_expired"},
            )

    def _require_cancellable(self, token: BookingToken, now: datetime) -> None:
        self._require_live_hold(token, now)
        if self.hoardings.read_status(token.hoarding_id) == HoardingStatus.UNDER_PROCESS:
            raise GuardViolation(
                ErrorCode.INVALID_STATE,
                "Hoarding is under process; the token can no longer be cancelled",
                details={"reason": "hoarding_locked"},
            )

    def _require_forward(self, pipeline, current, target) -> None:
        """Only the immediate next step of a pipeline is allowed."""
        current_index = pipeline.index(current) if current is not None else -1
        target_index = pipeline.index(target)

        if target_index == current_index + 1:
            return

        if target_index <= current_index:
            reason = "cannot_revert" if target_index == 0 else "not_forward"
            message = f"Cannot move from {current.value} to {target.value}"
        elif pipeline is FITTER_PIPELINE and target == pipeline[-1]:
            reason = "must_be_in_progress"
            message = f"Must be {pipeline[1].value} before {target.value}"
        else:
            reason = "cannot_skip"
            message = f"Cannot skip from {current.value if current else None} to {target.value}"

        raise GuardViolation(
            ErrorCode.FORBIDDEN_TRANSITION,
            message,
            details={
                "reason": reason,
                "from_status": current.value if current else None,
                "to_status": target.value,
            },
        )

    def _check_version(self, token: BookingToken, expected_version: Optional[int]) -> None:
        if expected_version is not None and token.version != expected_version:
            raise StaleStateError(token.id, expected_version, token.version)

    def _under_process_conflict(self, token: BookingToken, hoarding: Hoarding) -> GuardViolation:
        if token.status == TokenStatus.CONFIRMED:
            winner = token
        elif hoarding.locked_by_token_id:
            winner = self.tokens.find_by_id(hoarding.locked_by_token_id)
        else:
            winner = None

        return GuardViolation(
            ErrorCode.ALREADY_UNDER_PROCESS,
            f"Hoarding is already {hoarding.status.value}",
            details={"hoarding_status": hoarding.status.value},
            conflict=Conflict(
                kind=ErrorCode.ALREADY_UNDER_PROCESS,
                token_id=token.id,
                hoarding_id=hoarding.id,
                winner_user_id=winner.confirmed_by if winner else None,
                winner_role=winner.confirmed_by_role if winner else None,
                winner_token_id=winner.id if winner else None,
            ),
        )

    def _resolve_staff(self, role: StaffRole, staff_id: Optional[str]) -> str:
        """
        The explicitly chosen staff member, or the only active candidate.

        With zero or several candidates and no explicit choice the caller
        must pick one.
        """
        if staff_id:
            if self.staff.find_active_with_role(staff_id, role) is None:
                raise GuardViolation(
                    ErrorCode.VALIDATION_ERROR,
                    f"{staff_id} is not an active {role.value}",
                    details={"reason": f"unknown_{role.value}", "staff_id": staff_id},
                )
            return staff_id

        candidates = self.staff.find_active_by_role(role)
        if len(candidates) == 1:
            return candidates[0].id

        raise GuardViolation(
            ErrorCode.VALIDATION_ERROR,
            f"Select a {role.value}: {len(candidates)} candidates available",
            details={"reason": f"{role.value}_selection_required", "candidates": len(candidates)},
        )

    def _mark_cancelled(self, token: BookingToken, actor: Principal, now: datetime, reason: str) -> None:
        token.status = TokenStatus.CANCELLED
        token.cancelled_by = actor.user_id
        token.cancelled_at = now
        token.cancel_reason = reason

    def _expire_due(self, now: datetime, hoarding_id: Optional[str] = None) -> int:
        due = self.tokens.find_due_for_expiry(now, hoarding_id=hoarding_id)
        for token in due:
            token.status = TokenStatus.EXPIRED
        if due:
            self.db.flush()
        return len(due)

    def _emit_on_commit(
        self,
        ctx: TransactionContext,
        channel: str,
        token: BookingToken,
        new_status,
        **extra: Any,
    ) -> None:
        event = TokenStatusEvent(channel, token.id, token.hoarding_id, new_status.value, extra)
        ctx.on_commit(partial(self.events.publish, event))

    @staticmethod
    def _positive_int(value: Optional[Any], field: str) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, bool):
            raise GuardViolation(ErrorCode.VALIDATION_ERROR, f"{field} must be a positive integer",
                                 details={"reason": "not_positive", "field": field})
        try:
            number = int(value)
        except (TypeError, ValueError):
            number = 0
        if number <= 0 or number != value:
            raise GuardViolation(ErrorCode.VALIDATION_ERROR, f"{field} must be a positive integer",
                                 details={"reason": "not_positive", "field": field})
        return number

    @staticmethod
    def _parse_enum(enum_cls: Type[E], value: Any, field: str) -> E:
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(str(value).strip().upper())
        except ValueError:
            raise GuardViolation(
                ErrorCode.VALIDATION_ERROR,
                f"Invalid {field}: {value!r}",
                details={"reason": "invalid_status", "field": field},
            ) from None

    def _to_response(self, token: BookingToken, now: Optional[datetime] = None) -> BookingTokenResponse:
        data = {
            name: getattr(token, name)
            for name in BookingTokenResponse.model_fields
            if name != "effective_status"
        }
        data["installation_proof_refs"] = list(token.installation_proof_refs or [])
        data["effective_status"] = effective_status(token, now or self._now())
        return BookingTokenResponse.model_validate(data)

    def _log_transition(self, operation: str, token: BookingToken, actor: Optional[Principal], **extra: Any) -> None:
        context = {
            "token_id": token.id,
            "hoarding_id": token.hoarding_id,
            "token_status": token.status.value,
            "actor_id": actor.user_id if actor else None,
            "actor_role": actor.role_name if actor else None,
        }
        context.update(extra)
        self._log_operation(operation, token.id, context)
