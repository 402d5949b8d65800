from hoarding_rental.services.booking_token.booking_token_service import (
    BookingTokenService,
    effective_status,
)
from hoarding_rental.services.booking_token.confirmation_arbitration import (
    Deadline,
    HoardingLockManager,
    InProcessLockBackend,
    RedisLockBackend,
    build_lock_manager,
    get_lock_manager,
)
from hoarding_rental.services.booking_token.conflict_messaging import (
    explain_conflict,
    explain_failure,
)

__all__ = [
    "BookingTokenService",
    "effective_status",
    "Deadline",
    "HoardingLockManager",
    "InProcessLockBackend",
    "RedisLockBackend",
    "build_lock_manager",
    "get_lock_manager",
    "explain_conflict",
    "explain_failure",
]
