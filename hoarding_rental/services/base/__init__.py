"""
Service layer building blocks.
"""

from hoarding_rental.services.base.authorization_service import (
    APPROVER_ROLES,
    FINALIZER_ROLES,
    SALES_ROLES,
    AuthorizationService,
    Principal,
    authorization_service,
    normalize_role,
)
from hoarding_rental.services.base.base_service import BaseService
from hoarding_rental.services.base.service_result import (
    Conflict,
    ErrorCode,
    ErrorSeverity,
    ServiceError,
    ServiceResult,
)
from hoarding_rental.services.base.transaction_manager import TransactionContext, TransactionManager

__all__ = [
    "APPROVER_ROLES",
    "FINALIZER_ROLES",
    "SALES_ROLES",
    "AuthorizationService",
    "Principal",
    "authorization_service",
    "normalize_role",
    "BaseService",
    "Conflict",
    "ErrorCode",
    "ErrorSeverity",
    "ServiceError",
    "ServiceResult",
    "TransactionContext",
    "TransactionManager",
]
