"""
Base service class providing common functionality for all services.
"""

from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from hoarding_rental.core.exceptions import (
    BaseAppException,
    ErrorCode,
    GuardViolation,
)
from hoarding_rental.core.logging import get_logger
from hoarding_rental.services.base.service_result import (
    ErrorSeverity,
    ServiceError,
    ServiceResult,
)
from hoarding_rental.services.base.transaction_manager import TransactionManager


class BaseService:
    """
    Base service with common behaviors:
    - Shared logger and db session
    - Transaction management through TransactionManager
    - Consistent error handling via ServiceResult
    """

    def __init__(self, db_session: Session):
        """
        Initialize base service.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db: Session = db_session
        self.tx = TransactionManager(db_session)
        self._logger = get_logger(self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Exception & Error Handling
    # -------------------------------------------------------------------------

    def _handle_exception(
        self,
        exception: Exception,
        operation: str,
        entity_ref: Optional[Any] = None,
        additional_context: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        """
        Convert exception to a ServiceResult failure with logging.

        Application exceptions (guard violations, lock timeouts, missing
        entities) become typed failures carrying their own code and message.
        Anything else is logged with a traceback and reported as
        INTERNAL_ERROR.
        """
        context = {
            "operation": operation,
            "entity_ref": str(entity_ref) if entity_ref is not None else None,
            "exception_type": type(exception).__name__,
        }
        if additional_context:
            context.update(additional_context)

        if isinstance(exception, BaseAppException):
            self._logger.warning(
                f"{operation} rejected: {exception.error_code.value}: {exception.message}",
                extra=context,
            )
            return ServiceResult.failure(
                ServiceError(
                    code=exception.error_code,
                    message=exception.message,
                    severity=ErrorSeverity.WARNING,
                    details=exception.details or None,
                    conflict=getattr(exception, "conflict", None),
                )
            )

        error_code = self._map_exception_to_error_code(exception)

        if error_code == ErrorCode.STALE_VERSION:
            self._logger.warning(f"{operation} lost an optimistic version check", extra=context)
            return ServiceResult.failure(
                ServiceError(
                    code=error_code,
                    message="Token changed since it was last read",
                    severity=ErrorSeverity.WARNING,
                    details={"entity_ref": context["entity_ref"]},
                )
            )

        self._logger.error(
            f"Error during {operation}: {exception}",
            exc_info=True,
            extra=context,
        )

        return ServiceResult.failure(
            ServiceError(
                code=error_code,
                message=f"Failed to {operation}",
                severity=ErrorSeverity.CRITICAL,
                details={
                    "error": str(exception),
                    "entity_ref": context["entity_ref"],
                },
            )
        )

    def _map_exception_to_error_code(self, exception: Exception) -> ErrorCode:
        """
        Map exception types to appropriate error codes.
        """
        exception_mapping = (
            (StaleDataError, ErrorCode.STALE_VERSION),
            (SQLAlchemyError, ErrorCode.INTERNAL_ERROR),
        )

        for exc_type, error_code in exception_mapping:
            if isinstance(exception, exc_type):
                return error_code

        return ErrorCode.INTERNAL_ERROR

    def _guard(self, condition: bool, code: ErrorCode, message: str, **details: Any) -> None:
        """Raise a GuardViolation unless `condition` holds."""
        if not condition:
            raise GuardViolation(code, message, details=details or None)

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def _log_operation(
        self,
        operation: str,
        entity_ref: Optional[Any] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log a completed service operation with standardized format.
        """
        context = {"entity_ref": str(entity_ref) if entity_ref else None}
        if extra:
            context.update(extra)
        self._logger.info(f"{operation} completed", extra=context)
