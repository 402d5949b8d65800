"""
Translation of ServiceResult objects into HTTP responses.

Successful results are wrapped in SuccessResponse. Failures become an
ErrorResponse whose message comes from the conflict messaging policy, so
every client shows the same sentence for the same outcome.
"""

from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from hoarding_rental.core.exceptions import ErrorCode
from hoarding_rental.core.logging import get_logger
from hoarding_rental.schemas.common import ConflictInfo, ErrorResponse, SuccessResponse
from hoarding_rental.services.base import ErrorSeverity, Principal, ServiceError, ServiceResult
from hoarding_rental.services.booking_token import explain_failure

logger = get_logger(__name__)

STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.PROOF_REQUIRED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.HOARDING_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_UNDER_PROCESS: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_ASSIGNED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_READY: status.HTTP_409_CONFLICT,
    ErrorCode.STALE_VERSION: status.HTTP_409_CONFLICT,
    ErrorCode.FORBIDDEN_TRANSITION: status.HTTP_403_FORBIDDEN,
    ErrorCode.RETRYABLE_CONFLICT: status.HTTP_423_LOCKED,
    ErrorCode.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(error: ServiceError, actor: Optional[Principal] = None) -> JSONResponse:
    body = ErrorResponse(
        code=error.code.value,
        message=explain_failure(error, actor.role if actor else None),
        retryable=error.retryable,
        conflict=ConflictInfo(**error.conflict.to_dict()) if error.conflict else None,
        details=error.details,
        timestamp=error.timestamp,
    )
    http_status = STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    log = logger.error if error.severity == ErrorSeverity.CRITICAL else logger.debug
    log(
        "Service failure returned to client",
        extra={"error_code": error.code.value, "http_status": http_status},
    )
    return JSONResponse(status_code=http_status, content=jsonable_encoder(body))


def respond(
    result: ServiceResult,
    actor: Optional[Principal] = None,
    success_status: int = status.HTTP_200_OK,
) -> Any:
    """Render a ServiceResult as SuccessResponse or ErrorResponse JSON."""
    if not result.is_success:
        return error_response(result.error, actor)

    body = SuccessResponse[Any](message=result.message, data=result.data)
    return JSONResponse(status_code=success_status, content=jsonable_encoder(body))
