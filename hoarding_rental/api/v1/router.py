"""
API v1 router: aggregates the booking token and rent endpoints.
"""

from fastapi import APIRouter

from hoarding_rental.api.v1 import booking_tokens, rent

router = APIRouter(
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Not Found"},
        409: {"description": "Conflict"},
        422: {"description": "Validation Error"},
        423: {"description": "Locked, retry"},
        504: {"description": "Deadline exceeded"},
        500: {"description": "Internal Server Error"},
    }
)

router.include_router(booking_tokens.router)
router.include_router(rent.router)
