"""
Base schema classes and standard API response wrappers.
"""

from datetime import datetime
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

__all__ = [
    "BaseSchema",
    "BaseCreateSchema",
    "SuccessResponse",
    "ConflictInfo",
    "ErrorResponse",
]


class BaseSchema(BaseModel):
    """
    Base schema with common Pydantic configuration.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=False,
        str_strip_whitespace=True,
        validate_assignment=True,
    )


class BaseCreateSchema(BaseSchema):
    """Base schema for request bodies; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class SuccessResponse(BaseSchema, Generic[T]):
    """Standard success response."""

    success: bool = Field(default=True, description="Success flag")
    message: Optional[str] = Field(default=None, description="Response message")
    data: Union[T, None] = Field(default=None, description="Response data")


class ConflictInfo(BaseSchema):
    """Who won a race on a hoarding."""

    kind: str
    token_id: Optional[str] = None
    hoarding_id: Optional[str] = None
    winner_user_id: Optional[str] = None
    winner_role: Optional[str] = None
    winner_token_id: Optional[str] = None


class ErrorResponse(BaseSchema):
    """Standard error response."""

    success: bool = Field(default=False, description="Success flag")
    code: str = Field(..., description="Application error code")
    message: str = Field(..., description="Explanation for the caller")
    retryable: bool = Field(default=False, description="Whether the same request may simply be retried")
    conflict: Optional[ConflictInfo] = Field(default=None, description="Race outcome, when one was lost")
    details: Optional[Dict[str, Any]] = None
    timestamp: Optional[datetime] = None
