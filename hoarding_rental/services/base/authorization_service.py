"""
Role authority for role-based access control.

The booking core only ever asks one question: does this actor hold one of
the roles a transition requires? What a role *means* is decided elsewhere.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from hoarding_rental.core.logging import get_logger
from hoarding_rental.models.base import StaffRole

logger = get_logger(__name__)

RoleLike = Union[StaffRole, str]

# Role sets used by the booking lifecycle
APPROVER_ROLES = frozenset({StaffRole.OWNER, StaffRole.MANAGER, StaffRole.ADMIN})
FINALIZER_ROLES = frozenset({StaffRole.OWNER, StaffRole.MANAGER, StaffRole.SALES, StaffRole.ADMIN})
SALES_ROLES = frozenset({StaffRole.SALES})


def normalize_role(value: Optional[RoleLike]) -> Optional[StaffRole]:
    """Map a role name (any case, surrounding blanks ignored) to a StaffRole."""
    if value is None:
        return None
    if isinstance(value, StaffRole):
        return value
    try:
        return StaffRole(str(value).strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of a service operation."""

    user_id: str
    role: Optional[StaffRole]

    @classmethod
    def of(cls, user_id: str, role: Optional[RoleLike]) -> "Principal":
        return cls(user_id=str(user_id), role=normalize_role(role))

    @property
    def role_name(self) -> Optional[str]:
        return self.role.value if self.role else None


class AuthorizationService:
    """
    Answers `has_role(actor, required_roles)`.

    `admin` satisfies any requirement that names `owner`.
    """

    def has_role(self, actor: Optional[Principal], required_roles: Iterable[RoleLike]) -> bool:
        if actor is None or actor.role is None:
            return False

        required = {normalize_role(r) for r in required_roles}
        required.discard(None)

        granted = actor.role in required or (
            actor.role == StaffRole.ADMIN and StaffRole.OWNER in required
        )

        if not granted:
            logger.debug(
                "Role check denied",
                extra={
                    "actor_id": actor.user_id,
                    "actor_role": actor.role_name,
                    "required_roles": sorted(r.value for r in required),
                },
            )
        return granted


authorization_service = AuthorizationService()
