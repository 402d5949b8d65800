"""
Staff directory used for designer and fitter selection.
"""

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from hoarding_rental.models.base import StaffRole, TimestampModel

__all__ = ["StaffMember"]


class StaffMember(TimestampModel):
    """A user of the system with a single role."""

    __tablename__ = "staff_members"

    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="Display name",
    )

    role: Mapped[StaffRole] = mapped_column(
        Enum(StaffRole),
        nullable=False,
        index=True,
        comment="Role used by the role authority",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
    )
