"""
Staff directory repository.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from hoarding_rental.models.base import StaffRole
from hoarding_rental.models.staff_member import StaffMember
from hoarding_rental.repositories.base import BaseRepository


class StaffRepository(BaseRepository[StaffMember]):

    def __init__(self, db: Session):
        super().__init__(StaffMember, db)

    def find_active_by_role(self, role: StaffRole) -> List[StaffMember]:
        stmt = (
            select(StaffMember)
            .where(StaffMember.role == role, StaffMember.is_active.is_(True))
            .order_by(StaffMember.name, StaffMember.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_active_with_role(self, staff_id: str, role: StaffRole) -> Optional[StaffMember]:
        stmt = select(StaffMember).where(
            StaffMember.id == staff_id,
            StaffMember.role == role,
            StaffMember.is_active.is_(True),
        )
        return self.db.execute(stmt).scalar_one_or_none()
