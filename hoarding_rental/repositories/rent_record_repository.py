"""
Rent record repository.
"""

from typing import List

from sqlalchemy.orm import Session

from hoarding_rental.models.rent_record import RentRecord
from hoarding_rental.repositories.base import BaseRepository


class RentRecordRepository(BaseRepository[RentRecord]):

    def __init__(self, db: Session):
        super().__init__(RentRecord, db)

    def find_by_hoarding(self, hoarding_id: str) -> List[RentRecord]:
        return self.find_by_criteria({"hoarding_id": hoarding_id}, order_by=["rent_start_date"])
