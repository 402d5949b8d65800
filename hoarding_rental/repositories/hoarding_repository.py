"""
Hoarding repository: status mirror reads/writes and the row lock that
backs the hoarding-keyed critical section.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from hoarding_rental.core.exceptions import EntityNotFoundError, LockTimeoutError
from hoarding_rental.core.logging import get_logger
from hoarding_rental.models.base import HoardingStatus
from hoarding_rental.models.hoarding import Hoarding
from hoarding_rental.repositories.base import BaseRepository

logger = get_logger(__name__)


class HoardingRepository(BaseRepository[Hoarding]):

    def __init__(self, db: Session):
        super().__init__(Hoarding, db)

    def read_status(self, hoarding_id: str) -> Optional[HoardingStatus]:
        """Snapshot read of a hoarding's status without loading the entity."""
        stmt = select(Hoarding.status).where(Hoarding.id == hoarding_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def write_status(
        self,
        hoarding: Hoarding,
        new_status: HoardingStatus,
        changed_at: datetime,
        locked_by_token_id: Optional[str] = None,
    ) -> Hoarding:
        """Update the status mirror; the caller's transaction commits it."""
        previous = hoarding.status
        hoarding.status = new_status
        hoarding.locked_by_token_id = locked_by_token_id
        hoarding.status_changed_at = changed_at
        self.db.flush()

        logger.info(
            "Hoarding status changed",
            extra={
                "hoarding_id": hoarding.id,
                "from_status": previous.value if previous else None,
                "to_status": new_status.value,
                "locked_by_token_id": locked_by_token_id,
            },
        )
        return hoarding

    def lock_for_update(self, hoarding_id: str, timeout_seconds: float) -> Hoarding:
        """
        Load a hoarding with an exclusive row lock held until commit/rollback.

        PostgreSQL waits at most `timeout_seconds` for the lock. SQLite has no
        row locks; there the in-process hoarding lock provides exclusivity.

        Raises:
            EntityNotFoundError: Unknown hoarding
            LockTimeoutError: Row lock not granted in time
        """
        dialect = self.db.get_bind().dialect.name

        try:
            if dialect == "postgresql":
                timeout_ms = max(1, int(timeout_seconds * 1000))
                self.db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))

            stmt = (
                select(Hoarding)
                .where(Hoarding.id == hoarding_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            hoarding = self.db.execute(stmt).scalar_one_or_none()
        except OperationalError as e:
            logger.warning(
                "Row lock not granted",
                extra={"hoarding_id": hoarding_id, "error": str(e.orig)},
            )
            raise LockTimeoutError(hoarding_id, timeout_seconds) from e

        if hoarding is None:
            raise EntityNotFoundError("Hoarding", hoarding_id)
        return hoarding
