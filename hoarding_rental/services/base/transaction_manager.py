"""
Transaction manager utilities for service layer operations.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hoarding_rental.core.logging import get_logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TransactionContext:
    """Context information for a transaction."""

    transaction_id: str = field(default_factory=lambda: str(uuid4()))
    started_at: datetime = field(default_factory=_utcnow)
    committed: bool = False
    rolled_back: bool = False
    completed_at: Optional[datetime] = None
    error: Optional[Exception] = None
    after_commit: List[Callable[[], None]] = field(default_factory=list)

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run `callback` once this transaction has committed."""
        self.after_commit.append(callback)

    @property
    def duration_ms(self) -> Optional[float]:
        """Get transaction duration in milliseconds."""
        if self.completed_at:
            delta = self.completed_at - self.started_at
            return delta.total_seconds() * 1000
        return None

    @property
    def is_completed(self) -> bool:
        return self.committed or self.rolled_back


class TransactionManager:
    """
    Transaction management for the service layer:
    - All-or-nothing commit with rollback on any exception
    - Per-transaction after-commit callbacks (event publication)
    - Transaction logging
    """

    def __init__(self, db_session: Session):
        self.db = db_session
        self._logger = get_logger(self.__class__.__name__)

    @contextmanager
    def start(self, auto_commit: bool = True) -> Iterator[TransactionContext]:
        """
        Start a new transaction.

        Example:
            with transaction_manager.start() as ctx:
                ...
                ctx.on_commit(lambda: event_bus.publish(event))
        """
        ctx = TransactionContext()

        self._logger.debug(
            f"Transaction started: {ctx.transaction_id}",
            extra={"transaction_id": ctx.transaction_id, "auto_commit": auto_commit},
        )

        try:
            yield ctx

            if auto_commit and not ctx.is_completed:
                self._commit(ctx)

        except Exception as exc:
            ctx.error = exc

            if not ctx.rolled_back:
                self._rollback(ctx, exc)

            raise

        finally:
            ctx.completed_at = _utcnow()
            self._logger.debug(
                f"Transaction completed: {ctx.transaction_id} "
                f"({'committed' if ctx.committed else 'rolled back'}) "
                f"in {ctx.duration_ms:.2f}ms",
                extra={
                    "transaction_id": ctx.transaction_id,
                    "committed": ctx.committed,
                    "rolled_back": ctx.rolled_back,
                    "duration_ms": ctx.duration_ms,
                }
            )

        if ctx.committed:
            self._run_after_commit(ctx)

    def _commit(self, ctx: TransactionContext) -> None:
        try:
            self.db.commit()
            ctx.committed = True
            self._logger.debug(
                f"Transaction committed: {ctx.transaction_id}",
                extra={"transaction_id": ctx.transaction_id}
            )
        except SQLAlchemyError as e:
            self._logger.error(
                f"Commit failed for transaction {ctx.transaction_id}: {e}",
                exc_info=True,
                extra={"transaction_id": ctx.transaction_id}
            )
            self._rollback(ctx, e)
            raise

    def _rollback(self, ctx: TransactionContext, exc: Exception) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            # Keep the original exception as the one that propagates
            self._logger.error(
                f"Rollback failed for transaction {ctx.transaction_id}: {e}",
                exc_info=True
            )
        ctx.rolled_back = True
        ctx.error = exc
        self._logger.debug(
            f"Transaction rolled back: {ctx.transaction_id} - {exc}",
            extra={"transaction_id": ctx.transaction_id, "error": str(exc)},
        )

    def _run_after_commit(self, ctx: TransactionContext) -> None:
        for callback in ctx.after_commit:
            try:
                callback()
            except Exception as e:
                self._logger.error(f"After-commit callback failed: {e}", exc_info=True)
