"""Database initialization utilities."""
from typing import Optional

from sqlalchemy.engine import Engine

from hoarding_rental.core.logging import get_logger
from hoarding_rental.db.base import Base, import_models

logger = get_logger(__name__)


def init_db(bind: Optional[Engine] = None) -> None:
    """
    Create all tables that do not exist yet.

    Suitable for development and tests; deployments manage the schema with
    migrations.
    """
    if bind is None:
        from hoarding_rental.db.session import engine as bind

    import_models()
    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ensured", extra={"table_count": len(Base.metadata.tables)})


def drop_db(bind: Optional[Engine] = None) -> None:
    """
    Drop all database tables.

    WARNING: This will delete all data! Only for development/testing purposes.
    """
    if bind is None:
        from hoarding_rental.db.session import engine as bind

    Base.metadata.drop_all(bind=bind)
    logger.warning("All database tables dropped")
