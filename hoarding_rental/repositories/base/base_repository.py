"""
Base repository with standardized data access operations.

Repositories never commit: the owning service's transaction decides when
work becomes durable, so a guard failure anywhere rolls everything back.
"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from hoarding_rental.core.exceptions import EntityNotFoundError
from hoarding_rental.core.logging import get_logger
from hoarding_rental.models.base import BaseModel

logger = get_logger(__name__)

# Type variable for model classes
ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository over a single model.
    """

    def __init__(self, model: Type[ModelType], db: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db

    # ==================== Create Operations ====================

    def create(self, entity: ModelType) -> ModelType:
        """Add an entity to the session and flush so its id is assigned."""
        self.db.add(entity)
        self.db.flush()
        logger.debug(f"Created {self.model.__name__} with id: {entity.id}")
        return entity

    # ==================== Read Operations ====================

    def find_by_id(self, entity_id: str, refresh: bool = False) -> Optional[ModelType]:
        """
        Find entity by primary key.

        Args:
            entity_id: Primary key
            refresh: Overwrite any identity-map copy with the committed row

        Returns:
            Entity or None
        """
        stmt = select(self.model).where(self.model.id == entity_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_id(self, entity_id: str, refresh: bool = False) -> ModelType:
        """
        Get entity by primary key.

        Raises:
            EntityNotFoundError: If no row matches
        """
        entity = self.find_by_id(entity_id, refresh=refresh)
        if entity is None:
            raise EntityNotFoundError(self.model.__name__, entity_id)
        return entity

    def find_by_criteria(
        self,
        criteria: Dict[str, Any],
        order_by: Optional[List[str]] = None,
        limit: Optional[int] = None,
    ) -> List[ModelType]:
        """
        Find entities matching criteria.

        Args:
            criteria: Filter criteria as key-value pairs; list values use IN
            order_by: Fields to order by (prefix with - for desc)
            limit: Maximum number of records

        Returns:
            List of matching entities
        """
        stmt = select(self.model)

        for key, value in criteria.items():
            column = getattr(self.model, key)
            if isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)

        for field in order_by or []:
            if field.startswith('-'):
                stmt = stmt.order_by(getattr(self.model, field[1:]).desc())
            else:
                stmt = stmt.order_by(getattr(self.model, field))

        if limit is not None:
            stmt = stmt.limit(limit)

        return list(self.db.execute(stmt).scalars().all())

    def exists(self, entity_id: str) -> bool:
        stmt = select(self.model.id).where(self.model.id == entity_id)
        return self.db.execute(stmt).first() is not None
