"""
Base repository class providing common database operations.
"""
from abc import ABC
from typing import TypeVar, Generic, Optional, Type
from sqlalchemy.orm import Session, Query
from database import Base

# Generic type for model classes
ModelType = TypeVar('ModelType', bound=Base)


class BaseRepository(Generic[ModelType], ABC):
    """Abstract base class for repository pattern implementation."""

    def __init__(self, model_class: Type[ModelType]):
        """
        Initialize repository with model class.

        Args:
            model_class: SQLAlchemy model class
        """
        self.model_class = model_class

    def _filtered(self, session: Session, **filters) -> Query:
        """Build a query matching every known column in filters."""
        query = session.query(self.model_class)
        for key, value in filters.items():
            if hasattr(self.model_class, key):
                query = query.filter(getattr(self.model_class, key) == value)
        return query

    def get_by_id(self, session: Session, id: int) -> Optional[ModelType]:
        """
        Get entity by primary key.

        Args:
            session: Database session
            id: Entity ID

        Returns:
            Entity instance or None if not found
        """
        return session.get(self.model_class, id)

    def create(self, session: Session, **kwargs) -> ModelType:
        """
        Create new entity and flush it so generated keys are available.

        Args:
            session: Database session
            **kwargs: Entity attributes

        Returns:
            Created entity instance
        """
        entity = self.model_class(**kwargs)
        session.add(entity)
        session.flush()
        return entity

    def update(self, session: Session, entity: ModelType, **kwargs) -> ModelType:
        """
        Update existing entity.

        Args:
            session: Database session
            entity: Entity instance to update
            **kwargs: Attributes to update

        Returns:
            Updated entity instance
        """
        for key, value in kwargs.items():
            if hasattr(entity, key):
                setattr(entity, key, value)

        session.flush()
        return entity

    def find_one_by(self, session: Session, **filters) -> Optional[ModelType]:
        """Find the first entity matching the filters."""
        return self._filtered(session, **filters).first()
