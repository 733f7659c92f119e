# backend/fitstudio/repositories/base_repository.py
"""
Base Repository Pattern for FitStudio

Provides the foundation for all repository classes with:
- Lookup, create and flush
- Type safety with generics
- Tenant scoping
- Transaction support (managed by services)

Repositories never commit. They flush so generated ids and constraint
violations surface inside the service's transaction.
"""

from abc import ABC, abstractmethod
import logging
from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import IntegrityViolation, RepositoryException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class IRepository(ABC, Generic[T]):
    """
    Abstract repository interface defining core data access methods.
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key."""

    @abstractmethod
    def create(self, **kwargs) -> T:
        """
        Create a new entity.

        Raises:
            RepositoryException: If creation fails
        """

    @abstractmethod
    def get_for_tenant(self, id: str, tenant_id: str) -> Optional[T]:
        """Retrieve an entity scoped to a tenant."""


class BaseRepository(IRepository[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def _query(self) -> Query:
        return self.db.query(self.model)

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self._query().filter(self.model.id == id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def get_for_tenant(self, id: str, tenant_id: str) -> Optional[T]:
        """
        Retrieve an entity only if it belongs to ``tenant_id``.

        Rows of other tenants are indistinguishable from missing rows.
        """
        try:
            return (
                self._query()
                .filter(self.model.id == id, self.model.tenant_id == tenant_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID and constraint errors without committing
            return entity
        except IntegrityError as exc:
            self.logger.warning("Integrity error creating %s: %s", self.model.__name__, exc)
            self.db.rollback()
            raise IntegrityViolation(f"Integrity constraint violated: {exc.orig}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def flush(self) -> None:
        """Flush pending ORM changes."""
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise IntegrityViolation(f"Integrity constraint violated: {exc.orig}") from exc
