"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Common functionality for all repositories:
- Error handling wrappers
- Common query operations
- Logging setup

Sessions are injected via the constructor; repositories flush but
never commit on their own. Transaction boundaries belong to the
caller.

============================================================
"""

import logging
from abc import ABC
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    DatabaseConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    TransactionError,
)


T = TypeVar("T", bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for all repositories.

    ============================================================
    USAGE
    ============================================================
    class MyRepository(BaseRepository[MyModel]):
        def __init__(self, session: Session):
            super().__init__(session, MyModel, "MyRepository")

    ============================================================
    """

    def __init__(
        self,
        session: Session,
        model_class: Type[T],
        repository_name: str
    ) -> None:
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy session (injected)
            model_class: The ORM model class this repository manages
            repository_name: Name for logging and error messages
        """
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def model_class(self) -> Type[T]:
        return self._model_class

    @property
    def repository_name(self) -> str:
        return self._repository_name

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _handle_db_error(
        self,
        error: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> None:
        """
        Wrap a SQLAlchemy error in the matching repository exception.

        Args:
            error: The original exception
            operation: Name of the operation that failed
            context: Additional context; "field"/"value" name the
                unique key for duplicate errors

        Raises:
            RepositoryException: Always
        """
        context = context or {}

        if isinstance(error, SQLAlchemyIntegrityError):
            error_str = str(error).lower()
            if "duplicate" in error_str or "unique" in error_str:
                self._logger.debug(f"Unique violation in {operation}: {context}")
                raise DuplicateRecordError(
                    repository_name=self._repository_name,
                    constraint_field=context.get("field", "unknown"),
                    value=context.get("value", "unknown")
                ) from error

            self._logger.error(f"Integrity error in {operation}: {error}")
            raise IntegrityError(
                repository_name=self._repository_name,
                operation=operation,
                constraint_name="unknown",
                message=str(error)
            ) from error

        self._logger.error(
            f"Database error in {operation}: {error}",
            extra={"context": context},
            exc_info=True
        )

        if isinstance(error, OperationalError):
            raise DatabaseConnectionError(
                repository_name=self._repository_name,
                operation=operation,
                original_error=str(error)
            ) from error

        raise QueryError(
            repository_name=self._repository_name,
            operation=operation,
            query_description=operation,
            original_error=str(error)
        ) from error

    def _add(self, entity: T, context: Optional[dict] = None) -> T:
        """
        Add an entity to the session and flush it.

        Args:
            entity: The entity to add
            context: Error context passed to _handle_db_error

        Returns:
            The added entity
        """
        try:
            self._session.add(entity)
            self._session.flush()
            self._logger.debug(f"Added entity: {entity}")
            return entity
        except SQLAlchemyError as e:
            self._handle_db_error(e, "add", context or {"entity": str(entity)})
            raise  # Never reached, but satisfies type checker

    def _count(self) -> int:
        try:
            stmt = select(func.count()).select_from(self._model_class)
            return self._session.execute(stmt).scalar() or 0
        except SQLAlchemyError as e:
            self._handle_db_error(e, "count")
            raise

    def _execute_query(self, stmt: Any) -> List[T]:
        """
        Execute a select statement and return results.

        Args:
            stmt: SQLAlchemy select statement

        Returns:
            List of entities
        """
        try:
            result = self._session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query")
            raise

    def _execute_scalar(self, stmt: Any) -> Optional[Any]:
        """
        Execute a select statement and return a single result.

        Args:
            stmt: SQLAlchemy select statement

        Returns:
            Single entity/value or None
        """
        try:
            result = self._session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query_scalar")
            raise

    def _commit(self) -> None:
        """
        Commit the current transaction.

        Raises:
            TransactionError: If commit fails
        """
        try:
            self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            raise TransactionError(
                repository_name=self._repository_name,
                operation="commit",
                phase="commit",
                original_error=str(e)
            ) from e

    def _rollback(self) -> None:
        try:
            self._session.rollback()
        except SQLAlchemyError as e:
            self._logger.error(f"Rollback failed: {e}")
            raise TransactionError(
                repository_name=self._repository_name,
                operation="rollback",
                phase="rollback",
                original_error=str(e)
            ) from e
