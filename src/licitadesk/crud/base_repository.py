"""
Base CRUD with generic operations inherited by the table repositories.

Repositories never commit by default: the service method that owns the
unit of work commits (see core.decorators.transactional_database_operation).
"""
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseCRUD(Generic[ModelType]):
    """
    Generic repository.

    Usage:
        class TicketCRUD(BaseCRUD[Ticket]):
            model = Ticket
    """

    model: Type[ModelType] = None

    @classmethod
    def _apply_filters(cls, stmt, filters: Optional[Dict[str, Any]]):
        if filters:
            for field, value in filters.items():
                stmt = stmt.where(getattr(cls.model, field) == value)
        return stmt

    @classmethod
    async def find_by_id(
        cls,
        db: AsyncSession,
        id_value: Any,
        *,
        for_update: bool = False,
    ) -> Optional[ModelType]:
        """
        Find a single record by primary key.

        ``for_update`` takes a row lock on PostgreSQL; SQLite ignores it and
        serializes writers at the database level.
        """
        stmt = select(cls.model).where(cls.model.id == id_value)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @classmethod
    async def find_one(
        cls,
        db: AsyncSession,
        *,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Optional[ModelType]:
        stmt = cls._apply_filters(select(cls.model), filters)
        result = await db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    @classmethod
    async def find_all(
        cls,
        db: AsyncSession,
        *,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[Any] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[ModelType]:
        """
        Find all records matching equality filters.

        Args:
            db: Database session
            filters: Dictionary of field:value filters
            order_by: Column (or list of columns) to order by
            limit: Maximum number of records
            offset: Number of records to skip
        """
        stmt = cls._apply_filters(select(cls.model), filters)

        if order_by is not None:
            if isinstance(order_by, (list, tuple)):
                stmt = stmt.order_by(*order_by)
            else:
                stmt = stmt.order_by(order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @classmethod
    async def count(
        cls,
        db: AsyncSession,
        *,
        filters: Optional[Dict[str, Any]] = None,
    ) -> int:
        stmt = cls._apply_filters(select(func.count()).select_from(cls.model), filters)
        result = await db.execute(stmt)
        return int(result.scalar() or 0)

    @classmethod
    async def create(
        cls,
        db: AsyncSession,
        *,
        obj_in: Dict[str, Any],
        flush: bool = True,
    ) -> ModelType:
        """Add a new record to the session; flushed so generated values are available."""
        db_obj = cls.model(**obj_in)
        db.add(db_obj)
        if flush:
            await db.flush()
        return db_obj

    @classmethod
    async def delete(cls, db: AsyncSession, db_obj: ModelType) -> None:
        await db.delete(db_obj)
        await db.flush()
