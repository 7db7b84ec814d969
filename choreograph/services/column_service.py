from typing import List, NoReturn, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from datetime import datetime

from choreograph.core.errors import (
    COLUMN_ORDER_CONSTRAINT,
    DuplicateKeyError,
    DuplicateOrderError,
    is_unique_violation,
    violated_constraint,
)
from choreograph.logs import debug_logger
from choreograph.models.column import Column
from choreograph.models.task import Task
from choreograph.services.column_order_service import ColumnOrderService


class ColumnService:
    """CRUD operations service for Column model"""

    @staticmethod
    async def raise_write_conflict(
        db: AsyncSession,
        project_id: int,
        exc: IntegrityError,
        order: Optional[int] = None
    ) -> NoReturn:
        """Translate a column write rejected by the database into a domain conflict.

        Must be called after the session was rolled back. A violation of the
        (project_id, order) constraint means a concurrent request took the
        slot between the availability check and the write; the client gets
        a freshly computed suggestion. Any other unique violation becomes a
        generic duplicate-key conflict. Non-unique integrity errors are
        re-raised unchanged.
        """
        if not is_unique_violation(exc):
            raise exc

        if violated_constraint(exc) == COLUMN_ORDER_CONSTRAINT:
            suggested = await ColumnOrderService.get_next_order(db, project_id)
            debug_logger.warning(
                f"Order {order} in project {project_id} was taken concurrently, suggesting {suggested}"
            )
            raise DuplicateOrderError(order, suggested) from exc

        raise DuplicateKeyError() from exc

    @staticmethod
    async def create(
        db: AsyncSession,
        project_id: int,
        name: str,
        order: int
    ) -> Column:
        """Insert a column at an order the caller already picked"""
        column = Column(
            name=name,
            project_id=project_id,
            order=order
        )

        db.add(column)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            await ColumnService.raise_write_conflict(db, project_id, exc, order)

        await db.refresh(column)
        debug_logger.info(f"Column {column.id} created in project {project_id} at order {order}")
        return column

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        column_id: int
    ) -> Optional[Column]:
        query = select(Column).where(Column.id == column_id)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_in_project(
        db: AsyncSession,
        project_id: int,
        column_id: int
    ) -> Optional[Column]:
        """Column by id, only if it belongs to the given project"""
        query = select(Column).where(
            Column.id == column_id,
            Column.project_id == project_id
        ).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_by_project_id(
        db: AsyncSession,
        project_id: int
    ) -> List[Column]:
        """Get all columns of a project sorted by order"""
        return await ColumnOrderService.get_ordered_columns(db, project_id)

    @staticmethod
    async def find_by_name(
        db: AsyncSession,
        project_id: int,
        name: str,
        exclude_column_id: Optional[int] = None
    ) -> Optional[Column]:
        """Case-insensitive exact name lookup within a project"""
        query = select(Column).where(
            Column.project_id == project_id,
            func.lower(Column.name) == name.strip().lower()
        )
        if exclude_column_id is not None:
            query = query.where(Column.id != exclude_column_id)

        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def update(
        db: AsyncSession,
        project_id: int,
        column_id: int,
        name: Optional[str] = None,
        order: Optional[int] = None
    ) -> Optional[Column]:
        """Update a column's name and/or order"""
        update_data = {}
        if name is not None:
            update_data["name"] = name
        if order is not None:
            update_data["order"] = order

        if not update_data:
            return await ColumnService.get_in_project(db, project_id, column_id)

        update_data["updated_at"] = datetime.utcnow()

        stmt = update(Column).where(
            Column.id == column_id,
            Column.project_id == project_id
        ).values(**update_data).execution_options(synchronize_session=False)

        try:
            await db.execute(stmt)
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            await ColumnService.raise_write_conflict(db, project_id, exc, order)

        return await ColumnService.get_in_project(db, project_id, column_id)

    @staticmethod
    async def delete(
        db: AsyncSession,
        project_id: int,
        column_id: int
    ) -> bool:
        """Delete a column; its tasks stay in the project without a column"""
        await db.execute(
            update(Task).where(
                Task.column_id == column_id,
                Task.project_id == project_id
            ).values(column_id=None)
        )
        stmt = delete(Column).where(
            Column.id == column_id,
            Column.project_id == project_id
        )
        result = await db.execute(stmt)
        await db.commit()
        return result.rowcount > 0
