from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from choreograph.core.errors import AppError, DuplicateOrderError, InvalidColumnIdsError, is_unique_violation
from choreograph.logs import debug_logger, log_function
from choreograph.models.column import Column

# Phase one of a bulk reorder parks column N on -(N + offset)
REORDER_SENTINEL_OFFSET = 1000


class ColumnOrderService:
    """Allocation and re-sequencing of the per-project column ``order``.

    The allocator methods are advisory reads: they never lock, and a
    value they report as free can be taken by a concurrent request before
    the caller writes it. The ``project_order_unique`` constraint is what
    actually keeps orders unique; callers must still handle its rejection.

    ``reorder`` and ``repair_ordering`` touch many rows. Both run inside the
    session's transaction and commit once at the end, so a failure halfway
    leaves the project exactly as it was.
    """

    @staticmethod
    async def get_next_order(db: AsyncSession, project_id: int) -> int:
        """One past the highest order in the project, or 0 for an empty project"""
        query = select(func.max(Column.order)).where(Column.project_id == project_id)
        result = await db.execute(query)
        max_order = result.scalar()
        if max_order is None:
            return 0
        return max(max_order + 1, 0)

    @staticmethod
    async def is_order_available(
        db: AsyncSession,
        project_id: int,
        order: int,
        exclude_column_id: Optional[int] = None
    ) -> bool:
        """True when no column of the project holds ``order``, ignoring ``exclude_column_id``"""
        query = select(Column.id).where(
            Column.project_id == project_id,
            Column.order == order
        )
        if exclude_column_id is not None:
            query = query.where(Column.id != exclude_column_id)

        result = await db.execute(query.limit(1))
        return result.scalar() is None

    @staticmethod
    async def get_ordered_columns(db: AsyncSession, project_id: int) -> List[Column]:
        """Columns of a project by order, ties broken by id, freshly read from the database"""
        query = (
            select(Column)
            .where(Column.project_id == project_id)
            .order_by(Column.order, Column.id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def _set_order(db: AsyncSession, column_id: int, order: int, now: datetime) -> None:
        stmt = (
            update(Column)
            .where(Column.id == column_id)
            .values(order=order, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.execute(stmt)

    @staticmethod
    async def _apply_atomically(
        db: AsyncSession,
        project_id: int,
        writes: Callable[[], Awaitable[None]]
    ) -> None:
        """Run ``writes`` and commit them as one unit; any failure rolls all of them back"""
        try:
            await writes()
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            if not is_unique_violation(exc):
                raise
            suggested = await ColumnOrderService.get_next_order(db, project_id)
            raise DuplicateOrderError(suggested_order=suggested) from exc
        except Exception:
            await db.rollback()
            raise

    @staticmethod
    @log_function(expected=(AppError,))
    async def reorder(
        db: AsyncSession,
        project_id: int,
        new_orders: Sequence[Tuple[int, int]]
    ) -> List[Column]:
        """Give many columns explicit new orders at once.

        ``new_orders`` is a sequence of ``(column_id, order)`` pairs. Every id
        must belong to the project, otherwise nothing is written and
        InvalidColumnIdsError is raised. An empty sequence writes nothing
        and returns the current columns.

        Swaps such as A:0,B:1 -> A:1,B:0 would trip the unique constraint if
        written one row at a time, so every column is first moved to a
        negative sentinel, which frees all real slots at once. The requested
        orders are then written, and columns the request left out are
        appended after the highest requested order in their previous
        relative order.
        """
        existing = await ColumnOrderService.get_ordered_columns(db, project_id)
        if not new_orders:
            return existing

        existing_ids = {column.id for column in existing}

        invalid_ids = [column_id for column_id, _ in new_orders if column_id not in existing_ids]
        if invalid_ids:
            debug_logger.warning(f"Reorder of project {project_id} rejected, unknown columns: {invalid_ids}")
            raise InvalidColumnIdsError(invalid_ids)

        requested = dict(new_orders)
        now = datetime.utcnow()

        async def writes():
            # Phase 1: free every real slot
            park = (
                update(Column)
                .where(Column.project_id == project_id)
                .values(order=-(Column.order + REORDER_SENTINEL_OFFSET), updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await db.execute(park)

            # Phase 2: requested orders
            for column_id, order in new_orders:
                await ColumnOrderService._set_order(db, column_id, order, now)

            # Phase 3: columns left out of the request
            next_order = max(requested.values()) + 1
            for column in existing:
                if column.id in requested:
                    continue
                await ColumnOrderService._set_order(db, column.id, next_order, now)
                next_order += 1

        await ColumnOrderService._apply_atomically(db, project_id, writes)
        debug_logger.info(f"Columns of project {project_id} reordered: {requested}")
        return await ColumnOrderService.get_ordered_columns(db, project_id)

    @staticmethod
    @log_function(expected=(AppError,))
    async def repair_ordering(db: AsyncSession, project_id: int) -> List[Column]:
        """Rewrite the orders of a project to the dense sequence 0..N-1.

        Relative order is kept. Only columns whose order differs from their
        position are written; they are first parked below every current
        order, so the rewrite cannot collide with a column that has not been
        moved yet. Running it again on an unchanged project writes nothing.
        """
        columns = await ColumnOrderService.get_ordered_columns(db, project_id)
        misplaced = [
            (position, column)
            for position, column in enumerate(columns)
            if column.order != position
        ]
        if not misplaced:
            return columns

        floor = min(min(column.order for column in columns), 0) - 1
        now = datetime.utcnow()

        async def writes():
            for position, column in misplaced:
                await ColumnOrderService._set_order(db, column.id, floor - position, now)

            for position, column in misplaced:
                debug_logger.debug(f'Column "{column.name}" ({column.id}): order {column.order} -> {position}')
                await ColumnOrderService._set_order(db, column.id, position, now)

        await ColumnOrderService._apply_atomically(db, project_id, writes)
        debug_logger.info(f"Fixed ordering of {len(misplaced)} columns in project {project_id}")
        return await ColumnOrderService.get_ordered_columns(db, project_id)
