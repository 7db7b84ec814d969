from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from datetime import datetime

from choreograph.logs import debug_logger
from choreograph.models.task import Task, TaskPriority


class TaskService:
    """CRUD operations service for Task model"""

    @staticmethod
    async def get_next_order(
        db: AsyncSession,
        project_id: int,
        column_id: Optional[int]
    ) -> int:
        """Position after the last task of the column (or of the unplaced tasks)"""
        query = select(func.max(Task.order)).where(Task.project_id == project_id)
        if column_id is None:
            query = query.where(Task.column_id.is_(None))
        else:
            query = query.where(Task.column_id == column_id)
        result = await db.execute(query)
        max_order = result.scalar()
        return 0 if max_order is None else max_order + 1

    @staticmethod
    async def create(
        db: AsyncSession,
        project_id: int,
        title: str,
        description: Optional[str] = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        column_id: Optional[int] = None,
        assignee_id: Optional[int] = None,
        order: Optional[int] = None,
        deadline: Optional[datetime] = None
    ) -> Task:
        if order is None:
            order = await TaskService.get_next_order(db, project_id, column_id)

        task = Task(
            project_id=project_id,
            title=title.strip(),
            description=description,
            priority=priority,
            column_id=column_id,
            assignee_id=assignee_id,
            order=order,
            deadline=deadline
        )

        db.add(task)
        await db.commit()
        await db.refresh(task)
        debug_logger.info(f"Task {task.id} created in project {project_id}, column {column_id}")
        return task

    @staticmethod
    async def get_by_project_id(
        db: AsyncSession,
        project_id: int,
        column_id: Optional[int] = None
    ) -> List[Task]:
        """Tasks of a project by order then creation time, optionally of one column"""
        query = select(Task).where(Task.project_id == project_id)
        if column_id is not None:
            query = query.where(Task.column_id == column_id)
        query = query.order_by(Task.order, Task.created_at, Task.id)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_in_project(
        db: AsyncSession,
        project_id: int,
        task_id: int
    ) -> Optional[Task]:
        query = select(Task).where(
            Task.id == task_id,
            Task.project_id == project_id
        ).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def update(
        db: AsyncSession,
        project_id: int,
        task_id: int,
        update_data: Dict[str, Any]
    ) -> Optional[Task]:
        """Apply the given fields; None values are written, so they clear nullable fields"""
        if not update_data:
            return await TaskService.get_in_project(db, project_id, task_id)

        debug_logger.debug(f"Updating task {task_id}: {update_data}")
        values = dict(update_data, updated_at=datetime.utcnow())

        stmt = update(Task).where(
            Task.id == task_id,
            Task.project_id == project_id
        ).values(**values).execution_options(synchronize_session=False)
        await db.execute(stmt)
        await db.commit()

        return await TaskService.get_in_project(db, project_id, task_id)

    @staticmethod
    async def delete(
        db: AsyncSession,
        project_id: int,
        task_id: int
    ) -> bool:
        stmt = delete(Task).where(
            Task.id == task_id,
            Task.project_id == project_id
        )
        result = await db.execute(stmt)
        await db.commit()
        return result.rowcount > 0

    @staticmethod
    async def set_assignee(
        db: AsyncSession,
        project_id: int,
        task_id: int,
        assignee_id: Optional[int]
    ) -> Optional[Task]:
        """Assign a task to a user, or unassign it with ``None``"""
        return await TaskService.update(db, project_id, task_id, {"assignee_id": assignee_id})
