from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, or_, exists
from sqlalchemy.orm import selectinload
from sqlalchemy.exc import IntegrityError
from datetime import datetime

from choreograph.core.errors import is_unique_violation
from choreograph.logs import debug_logger
from choreograph.models.project import Project, ProjectRole, project_members
from choreograph.models.column import Column
from choreograph.models.task import Task
from choreograph.models.user import User


class ProjectService:
    """CRUD and membership operations for Project model"""

    @staticmethod
    async def create(
        db: AsyncSession,
        name: str,
        owner_id: int,
        description: Optional[str] = None
    ) -> Project:
        """Create a project; the owner becomes its first member"""
        project = Project(
            name=name.strip(),
            description=description,
            owner_id=owner_id
        )
        db.add(project)
        await db.flush()

        stmt = project_members.insert().values(
            user_id=owner_id,
            project_id=project.id
        )
        await db.execute(stmt)

        await db.commit()
        await db.refresh(project)
        debug_logger.info(f"Project {project.id} created by user {owner_id}")
        return project

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        project_id: int,
        load_members: bool = False
    ) -> Optional[Project]:
        query = select(Project).where(Project.id == project_id)

        if load_members:
            query = query.options(selectinload(Project.members))

        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_projects_by_user(
        db: AsyncSession,
        user_id: int
    ) -> List[Project]:
        """Projects the user owns or is a member of, newest first"""
        is_member = exists().where(
            project_members.c.project_id == Project.id,
            project_members.c.user_id == user_id
        )
        query = select(Project).where(
            or_(Project.owner_id == user_id, is_member)
        ).order_by(Project.created_at.desc(), Project.id.desc())

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def update(
        db: AsyncSession,
        project_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None
    ) -> Optional[Project]:
        update_data = {}
        if name is not None:
            update_data["name"] = name.strip()
        if description is not None:
            update_data["description"] = description

        if not update_data:
            return await ProjectService.get_by_id(db, project_id)

        update_data["updated_at"] = datetime.utcnow()

        stmt = update(Project).where(Project.id == project_id).values(**update_data)
        await db.execute(stmt)
        await db.commit()

        query = select(Project).where(Project.id == project_id).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def delete(
        db: AsyncSession,
        project_id: int
    ) -> bool:
        """Delete a project together with its tasks, columns and memberships"""
        await db.execute(delete(Task).where(Task.project_id == project_id))
        await db.execute(delete(Column).where(Column.project_id == project_id))
        await db.execute(delete(project_members).where(project_members.c.project_id == project_id))
        result = await db.execute(delete(Project).where(Project.id == project_id))
        await db.commit()
        return result.rowcount > 0

    @staticmethod
    async def is_member(
        db: AsyncSession,
        project_id: int,
        user_id: int
    ) -> bool:
        query = select(project_members.c.user_id).where(
            project_members.c.project_id == project_id,
            project_members.c.user_id == user_id
        )
        result = await db.execute(query)
        return result.first() is not None

    @staticmethod
    async def get_user_role(
        db: AsyncSession,
        project: Project,
        user_id: int
    ) -> Optional[ProjectRole]:
        """Role of a user in a project, or None when the user has no access"""
        if project.owner_id == user_id:
            return ProjectRole.OWNER
        if await ProjectService.is_member(db, project.id, user_id):
            return ProjectRole.MEMBER
        return None

    @staticmethod
    async def get_members(
        db: AsyncSession,
        project: Project
    ) -> List[User]:
        """Owner and members of a project, owner included even if not listed"""
        member_ids = select(project_members.c.user_id).where(
            project_members.c.project_id == project.id
        )
        query = select(User).where(
            or_(User.id == project.owner_id, User.id.in_(member_ids))
        ).order_by(User.id)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def add_member(
        db: AsyncSession,
        project_id: int,
        user_id: int
    ) -> bool:
        """Add a member; returns False when the user already is one"""
        if await ProjectService.is_member(db, project_id, user_id):
            return False

        stmt = project_members.insert().values(user_id=user_id, project_id=project_id)
        try:
            await db.execute(stmt)
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            if not is_unique_violation(exc):
                raise
            debug_logger.warning(f"User {user_id} was added to project {project_id} concurrently")
            return False
        return True

    @staticmethod
    async def remove_member(
        db: AsyncSession,
        project_id: int,
        user_id: int
    ) -> bool:
        stmt = delete(project_members).where(
            project_members.c.user_id == user_id,
            project_members.c.project_id == project_id
        )
        result = await db.execute(stmt)
        await db.commit()
        return result.rowcount > 0
