from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError

from choreograph.core.errors import DuplicateEmailError, is_unique_violation
from choreograph.models.user import User
from choreograph.services.security_service import SecurityService


class UserService:
    """CRUD operations service for User model"""

    @staticmethod
    async def create(
        db: AsyncSession,
        email: str,
        name: str,
        password: str
    ) -> User:
        """Create a new user; a concurrent signup with the same email is a conflict"""
        user = User(
            email=email.lower(),
            name=name.strip(),
            hashed_password=SecurityService.create_password_hash(password)
        )

        db.add(user)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            if not is_unique_violation(exc):
                raise
            raise DuplicateEmailError() from exc

        await db.refresh(user)
        return user

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        user_id: int
    ) -> Optional[User]:
        query = select(User).where(User.id == user_id)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_by_email(
        db: AsyncSession,
        email: str
    ) -> Optional[User]:
        query = select(User).where(User.email == email.lower())
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def search(
        db: AsyncSession,
        text: str,
        exclude_user_id: Optional[int] = None,
        limit: int = 10
    ) -> List[User]:
        """Case-insensitive substring search over name and email"""
        pattern = f"%{text.lower()}%"
        query = select(User).where(
            or_(User.email.ilike(pattern), User.name.ilike(pattern))
        )
        if exclude_user_id is not None:
            query = query.where(User.id != exclude_user_id)
        result = await db.execute(query.order_by(User.name).limit(limit))
        return list(result.scalars().all())

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: int,
        name: Optional[str] = None
    ) -> Optional[User]:
        if name is None:
            return await UserService.get_by_id(db, user_id)

        stmt = update(User).where(User.id == user_id).values(name=name.strip())
        await db.execute(stmt)
        await db.commit()

        query = select(User).where(User.id == user_id).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalars().first()
