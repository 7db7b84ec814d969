from datetime import datetime
from typing import Optional, Dict, Any
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
import uuid

from choreograph.models.user import User
from choreograph.models.refresh_token import RefreshToken
from choreograph.core import get_settings
from choreograph.logs import debug_logger

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class SecurityService:
    """Password hashing, JWT issuing and refresh token bookkeeping"""

    @staticmethod
    def create_password_hash(password: str) -> str:
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        query = select(User).where(User.email == email.lower())
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        query = select(User).where(User.id == user_id)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def authenticate_user(
        db: AsyncSession,
        email: str,
        password: str
    ) -> Optional[User]:
        """Return the user when the email and password match, otherwise None"""
        user = await SecurityService.get_user_by_email(db, email)
        if not user:
            return None

        if not SecurityService.verify_password(password, user.hashed_password):
            return None

        return user

    @staticmethod
    def _encode(data: Dict[str, Any], token_type: str, expire: datetime) -> str:
        to_encode = data.copy()
        to_encode.update({"exp": expire, "type": token_type})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def create_access_token(user_id: int) -> str:
        expire = datetime.utcnow() + settings.access_token_ttl
        return SecurityService._encode({"sub": str(user_id)}, "access", expire)

    @staticmethod
    def create_refresh_token(user_id: int) -> str:
        # jti keeps two tokens issued in the same second distinct
        expire = datetime.utcnow() + settings.refresh_token_ttl
        data = {"sub": str(user_id), "jti": str(uuid.uuid4())}
        return SecurityService._encode(data, "refresh", expire)

    @staticmethod
    def verify_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
        """Decode a JWT and return its payload if it is valid and of the expected type"""
        try:
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM]
            )
        except JWTError:
            return None

        if payload.get("type") != token_type:
            return None
        if payload.get("sub") is None:
            return None
        return payload

    @staticmethod
    async def issue_tokens(db: AsyncSession, user: User) -> Dict[str, str]:
        """Create an access/refresh pair and record the refresh token"""
        access_token = SecurityService.create_access_token(user.id)
        refresh_token = SecurityService.create_refresh_token(user.id)

        db.add(RefreshToken(
            user_id=user.id,
            token=refresh_token,
            expires_at=datetime.utcnow() + settings.refresh_token_ttl,
        ))
        await db.commit()

        return {"access_token": access_token, "refresh_token": refresh_token}

    @staticmethod
    async def get_current_user(db: AsyncSession, token: str) -> Optional[User]:
        payload = SecurityService.verify_token(token)
        if not payload:
            return None
        return await SecurityService.get_user_by_id(db, int(payload["sub"]))

    @staticmethod
    async def refresh_access_token(db: AsyncSession, refresh_token: str) -> Optional[str]:
        """Issue a new access token for a stored, unrevoked, unexpired refresh token"""
        query = select(RefreshToken).where(
            RefreshToken.token == refresh_token,
            RefreshToken.revoked.is_(False),
            RefreshToken.expires_at > datetime.utcnow(),
        )
        result = await db.execute(query)
        record = result.scalars().first()
        if not record:
            debug_logger.debug("Refresh rejected: token unknown, revoked or expired")
            return None

        payload = SecurityService.verify_token(refresh_token, token_type="refresh")
        if not payload:
            return None

        return SecurityService.create_access_token(int(payload["sub"]))

    @staticmethod
    async def revoke_user_tokens(db: AsyncSession, user_id: int) -> int:
        """Revoke every active refresh token of a user; returns how many were revoked"""
        stmt = update(RefreshToken).where(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked.is_(False),
        ).values(revoked=True)
        result = await db.execute(stmt)
        await db.commit()
        return result.rowcount
