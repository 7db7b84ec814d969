from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime

from choreograph.db.base import Base


class User(Base):
    """Registered account; email is stored lower-cased"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
