from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from choreograph.db.base import Base


class Column(Base):
    """Ordered bucket of tasks inside a project"""

    __tablename__ = "columns"
    __table_args__ = (
        # The only cross-row invariant with real enforcement: one column per slot
        UniqueConstraint("project_id", "order", name="project_order_unique"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    order = Column(Integer, nullable=False, default=0)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="columns")
    tasks = relationship("Task", back_populates="column")
