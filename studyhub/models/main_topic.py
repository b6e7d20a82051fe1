"""
MainTopic model - top level content grouping
"""
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship

from studyhub.database import Base
from studyhub.utils.time import utcnow

DEFAULT_ICON = "fas fa-book"


class MainTopic(Base):
    """Model MainTopic - subject area holding classes"""

    __tablename__ = "mains"

    id = Column(String(36), primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True, default=DEFAULT_ICON)
    order = Column(Integer, nullable=False, default=0)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    classes = relationship("StudyClass", back_populates="main", passive_deletes=True)

    def __repr__(self):
        return f"<MainTopic(id={self.id}, title={self.title})>"
