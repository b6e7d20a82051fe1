"""
StudyClass model - group of lessons under a main topic, optionally nested
"""
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship

from studyhub.database import Base
from studyhub.utils.time import utcnow


class StudyClass(Base):
    """
    Model StudyClass - table `classes`

    parent_class_id points at another class of the same main topic.
    Sub-classes are stored flat and nested on read.
    """

    __tablename__ = "classes"

    id = Column(String(36), primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    main_id = Column(String(36), ForeignKey("mains.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=True, index=True)
    order = Column(Integer, nullable=False, default=0)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    main = relationship("MainTopic", back_populates="classes")
    lessons = relationship("Lesson", back_populates="study_class", passive_deletes=True)

    def __repr__(self):
        return f"<StudyClass(id={self.id}, title={self.title}, main_id={self.main_id})>"
