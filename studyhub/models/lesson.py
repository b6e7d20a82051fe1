"""
Lesson model - a single unit of publishable content
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship

from studyhub.database import Base
from studyhub.utils.time import utcnow


class Lesson(Base):
    """Model Lesson - rich text content with optional media"""

    __tablename__ = "lessons"

    id = Column(String(36), primary_key=True)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    excerpt = Column(Text, nullable=True)
    bible_reference = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    audio_url = Column(Text, nullable=True)
    duration = Column(Integer, nullable=True)  # minutes
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    order = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, nullable=False, default=False, index=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    study_class = relationship("StudyClass", back_populates="lessons")
    progress = relationship("UserProgress", back_populates="lesson", passive_deletes=True)

    def __repr__(self):
        return f"<Lesson(id={self.id}, title={self.title}, published={self.is_published})>"
