"""
Progress model - per user, per lesson study state
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from studyhub.database import Base
from studyhub.utils.time import utcnow


class UserProgress(Base):
    """Model UserProgress - at most one row per (user_id, lesson_id)"""

    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "lesson_id", name="uq_user_progress_user_lesson"),
    )

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    lesson_id = Column(String(36), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)
    completed = Column(Boolean, nullable=False, default=False)
    bookmarked = Column(Boolean, nullable=False, default=False)
    study_time = Column(Integer, nullable=False, default=0)  # minutes
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)  # first completion only
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    user = relationship("User", back_populates="progress")
    lesson = relationship("Lesson", back_populates="progress")

    def __repr__(self):
        return f"<UserProgress(user_id={self.user_id}, lesson_id={self.lesson_id})>"
