"""
User model - users table
"""
from sqlalchemy import Column, String, Boolean, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from studyhub.database import Base
from studyhub.utils.time import utcnow


class User(Base):
    """
    Model User - platform account

    Attributes:
    - id: UUID string generated by the storage
    - email: unique, compared exactly (no case folding)
    - full_name: display name
    - is_admin: content management flag
    - created_at: creation time
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="users_email_key"),
    )

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False)
    full_name = Column(Text, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    progress = relationship("UserProgress", back_populates="user", passive_deletes=True)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"
