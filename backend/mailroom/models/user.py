"""User model"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from mailroom.models.base import Base


class User(Base):
    """Administrator accounts allowed to publish newsletter issues"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    idempotency_records = relationship("IdempotencyRecord", back_populates="user", cascade="all, delete-orphan")
