"""IdempotencyRecord model"""
from sqlalchemy import Column, Integer, String, SmallInteger, LargeBinary, JSON, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from mailroom.models.base import Base


class IdempotencyRecord(Base):
    """Saved HTTP response for a (user, idempotency key) pair.

    Response columns are NULL while the request that claimed the key is still in
    flight and are filled in once the response is known.
    """
    __tablename__ = "idempotency"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    idempotency_key = Column(String(50), primary_key=True)
    response_status_code = Column(SmallInteger, nullable=True)
    response_headers = Column(JSON, nullable=True)  # ordered [[name, value], ...], latin-1 decoded
    response_body = Column(LargeBinary, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationship
    user = relationship("User", back_populates="idempotency_records")
