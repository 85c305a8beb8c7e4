from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Reminder(Base):
    __tablename__ = "reminders"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid4()))
    subscription_id = Column(String, ForeignKey("subscriptions.id", ondelete="CASCADE"), index=True, nullable=False)
    days_before = Column(Integer, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subscription = relationship("Subscription", back_populates="reminders")
