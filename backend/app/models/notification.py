from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from app.core.database import Base


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("subscription_id", "reminder_id", "notify_date", name="uq_notifications_reminder_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    subscription_id = Column(String, index=True, nullable=False)
    reminder_id = Column(String, index=True, nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    days_until_expiry = Column(Integer, nullable=False)
    notify_date = Column(Date, index=True, nullable=False)
    read = Column(Boolean, index=True, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
