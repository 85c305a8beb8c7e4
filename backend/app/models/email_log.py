import enum

from sqlalchemy import Column, Date, DateTime, Enum, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from app.core.database import Base


class EmailLogStatus(str, enum.Enum):
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class EmailLog(Base):
    __tablename__ = "email_logs"
    __table_args__ = (
        UniqueConstraint("subscription_id", "reminder_id", "dispatch_date", name="uq_email_logs_dispatch_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True)
    subscription_id = Column(String, index=True, nullable=False)
    reminder_id = Column(String, index=True, nullable=False)
    days_before = Column(Integer, nullable=False)
    dispatch_date = Column(Date, index=True, nullable=False)
    days_until_expiry = Column(Integer, nullable=False)
    to_email = Column(String, nullable=True)
    subject = Column(String, nullable=True)
    html_content = Column(Text, nullable=True)
    status = Column(
        Enum(EmailLogStatus, name="emaillogstatus", values_callable=lambda e: [m.value for m in e]),
        index=True,
        default=EmailLogStatus.QUEUED,
        nullable=False,
    )
    attempts = Column(Integer, default=0, nullable=False)
    provider_message_id = Column(String, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    sent_at = Column(DateTime(timezone=True), nullable=True)
