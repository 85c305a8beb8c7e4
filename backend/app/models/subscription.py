from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid4()))
    user_id = Column(String, index=True, nullable=False)
    service_name = Column(String, nullable=False)
    domain_name = Column(String, nullable=True)
    vendor = Column(String, nullable=True)
    vendor_link = Column(String, nullable=True)
    email = Column(String, nullable=True)
    username = Column(String, nullable=True)
    password = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    purchase_date = Column(Date, nullable=False)
    expiry_date = Column(Date, index=True, nullable=False)
    purchase_amount_pkr = Column(Numeric(12, 2), nullable=False, default=0)
    purchase_amount_usd = Column(Numeric(12, 2), nullable=True)

    is_active = Column(Boolean, index=True, nullable=False, default=True)
    category_id = Column(String, ForeignKey("categories.id", ondelete="SET NULL"), index=True, nullable=True)

    # Bumped on every UPDATE; a concurrent writer holding a stale value fails.
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    reminders = relationship(
        "Reminder",
        back_populates="subscription",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Reminder.days_before.desc()",
    )
    category = relationship("Category", back_populates="subscriptions")

    __mapper_args__ = {"version_id_col": version}
