from sqlalchemy import Column, Date, DateTime, Integer, Numeric, String, event
from sqlalchemy.sql import func

from app.core.database import Base


class ImmutableHistoryError(RuntimeError):
    pass


class SubscriptionHistory(Base):
    __tablename__ = "subscription_history"

    id = Column(Integer, primary_key=True, index=True)
    # No FK: ledger rows outlive the subscription they describe.
    subscription_id = Column(String, index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    service_name = Column(String, nullable=True)
    purchase_date = Column(Date, index=True, nullable=False)
    expiry_date = Column(Date, nullable=False)
    purchase_amount_pkr = Column(Numeric(12, 2), nullable=False, default=0)
    purchase_amount_usd = Column(Numeric(12, 2), nullable=True)
    vendor = Column(String, nullable=True)
    vendor_link = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


@event.listens_for(SubscriptionHistory, "before_update")
def _reject_history_update(mapper, connection, target) -> None:
    raise ImmutableHistoryError(f"subscription_history row {target.id} is immutable")


@event.listens_for(SubscriptionHistory, "before_delete")
def _reject_history_delete(mapper, connection, target) -> None:
    raise ImmutableHistoryError(f"subscription_history row {target.id} cannot be deleted")
