from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from app.models.subscription import Subscription
from app.models.subscription_history import SubscriptionHistory
from app.services.errors import NotFound


def snapshot_current_period(sub: Subscription) -> SubscriptionHistory:
    """Build (not persist) a ledger row for the period ``sub`` currently holds."""
    return SubscriptionHistory(
        subscription_id=sub.id,
        user_id=sub.user_id,
        service_name=sub.service_name,
        purchase_date=sub.purchase_date,
        expiry_date=sub.expiry_date,
        purchase_amount_pkr=sub.purchase_amount_pkr,
        purchase_amount_usd=sub.purchase_amount_usd,
        vendor=sub.vendor,
        vendor_link=sub.vendor_link,
    )


def list_history(db: Session, subscription_id: str, user_id: str) -> list[SubscriptionHistory]:
    owned = (
        db.query(Subscription.id)
        .filter(Subscription.id == subscription_id, Subscription.user_id == user_id)
        .first()
    )
    if owned is None:
        # History of a deleted subscription is still readable by its owner.
        exists = (
            db.query(SubscriptionHistory.id)
            .filter(SubscriptionHistory.subscription_id == subscription_id, SubscriptionHistory.user_id == user_id)
            .first()
        )
        if exists is None:
            raise NotFound("subscription", subscription_id)
    return (
        db.query(SubscriptionHistory)
        .filter(SubscriptionHistory.subscription_id == subscription_id, SubscriptionHistory.user_id == user_id)
        .order_by(SubscriptionHistory.purchase_date.asc(), SubscriptionHistory.id.asc())
        .all()
    )


def list_user_history(
    db: Session,
    user_id: str,
    start: date | None = None,
    end: date | None = None,
) -> list[SubscriptionHistory]:
    q = db.query(SubscriptionHistory).filter(SubscriptionHistory.user_id == user_id)
    if start is not None:
        q = q.filter(SubscriptionHistory.purchase_date >= start)
    if end is not None:
        q = q.filter(SubscriptionHistory.purchase_date <= end)
    return q.order_by(SubscriptionHistory.purchase_date.asc(), SubscriptionHistory.id.asc()).all()
