from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.models.subscription import Subscription
from app.schemas.subscription import RenewalInput
from app.services.activity import log_activity
from app.services.errors import NotFound, RenewalFailed
from app.services.history import snapshot_current_period
from app.services.subscriptions import validate_period


logger = logging.getLogger(__name__)

RENEWED_FIELDS: tuple[str, ...] = (
    "purchase_date",
    "expiry_date",
    "purchase_amount_pkr",
    "purchase_amount_usd",
    "vendor",
    "vendor_link",
)


def renew(db: Session, subscription_id: str, period: RenewalInput, acting_user_id: str) -> Subscription:
    """Close the current billing period into history and open ``period``.

    The ledger insert and the overwrite share one transaction. The row is locked
    where the database supports it and the UPDATE is guarded by the ``version``
    column, so a concurrent renewal either waits or fails here with
    ``RenewalFailed`` and leaves no trace. ``is_active`` is not touched.
    """
    validate_period(period.purchase_date, period.expiry_date, period.purchase_amount_pkr, period.purchase_amount_usd)

    sub = (
        db.query(Subscription)
        .filter(Subscription.id == subscription_id, Subscription.user_id == acting_user_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if sub is None:
        db.rollback()
        raise NotFound("subscription", subscription_id)

    previous = {"purchase_date": sub.purchase_date.isoformat(), "expiry_date": sub.expiry_date.isoformat()}
    try:
        entry = snapshot_current_period(sub)
        db.add(entry)
        for field in RENEWED_FIELDS:
            setattr(sub, field, getattr(period, field))
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning("renewal.failed subscription_id=%s error=%s", subscription_id, type(exc).__name__)
        raise RenewalFailed(f"renewal of {subscription_id} did not complete") from exc

    db.refresh(sub)
    logger.info(
        "renewal.ok subscription_id=%s history_id=%s expiry_date=%s",
        sub.id,
        entry.id,
        sub.expiry_date.isoformat(),
    )
    log_activity(
        db,
        acting_user_id,
        "renew",
        "subscription",
        sub.id,
        {
            "previous": previous,
            "purchase_date": period.purchase_date.isoformat(),
            "expiry_date": period.expiry_date.isoformat(),
        },
    )
    return sub
