from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.models.category import Category
from app.models.reminder import Reminder
from app.models.subscription import Subscription
from app.schemas.subscription import (
    ReminderCreate,
    ReminderUpdate,
    SubscriptionCreate,
    SubscriptionFilter,
    SubscriptionUpdate,
)
from app.services.activity import log_activity
from app.services.errors import ConcurrentUpdate, InvalidInput, InvalidPeriod, NotFound
from app.services.lifecycle import filter_subscriptions


logger = logging.getLogger(__name__)

DEFAULT_REMINDER_DAYS: tuple[int, ...] = (30, 15, 7, 1)
NON_NULLABLE_FIELDS: tuple[str, ...] = ("service_name", "purchase_date", "expiry_date", "purchase_amount_pkr")


def validate_period(
    purchase_date: date,
    expiry_date: date,
    purchase_amount_pkr: Decimal | None,
    purchase_amount_usd: Decimal | None = None,
) -> None:
    if purchase_date is None or expiry_date is None:
        raise InvalidPeriod("purchase_date and expiry_date are required")
    if expiry_date <= purchase_date:
        raise InvalidPeriod("expiry_date must be after purchase_date")
    if purchase_amount_pkr is not None and Decimal(purchase_amount_pkr) < 0:
        raise InvalidPeriod("purchase_amount_pkr must not be negative")
    if purchase_amount_usd is not None and Decimal(purchase_amount_usd) < 0:
        raise InvalidPeriod("purchase_amount_usd must not be negative")


def _commit_versioned(db: Session, sub: Subscription) -> None:
    sub_id = sub.id
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("subscriptions.conflict subscription_id=%s", sub_id)
        raise ConcurrentUpdate(f"subscription {sub_id} was modified concurrently") from exc


def _require_category(db: Session, category_id: str | None, user_id: str) -> None:
    if category_id is None:
        return
    owned = db.query(Category.id).filter(Category.id == category_id, Category.user_id == user_id).first()
    if owned is None:
        raise NotFound("category", category_id)


def get_subscription(db: Session, subscription_id: str, user_id: str) -> Subscription:
    sub = (
        db.query(Subscription)
        .options(selectinload(Subscription.reminders), selectinload(Subscription.category))
        .filter(Subscription.id == subscription_id, Subscription.user_id == user_id)
        .first()
    )
    if sub is None:
        raise NotFound("subscription", subscription_id)
    return sub


def list_subscriptions(
    db: Session,
    user_id: str,
    today: date,
    flt: SubscriptionFilter | None = None,
) -> list[Subscription]:
    q = (
        db.query(Subscription)
        .options(selectinload(Subscription.reminders), selectinload(Subscription.category))
        .filter(Subscription.user_id == user_id)
    )
    if flt is not None and flt.category_ids:
        q = q.filter(Subscription.category_id.in_(flt.category_ids))
    subs = q.order_by(Subscription.expiry_date.asc(), Subscription.service_name.asc()).all()
    # Status depends on today, so it is filtered in Python.
    return filter_subscriptions(subs, flt, today)


def list_active_subscriptions_with_reminders(db: Session) -> list[Subscription]:
    return (
        db.query(Subscription)
        .options(selectinload(Subscription.reminders))
        .filter(Subscription.is_active.is_(True))
        .filter(Subscription.reminders.any(Reminder.enabled.is_(True)))
        .order_by(Subscription.expiry_date.asc(), Subscription.id.asc())
        .all()
    )


def create_subscription(db: Session, user_id: str, data: SubscriptionCreate) -> Subscription:
    validate_period(data.purchase_date, data.expiry_date, data.purchase_amount_pkr, data.purchase_amount_usd)
    _require_category(db, data.category_id, user_id)

    sub = Subscription(
        user_id=user_id,
        service_name=data.service_name,
        domain_name=data.domain_name,
        vendor=data.vendor,
        vendor_link=data.vendor_link,
        email=data.email,
        username=data.username,
        password=data.password,
        notes=data.notes,
        purchase_date=data.purchase_date,
        expiry_date=data.expiry_date,
        purchase_amount_pkr=data.purchase_amount_pkr,
        purchase_amount_usd=data.purchase_amount_usd,
        is_active=data.is_active,
        category_id=data.category_id,
    )
    if data.reminders is None:
        reminders = [ReminderCreate(days_before=d) for d in DEFAULT_REMINDER_DAYS]
    else:
        reminders = data.reminders
    for r in reminders:
        sub.reminders.append(Reminder(days_before=r.days_before, enabled=r.enabled))

    db.add(sub)
    db.commit()
    db.refresh(sub)
    logger.info("subscriptions.create subscription_id=%s user_id=%s reminders=%s", sub.id, user_id, len(reminders))
    log_activity(db, user_id, "create", "subscription", sub.id, {"service_name": sub.service_name})
    return sub


def update_subscription(db: Session, subscription_id: str, data: SubscriptionUpdate, user_id: str) -> Subscription:
    sub = get_subscription(db, subscription_id, user_id)
    changes = data.model_dump(exclude_unset=True)
    for field in NON_NULLABLE_FIELDS:
        if field in changes and changes[field] is None:
            raise InvalidInput(f"{field} must not be null")
    validate_period(
        changes.get("purchase_date", sub.purchase_date),
        changes.get("expiry_date", sub.expiry_date),
        changes.get("purchase_amount_pkr", sub.purchase_amount_pkr),
        changes.get("purchase_amount_usd", sub.purchase_amount_usd),
    )
    if "category_id" in changes:
        _require_category(db, changes["category_id"], user_id)

    for field, value in changes.items():
        setattr(sub, field, value)
    _commit_versioned(db, sub)
    db.refresh(sub)

    logged = {k: (str(v) if v is not None else None) for k, v in changes.items() if k != "password"}
    log_activity(db, user_id, "update", "subscription", sub.id, {"changes": logged})
    return sub


def set_active(db: Session, subscription_id: str, active: bool, user_id: str) -> Subscription:
    sub = get_subscription(db, subscription_id, user_id)
    sub.is_active = bool(active)
    _commit_versioned(db, sub)
    db.refresh(sub)
    logger.info("subscriptions.set_active subscription_id=%s active=%s", sub.id, sub.is_active)
    log_activity(db, user_id, "activate" if active else "deactivate", "subscription", sub.id, {"is_active": bool(active)})
    return sub


def delete_subscription(db: Session, subscription_id: str, user_id: str) -> None:
    """Delete a subscription and its reminders. Its history rows are kept."""
    sub = get_subscription(db, subscription_id, user_id)
    service_name = sub.service_name
    db.delete(sub)
    db.commit()
    logger.info("subscriptions.delete subscription_id=%s user_id=%s", subscription_id, user_id)
    log_activity(db, user_id, "delete", "subscription", subscription_id, {"service_name": service_name})


def delete_subscriptions(db: Session, subscription_ids: list[str], user_id: str) -> int:
    ids = [i for i in dict.fromkeys(subscription_ids or []) if i]
    if not ids:
        return 0
    subs = (
        db.query(Subscription)
        .filter(Subscription.id.in_(ids), Subscription.user_id == user_id)
        .all()
    )
    if len(subs) != len(ids):
        found = {s.id for s in subs}
        missing = next(i for i in ids if i not in found)
        raise NotFound("subscription", missing)
    deleted = [(s.id, s.service_name) for s in subs]
    for s in subs:
        db.delete(s)
    db.commit()
    for sub_id, service_name in deleted:
        log_activity(db, user_id, "delete", "subscription", sub_id, {"service_name": service_name})
    return len(deleted)


def _get_owned_reminder(db: Session, reminder_id: str, user_id: str) -> Reminder:
    reminder = (
        db.query(Reminder)
        .join(Subscription, Subscription.id == Reminder.subscription_id)
        .filter(Reminder.id == reminder_id, Subscription.user_id == user_id)
        .first()
    )
    if reminder is None:
        raise NotFound("reminder", reminder_id)
    return reminder


def add_reminder(db: Session, subscription_id: str, data: ReminderCreate, user_id: str) -> Reminder:
    sub = get_subscription(db, subscription_id, user_id)
    # Same days_before as an existing row is allowed; both rows fire.
    reminder = Reminder(subscription_id=sub.id, days_before=data.days_before, enabled=data.enabled)
    db.add(reminder)
    db.commit()
    db.refresh(reminder)
    return reminder


def update_reminder(db: Session, reminder_id: str, data: ReminderUpdate, user_id: str) -> Reminder:
    reminder = _get_owned_reminder(db, reminder_id, user_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("days_before") is not None:
        reminder.days_before = int(changes["days_before"])
    if changes.get("enabled") is not None:
        reminder.enabled = bool(changes["enabled"])
    db.commit()
    db.refresh(reminder)
    return reminder


def delete_reminder(db: Session, reminder_id: str, user_id: str) -> None:
    reminder = _get_owned_reminder(db, reminder_id, user_id)
    db.delete(reminder)
    db.commit()
