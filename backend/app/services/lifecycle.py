"""Status classification and reminder matching.

Everything here is pure: callers pass ``today`` explicitly and nothing reads the
wall clock, the database or the network.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Protocol, Sequence

from app.schemas.subscription import SubscriptionFilter, SubscriptionStatus


EXPIRING_SOON_DAYS = 30


class _ReminderLike(Protocol):
    days_before: int
    enabled: bool


class _SubscriptionLike(Protocol):
    is_active: bool
    expiry_date: date
    reminders: Sequence[_ReminderLike]


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_until_expiry(expiry_date: date | datetime, today: date | datetime) -> int:
    # Whole calendar days, so the midnight-to-midnight ceil is exact.
    return (as_date(expiry_date) - as_date(today)).days


def classify(sub: _SubscriptionLike, today: date | datetime) -> SubscriptionStatus:
    if sub.is_active is False:
        return SubscriptionStatus.INACTIVE
    expiry = as_date(sub.expiry_date)
    today = as_date(today)
    if expiry < today:
        return SubscriptionStatus.EXPIRED
    if expiry <= today + timedelta(days=EXPIRING_SOON_DAYS):
        return SubscriptionStatus.EXPIRING_SOON
    return SubscriptionStatus.ACTIVE


def due_reminders(sub: _SubscriptionLike, today: date | datetime) -> list:
    """Reminders that fire on ``today``.

    A reminder fires only on the single day where exactly ``days_before`` days
    remain. A day the sweep does not run is skipped for the period, never caught
    up. Duplicate ``days_before`` rows each fire.
    """
    if sub.is_active is False:
        return []
    remaining = days_until_expiry(sub.expiry_date, today)
    return [r for r in (sub.reminders or []) if r.enabled is True and r.days_before == remaining]


def _matches_search(sub, needle: str) -> bool:
    for field in ("service_name", "domain_name", "vendor", "notes"):
        value = getattr(sub, field, None)
        if value and needle in str(value).lower():
            return True
    return False


def filter_subscriptions(subs: Iterable, flt: SubscriptionFilter | None, today: date) -> list:
    if flt is None:
        return list(subs)
    statuses = set(flt.statuses or [])
    category_ids = set(flt.category_ids or [])
    needle = (flt.search or "").strip().lower()

    out = []
    for sub in subs:
        if statuses and classify(sub, today) not in statuses:
            continue
        if category_ids and getattr(sub, "category_id", None) not in category_ids:
            continue
        if needle and not _matches_search(sub, needle):
            continue
        out.append(sub)
    return out
