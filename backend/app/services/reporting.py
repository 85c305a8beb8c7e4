from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from app.models.subscription import Subscription
from app.schemas.subscription import SubscriptionStatus
from app.services.history import list_user_history
from app.services.lifecycle import classify


ZERO = Decimal("0")


@dataclass
class CategoryTotal:
    category_id: str | None
    category_name: str | None
    subscriptions: int = 0
    total_pkr: Decimal = ZERO
    total_usd: Decimal = ZERO


@dataclass
class MonthSpend:
    month: str
    purchases: int = 0
    total_pkr: Decimal = ZERO
    total_usd: Decimal = ZERO


@dataclass
class ReportSummary:
    start: date | None
    end: date | None
    status_counts: dict[str, int] = field(default_factory=dict)
    categories: list[CategoryTotal] = field(default_factory=list)
    months: list[MonthSpend] = field(default_factory=list)
    total_spent_pkr: Decimal = ZERO
    total_spent_usd: Decimal = ZERO
    monthly_average_pkr: Decimal = ZERO
    top_category: str | None = None


def _amount(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(value)


def _in_range(d: date, start: date | None, end: date | None) -> bool:
    if start is not None and d < start:
        return False
    if end is not None and d > end:
        return False
    return True


def status_counts(subs: Iterable[Subscription], today: date) -> dict[str, int]:
    counts = {s.value: 0 for s in SubscriptionStatus}
    for sub in subs:
        counts[classify(sub, today).value] += 1
    return counts


def category_totals(subs: Iterable[Subscription]) -> list[CategoryTotal]:
    buckets: dict[str | None, CategoryTotal] = {}
    for sub in subs:
        key = sub.category_id
        bucket = buckets.get(key)
        if bucket is None:
            name = sub.category.name if sub.category is not None else None
            bucket = buckets[key] = CategoryTotal(category_id=key, category_name=name)
        bucket.subscriptions += 1
        bucket.total_pkr += _amount(sub.purchase_amount_pkr)
        bucket.total_usd += _amount(sub.purchase_amount_usd)
    return sorted(buckets.values(), key=lambda c: (-c.total_pkr, c.category_name or ""))


def monthly_spend(
    db: Session,
    user_id: str,
    subs: Iterable[Subscription],
    start: date | None = None,
    end: date | None = None,
) -> list[MonthSpend]:
    """Spend per purchase month: closed periods from the ledger plus each current period."""
    months: dict[str, MonthSpend] = defaultdict(lambda: MonthSpend(month=""))
    periods = [
        (h.purchase_date, h.purchase_amount_pkr, h.purchase_amount_usd)
        for h in list_user_history(db, user_id, start=start, end=end)
    ]
    periods.extend((s.purchase_date, s.purchase_amount_pkr, s.purchase_amount_usd) for s in subs)

    for purchased, pkr, usd in periods:
        if not _in_range(purchased, start, end):
            continue
        key = f"{purchased.year:04d}-{purchased.month:02d}"
        bucket = months[key]
        bucket.month = key
        bucket.purchases += 1
        bucket.total_pkr += _amount(pkr)
        bucket.total_usd += _amount(usd)
    return [months[k] for k in sorted(months)]


def build_summary(
    db: Session,
    user_id: str,
    today: date,
    start: date | None = None,
    end: date | None = None,
) -> ReportSummary:
    subs = (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id)
        .order_by(Subscription.expiry_date.asc())
        .all()
    )
    summary = ReportSummary(start=start, end=end)
    summary.status_counts = status_counts(subs, today)
    summary.categories = category_totals(subs)
    summary.months = monthly_spend(db, user_id, subs, start=start, end=end)
    summary.total_spent_pkr = sum((m.total_pkr for m in summary.months), ZERO)
    summary.total_spent_usd = sum((m.total_usd for m in summary.months), ZERO)
    if summary.months:
        summary.monthly_average_pkr = (summary.total_spent_pkr / len(summary.months)).quantize(Decimal("0.01"))
    named = [c for c in summary.categories if c.category_name]
    summary.top_category = named[0].category_name if named else None
    return summary
