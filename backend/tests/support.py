from datetime import date
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.models import activity_log, category, email_log, notification, profile, reminder, subscription, subscription_history  # noqa: F401
from app.models.profile import Profile
from app.models.reminder import Reminder
from app.models.subscription import Subscription


def make_sessionmaker(url: str = "sqlite://"):
    if url == "sqlite://":
        engine = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        engine = create_engine(url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return engine, sessionmaker(autocommit=False, autoflush=False, bind=engine)


def add_profile(db, user_id: str = "user-1", email: str | None = "owner@example.com") -> Profile:
    p = Profile(id=user_id, email=email)
    db.add(p)
    db.commit()
    return p


def add_subscription(
    db,
    user_id: str = "user-1",
    service_name: str = "example.com hosting",
    purchase_date: date = date(2024, 1, 10),
    expiry_date: date = date(2025, 1, 10),
    amount_pkr: str = "15000.00",
    reminder_days=(30, 15, 7, 1),
    is_active: bool = True,
    **extra,
) -> Subscription:
    sub = Subscription(
        user_id=user_id,
        service_name=service_name,
        purchase_date=purchase_date,
        expiry_date=expiry_date,
        purchase_amount_pkr=Decimal(amount_pkr),
        is_active=is_active,
        **extra,
    )
    for days in reminder_days:
        sub.reminders.append(Reminder(days_before=days, enabled=True))
    db.add(sub)
    db.commit()
    db.refresh(sub)
    return sub
