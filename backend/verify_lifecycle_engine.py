from datetime import date
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.database import Base
from app.models import activity_log, category, email_log, notification, profile, reminder, subscription, subscription_history  # noqa: F401
from app.models.profile import Profile
from app.models.subscription_history import SubscriptionHistory
from app.schemas.subscription import RenewalInput, SubscriptionCreate, SubscriptionStatus
from app.services.dispatch import run_daily_dispatch
from app.services.lifecycle import classify, due_reminders
from app.services.renewal import renew
from app.services.subscriptions import create_subscription


def main() -> None:
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        user_id = "user-1"
        db.add(Profile(id=user_id, email="owner@example.com"))
        db.commit()

        sub = create_subscription(
            db,
            user_id,
            SubscriptionCreate(
                service_name="example.com",
                purchase_date=date(2024, 6, 8),
                expiry_date=date(2025, 6, 8),
                purchase_amount_pkr=Decimal("1000"),
            ),
        )
        today = date(2025, 6, 1)
        assert classify(sub, today) == SubscriptionStatus.EXPIRING_SOON
        assert [r.days_before for r in due_reminders(sub, today)] == [7]

        summary = run_daily_dispatch(db, today, None)
        assert summary.emails_queued == 1, summary
        again = run_daily_dispatch(db, today, None)
        assert again.emails_queued == 0 and again.skipped_already_handled == 1, again

        renew(
            db,
            sub.id,
            RenewalInput(purchase_date=date(2025, 6, 8), expiry_date=date(2026, 6, 8), purchase_amount_pkr=Decimal("1200")),
            user_id,
        )
        rows = db.query(SubscriptionHistory).filter(SubscriptionHistory.subscription_id == sub.id).all()
        assert len(rows) == 1 and rows[0].expiry_date == date(2025, 6, 8), rows
        assert classify(sub, today) == SubscriptionStatus.ACTIVE
        assert due_reminders(sub, today) == []
    finally:
        db.close()


if __name__ == "__main__":
    main()
    print("OK")
