import unittest
from datetime import date
from decimal import Decimal
from unittest import mock

from sqlalchemy.orm.exc import StaleDataError

from app.models.subscription import Subscription
from app.schemas.category import CategoryCreate
from app.schemas.subscription import (
    ReminderCreate,
    ReminderUpdate,
    SubscriptionCreate,
    SubscriptionFilter,
    SubscriptionStatus,
    SubscriptionUpdate,
)
from app.services import categories as category_service
from app.services import subscriptions as subscription_service
from app.services.errors import ConcurrentUpdate, InvalidInput, InvalidPeriod, NotFound
from tests.support import make_sessionmaker


TODAY = date(2025, 6, 1)


def _create(**overrides):
    data = {
        "service_name": "example.com",
        "purchase_date": date(2024, 7, 1),
        "expiry_date": date(2025, 7, 1),
        "purchase_amount_pkr": Decimal("5000"),
    }
    data.update(overrides)
    return SubscriptionCreate(**data)


class TestSubscriptionService(unittest.TestCase):
    def setUp(self):
        self.engine, Session = make_sessionmaker()
        self.db = Session()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_create_uses_default_reminders(self):
        sub = subscription_service.create_subscription(self.db, "user-1", _create())
        self.assertEqual(sorted(r.days_before for r in sub.reminders), [1, 7, 15, 30])

    def test_create_with_explicit_empty_reminders(self):
        sub = subscription_service.create_subscription(self.db, "user-1", _create(reminders=[]))
        self.assertEqual(sub.reminders, [])

    def test_create_rejects_bad_period(self):
        with self.assertRaises(InvalidPeriod):
            subscription_service.create_subscription(
                self.db, "user-1", _create(purchase_date=date(2025, 7, 1), expiry_date=date(2025, 7, 1))
            )
        self.assertEqual(self.db.query(Subscription).count(), 0)

    def test_update_validates_merged_period(self):
        sub = subscription_service.create_subscription(self.db, "user-1", _create())
        with self.assertRaises(InvalidPeriod):
            subscription_service.update_subscription(
                self.db, sub.id, SubscriptionUpdate(expiry_date=date(2024, 6, 1)), "user-1"
            )
        updated = subscription_service.update_subscription(self.db, sub.id, SubscriptionUpdate(notes="auto-renew off"), "user-1")
        self.assertEqual(updated.notes, "auto-renew off")
        self.assertEqual(updated.expiry_date, date(2025, 7, 1))

    def test_update_rejects_null_service_name(self):
        sub = subscription_service.create_subscription(self.db, "user-1", _create())
        with self.assertRaises(InvalidInput):
            subscription_service.update_subscription(
                self.db, sub.id, SubscriptionUpdate.model_validate({"service_name": None}), "user-1"
            )
        self.assertEqual(subscription_service.get_subscription(self.db, sub.id, "user-1").service_name, "example.com")

    def test_update_rejects_null_amount(self):
        sub = subscription_service.create_subscription(self.db, "user-1", _create())
        with self.assertRaises(InvalidInput):
            subscription_service.update_subscription(
                self.db, sub.id, SubscriptionUpdate.model_validate({"purchase_amount_pkr": None}), "user-1"
            )
        self.assertEqual(subscription_service.get_subscription(self.db, sub.id, "user-1").purchase_amount_pkr, Decimal("5000"))

    def test_update_conflict_rolls_back(self):
        sub = subscription_service.create_subscription(self.db, "user-1", _create())
        with mock.patch.object(self.db, "commit", side_effect=StaleDataError("version mismatch")):
            with self.assertRaises(ConcurrentUpdate):
                subscription_service.update_subscription(self.db, sub.id, SubscriptionUpdate(notes="late write"), "user-1")
        self.assertIsNone(subscription_service.get_subscription(self.db, sub.id, "user-1").notes)

    def test_set_active_round_trip(self):
        sub = subscription_service.create_subscription(self.db, "user-1", _create())
        self.assertFalse(subscription_service.set_active(self.db, sub.id, False, "user-1").is_active)
        self.assertTrue(subscription_service.set_active(self.db, sub.id, True, "user-1").is_active)

    def test_other_user_cannot_touch(self):
        sub = subscription_service.create_subscription(self.db, "user-1", _create())
        with self.assertRaises(NotFound):
            subscription_service.get_subscription(self.db, sub.id, "user-2")
        with self.assertRaises(NotFound):
            subscription_service.set_active(self.db, sub.id, False, "user-2")
        with self.assertRaises(NotFound):
            subscription_service.delete_subscription(self.db, sub.id, "user-2")

    def test_list_filters_by_status(self):
        subscription_service.create_subscription(self.db, "user-1", _create(service_name="soon"))
        subscription_service.create_subscription(
            self.db, "user-1", _create(service_name="later", expiry_date=date(2026, 1, 1))
        )
        flt = SubscriptionFilter(statuses=[SubscriptionStatus.EXPIRING_SOON])
        out = subscription_service.list_subscriptions(self.db, "user-1", TODAY, flt)
        self.assertEqual([s.service_name for s in out], ["soon"])

    def test_bulk_delete_is_all_or_nothing(self):
        a = subscription_service.create_subscription(self.db, "user-1", _create(service_name="a"))
        b = subscription_service.create_subscription(self.db, "user-1", _create(service_name="b"))
        with self.assertRaises(NotFound):
            subscription_service.delete_subscriptions(self.db, [a.id, "missing"], "user-1")
        self.assertEqual(self.db.query(Subscription).count(), 2)
        self.assertEqual(subscription_service.delete_subscriptions(self.db, [a.id, b.id, a.id], "user-1"), 2)
        self.assertEqual(self.db.query(Subscription).count(), 0)

    def test_reminder_crud(self):
        sub = subscription_service.create_subscription(self.db, "user-1", _create(reminders=[]))
        r = subscription_service.add_reminder(self.db, sub.id, ReminderCreate(days_before=3), "user-1")
        r = subscription_service.update_reminder(self.db, r.id, ReminderUpdate(enabled=False), "user-1")
        self.assertFalse(r.enabled)
        self.assertEqual(r.days_before, 3)
        with self.assertRaises(NotFound):
            subscription_service.update_reminder(self.db, r.id, ReminderUpdate(days_before=2), "user-2")
        subscription_service.delete_reminder(self.db, r.id, "user-1")
        self.assertEqual(subscription_service.get_subscription(self.db, sub.id, "user-1").reminders, [])

    def test_category_must_be_owned(self):
        cat = category_service.create_category(self.db, "user-2", CategoryCreate(name="Hosting"))
        with self.assertRaises(NotFound):
            subscription_service.create_subscription(self.db, "user-1", _create(category_id=cat.id))

    def test_deleting_category_detaches_subscriptions(self):
        cat = category_service.create_category(self.db, "user-1", CategoryCreate(name="Domains"))
        sub = subscription_service.create_subscription(self.db, "user-1", _create(category_id=cat.id))
        category_service.delete_category(self.db, cat.id, "user-1")
        self.assertIsNone(subscription_service.get_subscription(self.db, sub.id, "user-1").category_id)


if __name__ == "__main__":
    unittest.main()
