import unittest
from datetime import date, datetime, timedelta, timezone

from app.models.email_log import EmailLog, EmailLogStatus
from app.models.notification import Notification
from app.models.reminder import Reminder
from app.services.dispatch import mark_stale_sending_failed, process_queued_emails, run_daily_dispatch
from app.services.email import EmailResult
from tests.support import add_profile, add_subscription, make_sessionmaker


TODAY = date(2025, 6, 1)
NOW = datetime(2025, 6, 1, 6, 0, tzinfo=timezone.utc)


class FakeSender:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send_email(self, to, subject, html_body):
        if self.fail:
            return EmailResult(ok=False, error="smtp down")
        self.sent.append((to, subject))
        return EmailResult(ok=True, message_id=f"msg-{len(self.sent)}")


class TestDailyDispatch(unittest.TestCase):
    def setUp(self):
        self.engine, Session = make_sessionmaker()
        self.db = Session()
        add_profile(self.db)
        self.sub = add_subscription(
            self.db,
            service_name="example.com",
            purchase_date=date(2024, 6, 8),
            expiry_date=date(2025, 6, 8),
            reminder_days=(30, 7, 1),
        )

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def _logs(self):
        return self.db.query(EmailLog).all()

    def test_sends_due_reminder_once(self):
        sender = FakeSender()
        summary = run_daily_dispatch(self.db, TODAY, sender, now=NOW)

        self.assertEqual(summary.reminders_due, 1)
        self.assertEqual(summary.emails_sent, 1)
        self.assertEqual(summary.notifications_created, 1)
        self.assertEqual(sender.sent, [("owner@example.com", "Subscription Expiring Soon: example.com (7 days left)")])
        log = self._logs()[0]
        self.assertEqual(log.status, EmailLogStatus.SENT)
        self.assertEqual(log.attempts, 1)
        self.assertEqual(log.provider_message_id, "msg-1")

    def test_rerun_same_day_is_a_no_op(self):
        sender = FakeSender()
        run_daily_dispatch(self.db, TODAY, sender, now=NOW)
        summary = run_daily_dispatch(self.db, TODAY, sender, now=NOW)

        self.assertEqual(summary.emails_sent, 0)
        self.assertEqual(summary.skipped_already_handled, 1)
        self.assertEqual(len(sender.sent), 1)
        self.assertEqual(self.db.query(Notification).count(), 1)

    def test_failed_send_is_recorded_and_retried(self):
        summary = run_daily_dispatch(self.db, TODAY, FakeSender(fail=True), now=NOW)
        self.assertEqual(summary.emails_failed, 1)
        self.assertEqual(len(summary.errors), 1)
        log = self._logs()[0]
        self.assertEqual(log.status, EmailLogStatus.FAILED)
        self.assertEqual(log.error, "smtp down")

        sender = FakeSender()
        summary = run_daily_dispatch(self.db, TODAY, sender, now=NOW)
        self.assertEqual(summary.emails_sent, 1)
        self.db.expire_all()
        logs = self._logs()
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0].status, EmailLogStatus.SENT)
        self.assertEqual(logs[0].attempts, 2)

    def test_one_failure_does_not_stop_the_sweep(self):
        add_subscription(self.db, service_name="second.com", purchase_date=date(2024, 6, 2), expiry_date=date(2025, 6, 2), reminder_days=(1,))

        class FlakySender(FakeSender):
            def send_email(self, to, subject, html_body):
                if "second.com" in subject:
                    raise ConnectionError("reset by peer")
                return super().send_email(to, subject, html_body)

        sender = FlakySender()
        summary = run_daily_dispatch(self.db, TODAY, sender, now=NOW)
        self.assertEqual(summary.emails_failed, 1)
        self.assertEqual(summary.emails_sent, 1)

    def test_no_sender_queues_email(self):
        summary = run_daily_dispatch(self.db, TODAY, None, now=NOW)
        self.assertEqual(summary.emails_queued, 1)
        self.assertEqual(self._logs()[0].status, EmailLogStatus.QUEUED)

        again = run_daily_dispatch(self.db, TODAY, FakeSender(), now=NOW)
        self.assertEqual(again.skipped_already_handled, 1)

    def test_duplicate_offsets_send_two_emails(self):
        self.db.add(Reminder(subscription_id=self.sub.id, days_before=7, enabled=True))
        self.db.commit()
        sender = FakeSender()
        summary = run_daily_dispatch(self.db, TODAY, sender, now=NOW)
        self.assertEqual(summary.emails_sent, 2)
        self.assertEqual(len(sender.sent), 2)

    def test_missing_recipient_still_notifies(self):
        add_subscription(self.db, user_id="user-2", service_name="nomail.com", purchase_date=date(2024, 6, 8), expiry_date=date(2025, 6, 8), reminder_days=(7,))
        summary = run_daily_dispatch(self.db, TODAY, FakeSender(), now=NOW)
        self.assertEqual(summary.skipped_no_recipient, 1)
        self.assertEqual(self.db.query(Notification).filter(Notification.user_id == "user-2").count(), 1)

    def test_inactive_subscriptions_are_skipped(self):
        self.sub.is_active = False
        self.db.commit()
        summary = run_daily_dispatch(self.db, TODAY, FakeSender(), now=NOW)
        self.assertEqual(summary.subscriptions_checked, 0)
        self.assertEqual(self._logs(), [])

    def test_should_stop_is_honoured_between_subscriptions(self):
        summary = run_daily_dispatch(self.db, TODAY, FakeSender(), should_stop=lambda: True, now=NOW)
        self.assertTrue(summary.stopped_early)
        self.assertEqual(summary.subscriptions_checked, 0)

    def test_stale_sending_rows_become_failed(self):
        reminder = self.sub.reminders[0]
        self.db.add(
            EmailLog(
                user_id="user-1",
                subscription_id=self.sub.id,
                reminder_id=reminder.id,
                days_before=reminder.days_before,
                dispatch_date=TODAY - timedelta(days=1),
                days_until_expiry=8,
                to_email="owner@example.com",
                subject="s",
                html_content="<p>x</p>",
                status=EmailLogStatus.SENDING,
                updated_at=NOW - timedelta(hours=2),
            )
        )
        self.db.commit()
        self.assertEqual(mark_stale_sending_failed(self.db, now=NOW, stale_minutes=30), 1)
        self.db.expire_all()
        self.assertEqual(self._logs()[0].status, EmailLogStatus.FAILED)


class TestProcessQueuedEmails(unittest.TestCase):
    def setUp(self):
        self.engine, Session = make_sessionmaker()
        self.db = Session()
        add_profile(self.db)
        add_subscription(self.db, purchase_date=date(2024, 6, 8), expiry_date=date(2025, 6, 8), reminder_days=(7, 1))
        add_subscription(self.db, service_name="b.com", purchase_date=date(2024, 6, 2), expiry_date=date(2025, 6, 2), reminder_days=(1,))
        run_daily_dispatch(self.db, TODAY, None, now=NOW)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_sends_queued_rows(self):
        sender = FakeSender()
        summary = process_queued_emails(self.db, sender, now=NOW)
        self.assertEqual((summary.processed, summary.sent, summary.failed), (2, 2, 0))
        self.db.expire_all()
        self.assertEqual({log.status for log in self.db.query(EmailLog).all()}, {EmailLogStatus.SENT})

        self.assertEqual(process_queued_emails(self.db, sender, now=NOW).processed, 0)

    def test_batch_limit(self):
        summary = process_queued_emails(self.db, FakeSender(), limit=1, now=NOW)
        self.assertEqual(summary.processed, 1)
        self.assertEqual(self.db.query(EmailLog).filter(EmailLog.status == EmailLogStatus.QUEUED).count(), 1)

    def test_failures_are_recorded(self):
        summary = process_queued_emails(self.db, FakeSender(fail=True), now=NOW)
        self.assertEqual(summary.failed, 2)
        self.db.expire_all()
        self.assertEqual({log.status for log in self.db.query(EmailLog).all()}, {EmailLogStatus.FAILED})


if __name__ == "__main__":
    unittest.main()
