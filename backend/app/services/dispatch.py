"""Daily reminder sweep.

The sweep is meant to run once per calendar day from cron. Re-running it the same
day is safe: each (subscription, reminder, day) owns one ``email_logs`` row, and a
row that is queued, sending or sent is never sent again. Only ``failed`` rows are
retried by a later run on the same day.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.settings import settings
from app.models.email_log import EmailLog, EmailLogStatus
from app.models.notification import Notification
from app.models.profile import Profile
from app.models.reminder import Reminder
from app.models.subscription import Subscription
from app.services.email import EmailResult, EmailSender, expiry_reminder_html, expiry_reminder_subject
from app.services.errors import DispatchTransientFailure
from app.services.lifecycle import days_until_expiry, due_reminders
from app.services.subscriptions import list_active_subscriptions_with_reminders


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DispatchSummary:
    dispatch_date: date
    subscriptions_checked: int = 0
    reminders_due: int = 0
    notifications_created: int = 0
    emails_sent: int = 0
    emails_queued: int = 0
    emails_failed: int = 0
    skipped_already_handled: int = 0
    skipped_no_recipient: int = 0
    stale_marked_failed: int = 0
    stopped_early: bool = False
    errors: list[str] = field(default_factory=list)


@dataclass
class QueueSummary:
    processed: int = 0
    sent: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


def mark_stale_sending_failed(db: Session, now: datetime | None = None, stale_minutes: int | None = None) -> int:
    now = now or utcnow()
    minutes = settings.email_sending_stale_minutes if stale_minutes is None else stale_minutes
    cutoff = now - timedelta(minutes=max(0, int(minutes)))
    count = (
        db.query(EmailLog)
        .filter(EmailLog.status == EmailLogStatus.SENDING, EmailLog.updated_at < cutoff)
        .update(
            {
                EmailLog.status: EmailLogStatus.FAILED,
                EmailLog.error: "abandoned in sending state",
                EmailLog.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    if count:
        logger.warning("dispatch.stale_sending_failed count=%s cutoff=%s", count, cutoff.isoformat())
    return int(count or 0)


def _recipients(db: Session, user_ids: set[str]) -> dict[str, str]:
    if not user_ids:
        return {}
    rows = db.query(Profile.id, Profile.email).filter(Profile.id.in_(user_ids)).all()
    return {pid: email for pid, email in rows if email}


def _notification_text(service_name: str, remaining: int) -> tuple[str, str]:
    if remaining == 0:
        return ("Subscription Expires Today", f'Your subscription "{service_name}" expires today. Please renew it now.')
    unit = "day" if remaining == 1 else "days"
    return (
        "Subscription Expiring Soon",
        f'Your subscription "{service_name}" will expire in {remaining} {unit}. Please renew it.',
    )


def _materialize_notification(
    db: Session,
    sub: Subscription,
    reminder: Reminder,
    remaining: int,
    today: date,
) -> bool:
    existing = (
        db.query(Notification.id)
        .filter(
            Notification.subscription_id == sub.id,
            Notification.reminder_id == reminder.id,
            Notification.notify_date == today,
        )
        .first()
    )
    if existing is not None:
        return False
    title, message = _notification_text(sub.service_name, remaining)
    db.add(
        Notification(
            user_id=sub.user_id,
            subscription_id=sub.id,
            reminder_id=reminder.id,
            title=title,
            message=message,
            days_until_expiry=remaining,
            notify_date=today,
            read=False,
        )
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


def _claim(
    db: Session,
    sub: Subscription,
    reminder: Reminder,
    remaining: int,
    today: date,
    to_email: str,
    status: EmailLogStatus,
    now: datetime,
) -> EmailLog | None:
    """Take ownership of today's key for this reminder, or None if someone already has it."""
    log = (
        db.query(EmailLog)
        .filter(
            EmailLog.subscription_id == sub.id,
            EmailLog.reminder_id == reminder.id,
            EmailLog.dispatch_date == today,
        )
        .first()
    )
    subject = expiry_reminder_subject(sub.service_name, remaining)
    html_body = expiry_reminder_html(sub.service_name, sub.domain_name, sub.expiry_date, remaining, today)

    if log is not None:
        if log.status != EmailLogStatus.FAILED:
            return None
        # Compare-and-swap so two concurrent sweeps cannot both retry.
        won = (
            db.query(EmailLog)
            .filter(EmailLog.id == log.id, EmailLog.status == EmailLogStatus.FAILED)
            .update(
                {
                    EmailLog.status: status,
                    EmailLog.to_email: to_email,
                    EmailLog.subject: subject,
                    EmailLog.html_content: html_body,
                    EmailLog.error: None,
                    EmailLog.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        db.commit()
        if not won:
            return None
        db.refresh(log)
        return log

    log = EmailLog(
        user_id=sub.user_id,
        subscription_id=sub.id,
        reminder_id=reminder.id,
        days_before=reminder.days_before,
        dispatch_date=today,
        days_until_expiry=remaining,
        to_email=to_email,
        subject=subject,
        html_content=html_body,
        status=status,
        attempts=0,
        updated_at=now,
    )
    db.add(log)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return None
    db.refresh(log)
    return log


def _deliver(db: Session, log: EmailLog, sender: EmailSender, now: datetime) -> EmailResult:
    try:
        result = sender.send_email(log.to_email, log.subject, log.html_content)
    except Exception as exc:
        result = EmailResult(ok=False, error=f"{type(exc).__name__}: {exc}")

    log.attempts = int(log.attempts or 0) + 1
    log.updated_at = now
    if result.ok:
        log.status = EmailLogStatus.SENT
        log.sent_at = now
        log.provider_message_id = result.message_id
        log.error = None
    else:
        log.status = EmailLogStatus.FAILED
        log.error = (result.error or "unknown error")[:2000]
    db.commit()
    return result


def _dispatch_one(
    db: Session,
    sub: Subscription,
    reminder: Reminder,
    remaining: int,
    today: date,
    to_email: str,
    sender: EmailSender | None,
    now: datetime,
    summary: DispatchSummary,
) -> None:
    status = EmailLogStatus.SENDING if sender is not None else EmailLogStatus.QUEUED
    log = _claim(db, sub, reminder, remaining, today, to_email, status, now)
    if log is None:
        summary.skipped_already_handled += 1
        logger.info("dispatch.skip.already_handled subscription_id=%s reminder_id=%s", sub.id, reminder.id)
        return
    if sender is None:
        summary.emails_queued += 1
        logger.info("dispatch.queued subscription_id=%s reminder_id=%s email_log_id=%s", sub.id, reminder.id, log.id)
        return

    result = _deliver(db, log, sender, now)
    if not result.ok:
        raise DispatchTransientFailure(result.error or "send failed")
    summary.emails_sent += 1
    logger.info(
        "dispatch.sent subscription_id=%s reminder_id=%s days_until_expiry=%s email_log_id=%s",
        sub.id,
        reminder.id,
        remaining,
        log.id,
    )


def run_daily_dispatch(
    db: Session,
    today: date,
    sender: EmailSender | None,
    should_stop: Callable[[], bool] | None = None,
    now: datetime | None = None,
) -> DispatchSummary:
    """Evaluate every active subscription's reminders for ``today``.

    A transport failure marks that item ``failed`` and the sweep moves on.
    ``should_stop`` is checked between subscriptions only.
    """
    now = now or utcnow()
    summary = DispatchSummary(dispatch_date=today)
    summary.stale_marked_failed = mark_stale_sending_failed(db, now=now)

    subs = list_active_subscriptions_with_reminders(db)
    recipients = _recipients(db, {s.user_id for s in subs})
    logger.info("dispatch.start date=%s subscriptions=%s email=%s", today.isoformat(), len(subs), sender is not None)

    for sub in subs:
        if should_stop is not None and should_stop():
            summary.stopped_early = True
            logger.info("dispatch.stopped checked=%s", summary.subscriptions_checked)
            break
        summary.subscriptions_checked += 1

        due = due_reminders(sub, today)
        if not due:
            continue
        remaining = days_until_expiry(sub.expiry_date, today)
        # Snapshot before commits expire the ORM instances.
        items = [(r, r.id) for r in due]

        for reminder, reminder_id in items:
            summary.reminders_due += 1
            try:
                if _materialize_notification(db, sub, reminder, remaining, today):
                    summary.notifications_created += 1

                to_email = recipients.get(sub.user_id)
                if not to_email:
                    summary.skipped_no_recipient += 1
                    logger.info("dispatch.skip.no_recipient subscription_id=%s user_id=%s", sub.id, sub.user_id)
                    continue

                _dispatch_one(db, sub, reminder, remaining, today, to_email, sender, now, summary)
            except DispatchTransientFailure as exc:
                summary.emails_failed += 1
                summary.errors.append(f"{sub.id}/{reminder_id}: {exc}")
                logger.warning("dispatch.failed subscription_id=%s reminder_id=%s error=%s", sub.id, reminder_id, exc)
            except SQLAlchemyError as exc:
                db.rollback()
                summary.errors.append(f"{sub.id}/{reminder_id}: {type(exc).__name__}")
                logger.exception("dispatch.error subscription_id=%s reminder_id=%s", sub.id, reminder_id)

    logger.info(
        "dispatch.done date=%s checked=%s due=%s sent=%s queued=%s failed=%s skipped=%s",
        today.isoformat(),
        summary.subscriptions_checked,
        summary.reminders_due,
        summary.emails_sent,
        summary.emails_queued,
        summary.emails_failed,
        summary.skipped_already_handled,
    )
    return summary


def process_queued_emails(
    db: Session,
    sender: EmailSender,
    limit: int | None = None,
    now: datetime | None = None,
) -> QueueSummary:
    """Send the oldest ``queued`` rows, e.g. after email transport was configured."""
    now = now or utcnow()
    batch = settings.email_queue_batch_size if limit is None else limit
    summary = QueueSummary()
    rows = (
        db.query(EmailLog)
        .filter(EmailLog.status == EmailLogStatus.QUEUED)
        .order_by(EmailLog.created_at.asc(), EmailLog.id.asc())
        .limit(max(1, int(batch)))
        .all()
    )
    ids = [r.id for r in rows]
    for log_id in ids:
        won = (
            db.query(EmailLog)
            .filter(EmailLog.id == log_id, EmailLog.status == EmailLogStatus.QUEUED)
            .update({EmailLog.status: EmailLogStatus.SENDING, EmailLog.updated_at: now}, synchronize_session=False)
        )
        db.commit()
        if not won:
            continue
        log = db.query(EmailLog).filter(EmailLog.id == log_id).first()
        summary.processed += 1
        if not log.to_email:
            log.status = EmailLogStatus.FAILED
            log.error = "missing recipient"
            log.updated_at = now
            db.commit()
            summary.failed += 1
            continue
        result = _deliver(db, log, sender, now)
        if result.ok:
            summary.sent += 1
        else:
            summary.failed += 1
            summary.errors.append(f"{log_id}: {result.error}")
            logger.warning("dispatch.queue.failed email_log_id=%s error=%s", log_id, result.error)
    logger.info("dispatch.queue.done processed=%s sent=%s failed=%s", summary.processed, summary.sent, summary.failed)
    return summary
