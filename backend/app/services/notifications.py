from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.notification import Notification
from app.services.errors import NotFound


def list_notifications(
    db: Session,
    user_id: str,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> list[Notification]:
    q = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.read.is_(False))
    return (
        q.order_by(Notification.notify_date.desc(), Notification.id.desc())
        .offset(max(0, offset))
        .limit(max(1, min(limit, 200)))
        .all()
    )


def unread_count(db: Session, user_id: str) -> int:
    return int(
        db.query(func.count(Notification.id))
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .scalar()
        or 0
    )


def mark_read(db: Session, notification_id: int, user_id: str) -> Notification:
    n = db.query(Notification).filter(Notification.id == notification_id, Notification.user_id == user_id).first()
    if n is None:
        raise NotFound("notification", notification_id)
    if not n.read:
        n.read = True
        db.commit()
        db.refresh(n)
    return n


def mark_all_read(db: Session, user_id: str) -> int:
    count = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return int(count or 0)
