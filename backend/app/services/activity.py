from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog


logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    user_id: str,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> ActivityLog | None:
    """Best-effort audit row. Failures are logged and never reach the caller."""
    if not user_id:
        logger.warning("activity.skip.missing_user action=%s entity_type=%s", action, entity_type)
        return None
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=(details or None),
    )
    try:
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry
    except SQLAlchemyError:
        db.rollback()
        logger.exception("activity.error action=%s entity_type=%s entity_id=%s", action, entity_type, entity_id)
        return None


def list_activity(
    db: Session,
    user_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[ActivityLog]:
    q = db.query(ActivityLog).filter(ActivityLog.user_id == user_id)
    if start is not None:
        q = q.filter(ActivityLog.created_at >= start)
    if end is not None:
        q = q.filter(ActivityLog.created_at <= end)
    return (
        q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset(max(0, offset))
        .limit(max(1, min(limit, 500)))
        .all()
    )
