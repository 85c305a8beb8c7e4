from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import require_cron_secret
from app.core.database import get_db
from app.core.settings import today_in_app_timezone
from app.services.dispatch import process_queued_emails, run_daily_dispatch
from app.services.email import build_sender


router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.post("/cron/dispatch")
async def cron_dispatch(today: Optional[date] = None, db: Session = Depends(get_db)) -> dict:
    summary = run_daily_dispatch(db, today or today_in_app_timezone(), build_sender())
    return asdict(summary)


@router.post("/cron/process-queued-emails")
async def cron_process_queued_emails(limit: Optional[int] = None, db: Session = Depends(get_db)) -> dict:
    sender = build_sender()
    if sender is None:
        raise HTTPException(status_code=503, detail="RESEND_API_KEY is not configured")
    return asdict(process_queued_emails(db, sender, limit=limit))
