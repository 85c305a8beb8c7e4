from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user
from app.core.settings import today_in_app_timezone
from app.services.reporting import build_summary


router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/reports/summary")
async def report_summary(
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> dict:
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    summary = build_summary(db, current_user.id, today or today_in_app_timezone(), start=start, end=end)
    return asdict(summary)
