from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user
from app.core.settings import today_in_app_timezone
from app.models.profile import Profile
from app.models.subscription import Subscription
from app.schemas.notification import ActivityLogResponse
from app.services.activity import list_activity
from app.services.reporting import status_counts


router = APIRouter(dependencies=[Depends(get_current_user)])


class MeResponse(BaseModel):
    id: str
    email: str
    full_name: str | None = None
    subscriptions: dict[str, int]


@router.get("/me", response_model=MeResponse)
async def me(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    profile = db.query(Profile).filter(Profile.id == current_user.id).first()
    subs = db.query(Subscription).filter(Subscription.user_id == current_user.id).all()
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        full_name=(profile.full_name if profile else None),
        subscriptions=status_counts(subs, today_in_app_timezone()),
    )


@router.get("/activity", response_model=List[ActivityLogResponse])
async def activity(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return list_activity(db, current_user.id, start=start, end=end, limit=limit, offset=offset)
