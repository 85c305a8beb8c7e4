from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user
from app.schemas.notification import NotificationResponse, UnreadCountResponse
from app.services import notifications as notification_service


router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/notifications", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return notification_service.list_notifications(db, current_user.id, unread_only=unread_only, limit=limit, offset=offset)


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def unread_count(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    return UnreadCountResponse(unread=notification_service.unread_count(db, current_user.id))


@router.post("/notifications/read-all")
async def mark_all_read(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)) -> dict:
    return {"ok": True, "updated": notification_service.mark_all_read(db, current_user.id)}


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return notification_service.mark_read(db, notification_id, current_user.id)
