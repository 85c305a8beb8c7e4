from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user
from app.core.settings import today_in_app_timezone
from app.models.subscription import Subscription
from app.schemas.subscription import (
    BulkDeleteRequest,
    CategoryOut,
    HistoryEntryResponse,
    ReminderCreate,
    ReminderResponse,
    ReminderUpdate,
    RenewalInput,
    SetActiveRequest,
    SubscriptionCreate,
    SubscriptionFilter,
    SubscriptionResponse,
    SubscriptionStatus,
    SubscriptionUpdate,
)
from app.services import history as history_service
from app.services import subscriptions as subscription_service
from app.services.lifecycle import classify, days_until_expiry, due_reminders
from app.services.renewal import renew


router = APIRouter(dependencies=[Depends(get_current_user)])


def to_response(sub: Subscription, today: date) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=sub.id,
        user_id=sub.user_id,
        service_name=sub.service_name,
        domain_name=sub.domain_name,
        vendor=sub.vendor,
        vendor_link=sub.vendor_link,
        email=sub.email,
        username=sub.username,
        password=sub.password,
        notes=sub.notes,
        purchase_date=sub.purchase_date,
        expiry_date=sub.expiry_date,
        purchase_amount_pkr=sub.purchase_amount_pkr,
        purchase_amount_usd=sub.purchase_amount_usd,
        is_active=bool(sub.is_active),
        category_id=sub.category_id,
        category=(CategoryOut.model_validate(sub.category) if sub.category is not None else None),
        status=classify(sub, today),
        days_until_expiry=days_until_expiry(sub.expiry_date, today),
        reminders=[ReminderResponse.model_validate(r) for r in (sub.reminders or [])],
        created_at=sub.created_at,
    )


@router.get("/subscriptions", response_model=List[SubscriptionResponse])
async def list_subscriptions(
    status: Optional[List[SubscriptionStatus]] = Query(default=None),
    category_id: Optional[List[str]] = Query(default=None),
    search: Optional[str] = None,
    today: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    today = today or today_in_app_timezone()
    flt = SubscriptionFilter(statuses=status or [], category_ids=category_id or [], search=search)
    subs = subscription_service.list_subscriptions(db, current_user.id, today, flt)
    return [to_response(s, today) for s in subs]


@router.post("/subscriptions", response_model=SubscriptionResponse, status_code=201)
async def create_subscription(
    body: SubscriptionCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    sub = subscription_service.create_subscription(db, current_user.id, body)
    sub = subscription_service.get_subscription(db, sub.id, current_user.id)
    return to_response(sub, today_in_app_timezone())


@router.post("/subscriptions/bulk-delete")
async def bulk_delete_subscriptions(
    body: BulkDeleteRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> dict:
    deleted = subscription_service.delete_subscriptions(db, body.ids, current_user.id)
    return {"ok": True, "deleted": deleted}


@router.get("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(
    subscription_id: str,
    today: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    sub = subscription_service.get_subscription(db, subscription_id, current_user.id)
    return to_response(sub, today or today_in_app_timezone())


@router.patch("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
async def update_subscription(
    subscription_id: str,
    body: SubscriptionUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    subscription_service.update_subscription(db, subscription_id, body, current_user.id)
    sub = subscription_service.get_subscription(db, subscription_id, current_user.id)
    return to_response(sub, today_in_app_timezone())


@router.delete("/subscriptions/{subscription_id}", status_code=204)
async def delete_subscription(
    subscription_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    subscription_service.delete_subscription(db, subscription_id, current_user.id)
    return Response(status_code=204)


@router.post("/subscriptions/{subscription_id}/renew", response_model=SubscriptionResponse)
async def renew_subscription(
    subscription_id: str,
    body: RenewalInput,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    renew(db, subscription_id, body, current_user.id)
    sub = subscription_service.get_subscription(db, subscription_id, current_user.id)
    return to_response(sub, today_in_app_timezone())


@router.post("/subscriptions/{subscription_id}/active", response_model=SubscriptionResponse)
async def set_subscription_active(
    subscription_id: str,
    body: SetActiveRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    subscription_service.set_active(db, subscription_id, body.active, current_user.id)
    sub = subscription_service.get_subscription(db, subscription_id, current_user.id)
    return to_response(sub, today_in_app_timezone())


@router.get("/subscriptions/{subscription_id}/history", response_model=List[HistoryEntryResponse])
async def subscription_history(
    subscription_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return history_service.list_history(db, subscription_id, current_user.id)


@router.get("/subscriptions/{subscription_id}/due-reminders", response_model=List[ReminderResponse])
async def subscription_due_reminders(
    subscription_id: str,
    today: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    sub = subscription_service.get_subscription(db, subscription_id, current_user.id)
    return due_reminders(sub, today or today_in_app_timezone())


@router.post("/subscriptions/{subscription_id}/reminders", response_model=ReminderResponse, status_code=201)
async def add_reminder(
    subscription_id: str,
    body: ReminderCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return subscription_service.add_reminder(db, subscription_id, body, current_user.id)


@router.patch("/reminders/{reminder_id}", response_model=ReminderResponse)
async def update_reminder(
    reminder_id: str,
    body: ReminderUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return subscription_service.update_reminder(db, reminder_id, body, current_user.id)


@router.delete("/reminders/{reminder_id}", status_code=204)
async def delete_reminder(
    reminder_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    subscription_service.delete_reminder(db, reminder_id, current_user.id)
    return Response(status_code=204)


@router.get("/history", response_model=List[HistoryEntryResponse])
async def user_history(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return history_service.list_user_history(db, current_user.id, start=start, end=end)
