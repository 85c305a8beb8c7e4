from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    INACTIVE = "inactive"


class ReminderCreate(BaseModel):
    days_before: int = Field(ge=0)
    enabled: bool = True


class ReminderUpdate(BaseModel):
    days_before: Optional[int] = Field(default=None, ge=0)
    enabled: Optional[bool] = None


class ReminderResponse(BaseModel):
    id: str
    subscription_id: str
    days_before: int
    enabled: bool

    class Config:
        from_attributes = True


class SubscriptionCreate(BaseModel):
    service_name: str
    domain_name: Optional[str] = None
    vendor: Optional[str] = None
    vendor_link: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    notes: Optional[str] = None
    purchase_date: date
    expiry_date: date
    purchase_amount_pkr: Decimal = Decimal("0")
    purchase_amount_usd: Optional[Decimal] = None
    is_active: bool = True
    category_id: Optional[str] = None
    # None means "use the default reminder set"; [] means no reminders.
    reminders: Optional[List[ReminderCreate]] = None

    @field_validator("service_name")
    @classmethod
    def _service_name_not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("service_name is required")
        return v


class SubscriptionUpdate(BaseModel):
    """Fields the edit form may change. Renewal and the active flag have their own operations."""

    service_name: Optional[str] = None
    domain_name: Optional[str] = None
    vendor: Optional[str] = None
    vendor_link: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    notes: Optional[str] = None
    purchase_date: Optional[date] = None
    expiry_date: Optional[date] = None
    purchase_amount_pkr: Optional[Decimal] = None
    purchase_amount_usd: Optional[Decimal] = None
    category_id: Optional[str] = None

    @field_validator("service_name")
    @classmethod
    def _service_name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("service_name must not be blank")
        return v


class RenewalInput(BaseModel):
    """The new billing period. vendor/vendor_link are carried over or replaced by the caller."""

    purchase_date: date
    expiry_date: date
    purchase_amount_pkr: Decimal
    purchase_amount_usd: Optional[Decimal] = None
    vendor: Optional[str] = None
    vendor_link: Optional[str] = None


class SetActiveRequest(BaseModel):
    active: bool


class BulkDeleteRequest(BaseModel):
    ids: List[str]


class SubscriptionFilter(BaseModel):
    statuses: List[SubscriptionStatus] = []
    category_ids: List[str] = []
    search: Optional[str] = None


class CategoryOut(BaseModel):
    id: str
    name: str
    color: Optional[str] = None

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    id: str
    user_id: str
    service_name: str
    domain_name: Optional[str] = None
    vendor: Optional[str] = None
    vendor_link: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    notes: Optional[str] = None
    purchase_date: date
    expiry_date: date
    purchase_amount_pkr: Decimal
    purchase_amount_usd: Optional[Decimal] = None
    is_active: bool
    category_id: Optional[str] = None
    category: Optional[CategoryOut] = None
    status: SubscriptionStatus
    days_until_expiry: int
    reminders: List[ReminderResponse] = []
    created_at: Optional[datetime] = None


class HistoryEntryResponse(BaseModel):
    id: int
    subscription_id: str
    service_name: Optional[str] = None
    purchase_date: date
    expiry_date: date
    purchase_amount_pkr: Decimal
    purchase_amount_usd: Optional[Decimal] = None
    vendor: Optional[str] = None
    vendor_link: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
