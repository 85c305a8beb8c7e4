from __future__ import annotations

from sqlalchemy.orm import Session

from app.models.category import Category
from app.models.subscription import Subscription
from app.schemas.category import CategoryCreate, CategoryUpdate
from app.services.activity import log_activity
from app.services.errors import InvalidInput, NotFound


def _clean_name(raw: str | None) -> str:
    name = (raw or "").strip()
    if not name:
        raise InvalidInput("category name is required")
    return name


def get_category(db: Session, category_id: str, user_id: str) -> Category:
    category = db.query(Category).filter(Category.id == category_id, Category.user_id == user_id).first()
    if category is None:
        raise NotFound("category", category_id)
    return category


def list_categories(db: Session, user_id: str) -> list[Category]:
    return db.query(Category).filter(Category.user_id == user_id).order_by(Category.name.asc()).all()


def create_category(db: Session, user_id: str, data: CategoryCreate) -> Category:
    category = Category(user_id=user_id, name=_clean_name(data.name), color=data.color)
    db.add(category)
    db.commit()
    db.refresh(category)
    log_activity(db, user_id, "create", "category", category.id, {"name": category.name})
    return category


def update_category(db: Session, category_id: str, data: CategoryUpdate, user_id: str) -> Category:
    category = get_category(db, category_id, user_id)
    changes = data.model_dump(exclude_unset=True)
    if "name" in changes:
        changes["name"] = _clean_name(changes["name"])
    for field, value in changes.items():
        setattr(category, field, value)
    db.commit()
    db.refresh(category)
    log_activity(db, user_id, "update", "category", category.id, {"changes": changes})
    return category


def delete_category(db: Session, category_id: str, user_id: str) -> None:
    category = get_category(db, category_id, user_id)
    name = category.name
    # Detach explicitly so backends without ON DELETE SET NULL behave the same.
    for sub in db.query(Subscription).filter(Subscription.category_id == category.id).all():
        sub.category_id = None
    db.delete(category)
    db.commit()
    log_activity(db, user_id, "delete", "category", category_id, {"name": name})
