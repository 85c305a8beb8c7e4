from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user
from app.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from app.services import categories as category_service


router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    return category_service.list_categories(db, current_user.id)


@router.post("/categories", response_model=CategoryResponse, status_code=201)
async def create_category(
    body: CategoryCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return category_service.create_category(db, current_user.id, body)


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: str,
    body: CategoryUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return category_service.update_category(db, category_id, body, current_user.id)


@router.delete("/categories/{category_id}", status_code=204)
async def delete_category(
    category_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    category_service.delete_category(db, category_id, current_user.id)
    return Response(status_code=204)
