"""
Account administration endpoints (admin only).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.db.session import get_db
from shuttle.models.user import UserRole
from shuttle.schemas.common import Page
from shuttle.schemas.user import AdminUserCreate, UserResponse, UserUpdate
from shuttle.services import auth_service, user_service
from shuttle.core.security import require_admin

router = APIRouter(prefix="/admin/users", tags=["Users"], dependencies=[Depends(require_admin)])


@router.get("/", response_model=Page[UserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    users, total = await user_service.list_users(db, role, page, limit)
    return Page[UserResponse].build([UserResponse.model_validate(u) for u in users], total, page, limit)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(data: AdminUserCreate, db: AsyncSession = Depends(get_db)):
    """Create a staff or passenger account."""
    return await user_service.create_user(db, data)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return await auth_service.get_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: int, data: UserUpdate, db: AsyncSession = Depends(get_db)):
    return await user_service.update_user(db, user_id, data)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_user(user_id: int, db: AsyncSession = Depends(get_db)):
    await user_service.deactivate_user(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
