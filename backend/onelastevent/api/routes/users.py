"""
User account endpoints: own profile and admin management.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.db.session import get_db
from onelastevent.schemas.user import (
    UserResponse, UserUpdate, PasswordChange, AdminUserUpdate, UserListResponse,
)
from onelastevent.services import user_service
from onelastevent.core.security import CurrentUser, get_current_user, require_admin

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_me_endpoint(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_user(db, user.user_id)


@router.patch("/me", response_model=UserResponse)
async def update_me_endpoint(
    changes: UserUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.update_profile(db, user.user_id, changes)


@router.post("/me/change-password")
async def change_password_endpoint(
    change: PasswordChange,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await user_service.change_password(db, user.user_id, change)
    return {"message": "Password changed successfully"}


@router.get("", response_model=UserListResponse)
async def list_users_endpoint(
    role: Optional[Literal["USER", "ORGANIZER", "ADMIN"]] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All accounts. Admin only."""
    users, total = await user_service.list_users(
        db, role=role, is_active=is_active, search=search, page=page, page_size=page_size
    )
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_endpoint(
    user_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_user_for_requester(db, user_id, user.user_id, user.is_admin)


@router.patch("/{user_id}", response_model=UserResponse)
async def admin_update_user_endpoint(
    user_id: int,
    changes: AdminUserUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Change email, name, role or active flag. Admin only."""
    return await user_service.admin_update_user(db, user_id, changes, admin.user_id)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user_endpoint(
    user_id: int,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete an account without history. Admin only, never yourself."""
    await user_service.delete_user(db, user_id, admin.user_id)
