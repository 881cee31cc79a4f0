"""
User accounts: profile, password and admin management.

Deleting is only allowed for accounts without history. Accounts referenced by
any event, inscription or payment are deactivated instead.
"""

from typing import Optional

from sqlalchemy import select, delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.models.event import Event
from onelastevent.models.inscription import Inscription
from onelastevent.models.payment import Payment
from onelastevent.models.user import User
from onelastevent.schemas.user import UserUpdate, PasswordChange, AdminUserUpdate
from onelastevent.domain.errors import (
    NotFoundError,
    ForbiddenError,
    InvalidStateError,
    InvalidPasswordError,
    EmailAlreadyRegisteredError,
)
from onelastevent.services.auth_service import normalize_email
from onelastevent.core.security import hash_password, verify_password
from onelastevent.core.logging import get_logger

logger = get_logger(__name__)


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise NotFoundError.user()
    return user


async def get_user_for_requester(
    db: AsyncSession, user_id: int, requester_id: int, is_admin: bool = False
) -> User:
    """A user's own account, or any account for admins."""
    if not is_admin and user_id != requester_id:
        raise ForbiddenError("You can only view your own account")
    return await get_user(db, user_id)


async def update_profile(db: AsyncSession, user_id: int, changes: UserUpdate) -> User:
    user = await get_user(db, user_id)
    if changes.full_name is not None:
        user.full_name = changes.full_name
    await db.flush()
    await db.refresh(user)

    logger.info("profile_updated", user_id=user_id, fields=sorted(changes.model_fields_set))
    return user


async def change_password(db: AsyncSession, user_id: int, change: PasswordChange) -> None:
    """
    Replace the password after checking the current one.

    Raises:
        InvalidPasswordError: current_password does not match
    """
    user = await get_user(db, user_id)
    if not verify_password(change.current_password, user.hashed_password):
        logger.warning("password_change_failed", user_id=user_id)
        raise InvalidPasswordError()

    user.hashed_password = hash_password(change.new_password)
    await db.flush()
    logger.info("password_changed", user_id=user_id)


async def list_users(
    db: AsyncSession,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[User], int]:
    query = select(User)
    if role:
        query = query.where(User.role == role)
    if is_active is not None:
        query = query.where(User.is_active == is_active)
    if search:
        term = f"%{search}%"
        query = query.where(or_(User.email.ilike(term), User.full_name.ilike(term)))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def admin_update_user(
    db: AsyncSession, user_id: int, changes: AdminUserUpdate, requester_id: int
) -> User:
    """
    Change any account's email, name, role or active flag.

    Admins cannot demote or deactivate themselves.

    Raises:
        NotFoundError: Unknown user
        EmailAlreadyRegisteredError: The new email belongs to another account
        ForbiddenError: Self-demotion or self-deactivation
    """
    user = await get_user(db, user_id)
    values = changes.model_dump(exclude_unset=True, exclude_none=True)

    if user_id == requester_id and (
        values.get("role", user.role) != user.role or values.get("is_active") is False
    ):
        raise ForbiddenError("Admins cannot demote or deactivate themselves")

    if "email" in values:
        values["email"] = normalize_email(values["email"])
        if values["email"] != user.email:
            taken = await db.execute(
                select(User.id).where(User.email == values["email"], User.id != user_id)
            )
            if taken.scalar_one_or_none() is not None:
                raise EmailAlreadyRegisteredError()

    for field, value in values.items():
        setattr(user, field, value)
    try:
        await db.flush()
    except IntegrityError:
        raise EmailAlreadyRegisteredError()
    await db.refresh(user)

    logger.info(
        "user_updated_by_admin",
        user_id=user_id,
        admin_id=requester_id,
        fields=sorted(values),
    )
    return user


async def _has_history(db: AsyncSession, user_id: int) -> bool:
    for model, column in (
        (Event, Event.organizer_id),
        (Inscription, Inscription.user_id),
        (Payment, Payment.user_id),
    ):
        found = await db.execute(select(model.id).where(column == user_id).limit(1))
        if found.scalar_one_or_none() is not None:
            return True
    return False


async def delete_user(db: AsyncSession, user_id: int, requester_id: int) -> None:
    """
    Raises:
        ForbiddenError: Admins cannot delete their own account
        NotFoundError: Unknown user
        InvalidStateError: The user is referenced by existing records
    """
    if user_id == requester_id:
        raise ForbiddenError("You cannot delete your own account")

    user = await get_user(db, user_id)
    if await _has_history(db, user_id):
        raise InvalidStateError(
            "Users with registration history cannot be deleted, deactivate them instead"
        )

    await db.execute(
        delete(User).where(User.id == user_id).execution_options(synchronize_session=False)
    )
    db.expunge(user)
    logger.info("user_deleted", user_id=user_id, admin_id=requester_id)
