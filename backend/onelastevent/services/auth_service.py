"""
Authentication service handling user registration and login.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.models.user import User
from onelastevent.schemas.user import UserCreate, UserLogin
from onelastevent.domain.errors import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    AccountDisabledError,
)
from onelastevent.core.security import hash_password, verify_password, create_access_token
from onelastevent.core.logging import get_logger

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new user with hashed password.
    Raises EmailAlreadyRegisteredError (409) if the email is taken.
    """
    email = normalize_email(user_data.email)

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="email_exists", email=email)
        raise EmailAlreadyRegisteredError()

    user = User(
        email=email,
        full_name=user_data.full_name,
        hashed_password=hash_password(user_data.password),
        role=user_data.role,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent sign-up with the same email
        raise EmailAlreadyRegisteredError()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, email=user.email, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate user and return JWT access token carrying id and role.
    Raises InvalidCredentialsError (401) or AccountDisabledError (403).
    """
    email = normalize_email(login_data.email)
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=email)
        raise InvalidCredentialsError()

    if not user.is_active:
        logger.warning("login_refused", reason="account_disabled", user_id=user.id)
        raise AccountDisabledError()

    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    logger.info("user_logged_in", user_id=user.id)
    return token
