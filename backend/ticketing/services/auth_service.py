"""
Authentication service handling user registration and login.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.models.user import User
from ticketing.schemas.user import UserCreate, UserLogin
from ticketing.core.config import get_settings
from ticketing.core.security import hash_password, verify_password, create_access_token
from ticketing.core.logging import get_logger

logger = get_logger(__name__)


def is_staff_email(email: str) -> bool:
    """Staff accounts are the ones registered with an address from STAFF_EMAILS."""
    return email.lower() in {address.lower() for address in get_settings().STAFF_EMAILS}


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new user with hashed password.
    Raises 409 if email or username already exists.
    """
    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="email_exists", email=user_data.email)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    result = await db.execute(select(User).where(User.username == user_data.username))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="username_exists", username=user_data.username)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already taken",
        )

    user = User(
        email=user_data.email,
        username=user_data.username,
        hashed_password=hash_password(user_data.password),
        is_staff=is_staff_email(user_data.email),
    )
    db.add(user)
    await db.commit()

    logger.info("user_registered", user_id=user.id, email=user.email, is_staff=user.is_staff)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate user and return JWT access token.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    token = create_access_token(data={"sub": user.id})
    logger.info("user_logged_in", user_id=user.id)
    return token
