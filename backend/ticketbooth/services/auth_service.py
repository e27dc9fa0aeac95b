"""
Account service: registration and login.
Tokens carry the user id and role that the allocation engine trusts.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbooth.core.config import get_settings
from ticketbooth.core.exceptions import AuthenticationError, ConflictError, ForbiddenError
from ticketbooth.core.logging import get_logger
from ticketbooth.core.security import Role, create_caller_token, hash_password, verify_password
from ticketbooth.db.session import atomic
from ticketbooth.models.user import User
from ticketbooth.schemas.user import UserCreate, UserLogin

logger = get_logger(__name__)
settings = get_settings()


def role_for_email(email: str) -> Role:
    admins = {address.lower() for address in settings.ADMIN_EMAILS}
    return Role.ADMIN if email.lower() in admins else Role.USER


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new user with hashed password.
    Raises 409 if the email is already registered.
    """
    async with atomic(db, "Something went wrong while signing up"):
        result = await db.execute(select(User).where(User.email == user_data.email))
        if result.scalar_one_or_none():
            logger.warning("registration_failed", reason="email_exists", email=user_data.email)
            raise ConflictError("User already exists")

        user = User(
            name=user_data.name,
            email=user_data.email,
            hashed_password=hash_password(user_data.password),
            role=role_for_email(user_data.email).value,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as e:
            # A concurrent registration won the unique email index
            logger.warning("registration_failed", reason="email_exists", email=user_data.email)
            raise ConflictError("User already exists") from e

    logger.info("user_registered", user_id=user.id, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate user and return JWT access token.
    Raises 401 if credentials are invalid.
    """
    async with atomic(db, "Something went wrong while logging in"):
        result = await db.execute(select(User).where(User.email == login_data.email))
        user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise ForbiddenError("Account is deactivated")

    token = create_caller_token(user.id, Role(user.role), user.email)
    logger.info("user_logged_in", user_id=user.id)
    return token
