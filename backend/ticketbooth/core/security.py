"""
Identity: password hashing, JWT issuance and caller resolution.

The allocation engine only ever sees a ``Caller`` (id + role) and trusts it.
Role checks go through ``ensure_role`` so every operation applies the same rule.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from ticketbooth.core.config import get_settings
from ticketbooth.core.exceptions import AuthenticationError, ForbiddenError

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Caller:
    id: int
    role: Role
    email: Optional[str] = None


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    secret = password.encode("utf-8")[:72]
    return bcrypt.hashpw(secret, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8")[:72], hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_caller_token(user_id: int, role: Role, email: Optional[str] = None) -> str:
    claims = {"sub": str(user_id), "role": Role(role).value}
    if email:
        claims["email"] = email
    return create_access_token(claims)


def decode_caller(token: str) -> Caller:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except JWTError:
        raise AuthenticationError("Invalid token")

    try:
        return Caller(
            id=int(payload["sub"]),
            role=Role(payload.get("role", Role.USER.value)),
            email=payload.get("email"),
        )
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Invalid token")


async def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Caller:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authorization header is missing")
    return decode_caller(credentials.credentials)


def ensure_role(caller: Caller, role: Role) -> None:
    if caller.role != role:
        raise ForbiddenError()
