"""
Account endpoints. Registration decides the caller's role (addresses in
ADMIN_EMAILS become admins); login returns the bearer token the event and
booking endpoints expect.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbooth.db.session import get_db
from ticketbooth.schemas.user import Token, UserCreate, UserLogin, UserResponse
from ticketbooth.services.auth_service import authenticate_user, register_user

router = APIRouter(prefix="/auth", tags=["Accounts"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_endpoint(account: UserCreate, db: AsyncSession = Depends(get_db)):
    """Create a user or admin account. 409 if the email is taken."""
    return await register_user(db, account)


@router.post("/login", response_model=Token)
async def login_endpoint(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    """Exchange email and password for a token carrying the caller's id and role."""
    return Token(access_token=await authenticate_user(db, credentials))
