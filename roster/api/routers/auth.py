"""
Account registration, login and the current-user lookup.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from roster.api.schemas.auth import AuthResponse, Token, UserLogin, UserRegister, UserResponse
from roster.core.security import (
    ROLE_ADMIN,
    ROLE_USER,
    User,
    authenticate_user,
    create_access_token,
    create_user,
    get_current_user,
)
from roster.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


def _no_accounts_yet(db: Session) -> bool:
    return (db.query(func.count(User.id)).scalar() or 0) == 0


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        success=True,
        token=Token(access_token=create_access_token(data={"sub": user.username})),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=AuthResponse)
async def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """
    Create an account and sign it in.

    The very first account on a fresh deployment is made an admin.
    """
    role = ROLE_ADMIN if _no_accounts_yet(db) else ROLE_USER
    user = create_user(
        db=db,
        username=user_data.username,
        password=user_data.password,
        full_name=user_data.full_name,
        role=role,
    )
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    user = authenticate_user(db, credentials.username, credentials.password)
    if user is None or not user.is_active:
        logger.info("Rejected login for '%s'", credentials.username)
        raise HTTPException(status_code=401, detail="Incorrect username or password")
    return _auth_response(user)


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """Profile of the bearer token's owner."""
    return UserResponse.model_validate(current_user)
