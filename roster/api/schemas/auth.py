"""
Request and response bodies for account and admin sign-in.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserLogin(BaseModel):
    username: str = Field(..., min_length=1)
    password: str


class UserRegister(BaseModel):
    """New account; the role is assigned server-side."""
    username: str = Field(..., min_length=3, max_length=150)
    password: str
    full_name: Optional[str] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    """Public view of an account."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    role: str
    full_name: Optional[str] = None
    is_active: bool
    created_at: datetime


class AuthResponse(BaseModel):
    success: bool
    token: Token
    user: UserResponse


class AdminLoginResponse(BaseModel):
    """Admin console sign-in; ``token`` is the raw long-lived JWT."""
    success: bool
    token: str
    admin: UserResponse
