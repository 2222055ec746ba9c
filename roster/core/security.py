"""
Accounts and bearer-token authentication.

Users sign in with a username and password and receive an HS256 JWT whose
``sub`` claim is the username. Two roles exist: ``admin`` (the admin console
endpoints) and ``user``. Uploads and stored rows are stamped with
``User.owner_id``.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import Session

from roster.db.session import Base, get_db, get_engine
from .config import settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ROLE_ADMIN = "admin"
ROLE_USER = "user"
VALID_ROLES = {ROLE_ADMIN, ROLE_USER}
MIN_PASSWORD_LENGTH = 8

bearer_scheme = HTTPBearer()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Login account; admins additionally reach the admin console."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(150), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=ROLE_USER, server_default=ROLE_USER)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    @property
    def owner_id(self) -> str:
        return str(self.id)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign ``data`` with an ``exp`` claim; defaults to the configured user token lifetime."""
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = dict(data, exp=_utcnow() + lifetime)
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def _find_user(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    """Return the user when the password matches, otherwise None."""
    user = _find_user(db, username)
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user; 401 otherwise."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(credentials.credentials, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        raise unauthorized

    username = payload.get("sub")
    if not username:
        raise unauthorized

    user = _find_user(db, username)
    if user is None or not user.is_active:
        raise unauthorized
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return current_user


def create_user(
    db: Session,
    username: str,
    password: str,
    full_name: Optional[str] = None,
    role: str = ROLE_USER,
) -> User:
    """
    Create an account.

    Raises:
        HTTPException(400): unknown role, taken username or a short password.
    """
    if role not in VALID_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role '{role}'. Must be one of {sorted(VALID_ROLES)}",
        )
    if _find_user(db, username) is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already registered")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )

    user = User(
        username=username,
        hashed_password=get_password_hash(password),
        full_name=full_name,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s account '%s'", role, username)
    return user


def admin_exists(db: Session) -> bool:
    return db.query(User.id).filter(User.role == ROLE_ADMIN).first() is not None


def init_auth_tables() -> None:
    Base.metadata.create_all(bind=get_engine(), tables=[User.__table__])
