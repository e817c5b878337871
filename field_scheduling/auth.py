import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, SECRET_KEY
from .database import get_db
from .errors import ForbiddenError, UnauthenticatedError
from .models import User

logger = logging.getLogger(__name__)

# auto_error=False so a missing header reaches our handler as Unauthenticated
security = HTTPBearer(auto_error=False)

# Roles allowed to mutate schedules, statuses and confirmation requests
ELEVATED_ROLES = {"admin", "editor"}


def is_elevated(user: Optional[User]) -> bool:
    return bool(user and user.role in ELEVATED_ROLES)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT for an operator"""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": str(user_id), "exp": expire, "type": "access"}
    return jwt.encode(payload, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """Return the user id from a valid token or raise UnauthenticatedError"""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"❌ JWT verification failed: {e}")
        raise UnauthenticatedError("Invalid or expired session") from e

    subject = payload.get("sub")
    if payload.get("type") != "access" or not subject:
        raise UnauthenticatedError("Invalid or expired session")
    try:
        return int(subject)
    except ValueError as e:
        raise UnauthenticatedError("Invalid or expired session") from e


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the operator behind the Bearer token"""
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Not authenticated")

    user_id = decode_access_token(credentials.credentials)
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        logger.warning(f"⚠️ Token for unknown or inactive user {user_id}")
        raise UnauthenticatedError("Not authenticated")
    return user


async def require_elevated_user(current_user: User = Depends(get_current_user)) -> User:
    """Only admins and editors may change schedules"""
    if not is_elevated(current_user):
        logger.warning(f"🔒 User {current_user.id} ({current_user.role}) denied elevated action")
        raise ForbiddenError("You do not have permission to perform this action")
    return current_user
