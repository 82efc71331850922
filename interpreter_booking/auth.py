import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt
from sqlalchemy.orm import Session, joinedload

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from .database import get_db
from .domain.bookings.context import ActingUser
from .domain.bookings.enums import UserStatus
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer()


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token for a user

    Args:
        user_id: Id stored in the "sub" claim
        expires_delta: Token lifetime (default ACCESS_TOKEN_EXPIRE_MINUTES)
    """
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": str(user_id), "exp": expire}
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_access_token(token: str) -> Optional[dict[str, Any]]:
    """Decode a JWT, returning None if it is invalid or expired"""
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the bearer token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    payload = verify_access_token(credentials.credentials)
    if not payload or not str(payload.get("sub", "")).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token")

    user = (
        db.query(User)
        .filter(User.id == int(payload["sub"]))
        .options(joinedload(User.profile))
        .first()
    )
    if not user:
        logger.warning(f"⚠️ Token for unknown user {payload['sub']}")
        raise HTTPException(status_code=401, detail="Invalid token")
    if user.status != UserStatus.ACTIVE:
        logger.warning(f"⚠️ Inactive user {user.id} attempted to authenticate")
        raise HTTPException(status_code=403, detail="Account is not active")

    logger.debug(f"✅ User authenticated: {user.email}")
    return user


async def get_acting_user(user: User = Depends(get_current_user)) -> ActingUser:
    return ActingUser.from_user(user)


async def require_admin(acting_user: ActingUser = Depends(get_acting_user)) -> ActingUser:
    """Use this dependency for routes only admins and super admins may call"""
    if not acting_user.is_admin:
        logger.warning(f"⚠️ User {acting_user.id} attempted an admin-only operation")
        raise HTTPException(status_code=403, detail="Admin access required")
    return acting_user
