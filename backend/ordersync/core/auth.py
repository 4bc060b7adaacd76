"""
JWT bearer authentication for the management endpoints
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from ordersync.core.database import get_db
from ordersync.core.config import settings
from ordersync.core.exceptions import AuthenticationError, AuthorizationError
from ordersync.models.user import User

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60
SERVICE_ROLE = "service"

security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


def _bearer_payload(credentials: Optional[HTTPAuthorizationCredentials]) -> dict:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing Authorization header")
    return decode_access_token(credentials.credentials)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the caller from the bearer token"""
    payload = _bearer_payload(credentials)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token subject")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise AuthenticationError("Unknown or inactive user")

    return user


async def require_service_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    """Scheduler/internal calls carry a token with role=service"""
    payload = _bearer_payload(credentials)
    if payload.get("role") != SERVICE_ROLE:
        raise AuthorizationError("Service token required")
    return payload
