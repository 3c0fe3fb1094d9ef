from fastapi import Depends, HTTPException, status, Header, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import models
from config import get_settings
from database import get_db
from services.localization_service import detect_language

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# Security scheme
# Use auto_error=False to handle missing/invalid tokens ourselves
security = HTTPBearer(auto_error=False)


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def token_claims(user: models.User) -> dict:
    """Identity claims carried by both access and refresh tokens."""
    return {
        "user_id": user.user_id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
    }


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None, token_type: str = ACCESS_TOKEN_TYPE):
    """
    Create a signed JWT.

    Args:
        data: Dictionary containing user data to encode in token
        expires_delta: Optional custom expiration time
        token_type: "access" or "refresh"

    Returns:
        Encoded JWT token string
    """
    settings = get_settings()
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "token_type": token_type})
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return encoded_jwt


def create_refresh_token(user: models.User) -> str:
    settings = get_settings()
    return create_access_token(
        token_claims(user),
        expires_delta=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        token_type=REFRESH_TOKEN_TYPE,
    )


def create_token_pair(user: models.User) -> dict:
    """
    Issue an access/refresh token pair for a user.

    Returns:
        {"token", "refresh_token", "expires_in"} where expires_in is the
        access token lifetime in seconds
    """
    settings = get_settings()
    expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return {
        "token": create_access_token(token_claims(user), expires_delta=expires_delta),
        "refresh_token": create_refresh_token(user),
        "expires_in": int(expires_delta.total_seconds()),
    }


def verify_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string
        expected_type: Required value of the token_type claim

    Returns:
        Decoded token payload

    Raises:
        HTTPException: If token is invalid, expired or of the wrong type
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        raise _credentials_exception()

    if payload.get("token_type") != expected_type:
        raise _credentials_exception()
    return payload


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> models.User:
    """
    Dependency for getting the current authenticated user from JWT token.

    Only access tokens are accepted; a refresh token presented as a bearer
    token is rejected.

    Raises:
        HTTPException: 401 if token is missing/invalid or user not found
    """
    if not credentials or not credentials.credentials:
        raise _credentials_exception()

    payload = verify_token(credentials.credentials)

    user_id = payload.get("user_id")
    if user_id is None:
        raise _credentials_exception("Invalid authentication credentials")

    user = db.query(models.User).filter(models.User.user_id == user_id).first()
    if not user:
        raise _credentials_exception("User not found")

    return user


def get_request_language(
    lang: Optional[str] = Query(None, description="Explicit language code"),
    accept_language: Optional[str] = Header(None, alias="Accept-Language"),
) -> str:
    """Request language: ?lang= wins, otherwise the Accept-Language header."""
    if lang:
        return lang.lower()
    return detect_language(accept_language or "")
