from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import timedelta
import logging
import models
import schemas
from config import get_settings
from database import get_db
from routers.utils import (
    get_current_user,
    create_access_token,
    create_token_pair,
    token_claims,
    verify_token,
    REFRESH_TOKEN_TYPE,
)
from services.auth_service import AuthService
from services.errors import ServiceError, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()


def user_summary(user: models.User) -> dict:
    return schemas.UserSummary.model_validate(user).model_dump()


# ============ PASSWORD AUTH ============

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(user_data: schemas.UserRegister, db: Session = Depends(get_db)):
    """
    Register a new password account.

    Phone fields are optional but must be given together
    (country code like +33, 6-15 digit number).
    """
    try:
        AuthService(db).register(user_data)
    except ServiceError as e:
        raise to_http_exception(e)
    return {"message": "User registered successfully"}


@router.post("/login", response_model=schemas.TokenPair)
def login(user_data: schemas.UserLogin, db: Session = Depends(get_db)):
    """
    Authenticate user and return an access/refresh token pair.

    The access token should be included in subsequent requests as:
    Authorization: Bearer <token>
    """
    user = AuthService(db).authenticate(user_data.email, user_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {**create_token_pair(user), "user": user_summary(user)}


@router.post("/refresh", response_model=schemas.AccessTokenResponse)
def refresh(body: schemas.RefreshTokenRequest, db: Session = Depends(get_db)):
    """Exchange a refresh token for a new access token."""
    payload = verify_token(body.refresh_token, expected_type=REFRESH_TOKEN_TYPE)

    user = db.query(models.User).filter(models.User.user_id == payload.get("user_id")).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    settings = get_settings()
    expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return {
        "token": create_access_token(token_claims(user), expires_delta=expires_delta),
        "expires_in": int(expires_delta.total_seconds()),
    }


@router.post("/logout")
def logout(body: schemas.RefreshTokenRequest):
    """
    Logout endpoint.

    Tokens are stateless: the refresh token is checked and the client
    discards both tokens.
    """
    verify_token(body.refresh_token, expected_type=REFRESH_TOKEN_TYPE)
    return {"message": "Successfully logged out"}


@router.get("/validate")
def validate(current_user: models.User = Depends(get_current_user)):
    """Check that the bearer access token is still valid."""
    return {"valid": True, "user": user_summary(current_user)}


# ============ FIREBASE ============

@router.post("/firebase", response_model=schemas.TokenPair)
def firebase_login(body: schemas.FirebaseLoginRequest, db: Session = Depends(get_db)):
    """
    Sign in with a Firebase ID token (Google, Apple, ...).

    Finds the user by Firebase uid, then by email (linking the uid), or
    creates a new account from the token claims.
    """
    service = AuthService(db)
    try:
        claims = service.verify_firebase_token(body.id_token)
        user, created = service.resolve_firebase_user(
            claims,
            auth_provider=body.auth_provider,
            first_name=body.first_name,
            last_name=body.last_name,
        )
    except ServiceError as e:
        raise to_http_exception(e)

    if created:
        logger.info(f"New user {user.user_id} signed up through Firebase")
    return {**create_token_pair(user), "user": user_summary(user)}
