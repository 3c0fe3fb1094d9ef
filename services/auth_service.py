"""
Auth Service
Password hashing, credential checks and identity-provider (Firebase) sign-in
"""
import logging
import re
from typing import Optional, Tuple
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from google.oauth2 import id_token
from google.auth.transport import requests as google_requests
import models
from config import Settings, get_settings
from services.errors import ValidationError, ServiceError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

COUNTRY_CODE_PATTERN = re.compile(r"^\+[1-9]\d{0,2}$")
PHONE_NUMBER_PATTERN = re.compile(r"^\d{6,15}$")


class FirebaseAuthError(ServiceError):
    """The identity token could not be verified."""

    status_code = 401


class FirebaseNotConfiguredError(ServiceError):
    status_code = 500


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Accounts without a password hash (identity provider, system) never match."""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def validate_phone_number(country_code: Optional[str], phone_number: Optional[str]) -> None:
    """
    Country code and phone number go together: both present or both absent.

    Raises:
        ValidationError: If only one is given or either is malformed
    """
    if not country_code and not phone_number:
        return
    if not country_code or not phone_number:
        raise ValidationError("country_code and phone_number must be provided together")
    if not COUNTRY_CODE_PATTERN.match(country_code):
        raise ValidationError("Invalid country code format, expected e.g. +33")
    if not PHONE_NUMBER_PATTERN.match(phone_number):
        raise ValidationError("Invalid phone number format, expected 6 to 15 digits")


class AuthService:
    """User registration, login and profile management"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def get_user_by_email(self, email: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.email == email).first()

    def register(self, data) -> models.User:
        """
        Create a password account.

        Args:
            data: schemas.UserRegister

        Raises:
            ValidationError: Duplicate email or bad phone fields
        """
        validate_phone_number(data.country_code, data.phone_number)

        if self.get_user_by_email(data.email):
            raise ValidationError("Email already registered")

        user = models.User(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            password=hash_password(data.password),
            profile_picture=data.profile_picture,
            country_code=data.country_code,
            phone_number=data.phone_number,
            auth_provider="password",
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Registered user {user.user_id}")
        return user

    def authenticate(self, email: str, password: str) -> Optional[models.User]:
        user = self.get_user_by_email(email)
        if not user or not verify_password(password, user.password):
            return None
        return user

    def verify_firebase_token(self, token: str) -> dict:
        """
        Verify a Firebase ID token with Google's public certificates.

        Returns:
            Decoded claims (uid in "sub"/"user_id", email, name, picture)

        Raises:
            FirebaseNotConfiguredError: FIREBASE_PROJECT_ID is not set
            FirebaseAuthError: The token is invalid or expired
        """
        if not self.settings.FIREBASE_PROJECT_ID:
            raise FirebaseNotConfiguredError("Firebase not initialized")

        try:
            claims = id_token.verify_firebase_token(
                token,
                google_requests.Request(),
                audience=self.settings.FIREBASE_PROJECT_ID,
            )
        except ValueError as e:
            logger.warning(f"Firebase token rejected: {e}")
            raise FirebaseAuthError("Invalid Firebase token")

        if not claims:
            raise FirebaseAuthError("Invalid Firebase token")
        return claims

    def resolve_firebase_user(
        self,
        claims: dict,
        auth_provider: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Tuple[models.User, bool]:
        """
        Find the user for verified Firebase claims, linking or creating one.

        Lookup order: firebase_uid, then email (the uid is linked to the
        existing account), then a new account built from the claims.

        Returns:
            (user, created)
        """
        uid = claims.get("user_id") or claims.get("sub")
        email = claims.get("email")
        if not uid:
            raise FirebaseAuthError("Invalid Firebase token")

        user = self.db.query(models.User).filter(models.User.firebase_uid == uid).first()
        if user:
            return user, False

        if email:
            user = self.get_user_by_email(email)
            if user:
                user.firebase_uid = uid
                if not user.auth_provider or user.auth_provider == "password":
                    user.auth_provider = auth_provider or user.auth_provider
                if not user.profile_picture_url and claims.get("picture"):
                    user.profile_picture_url = claims.get("picture")
                self.db.commit()
                self.db.refresh(user)
                logger.info(f"Linked Firebase account to user {user.user_id}")
                return user, False

        if not email:
            raise ValidationError("Firebase account has no email address")

        name_parts = (claims.get("name") or "").split(" ", 1)
        user = models.User(
            first_name=first_name or name_parts[0] or email.split("@")[0],
            last_name=last_name or (name_parts[1] if len(name_parts) > 1 else ""),
            email=email,
            password=None,
            firebase_uid=uid,
            auth_provider=auth_provider or claims.get("firebase", {}).get("sign_in_provider"),
            profile_picture_url=claims.get("picture"),
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Created user {user.user_id} from Firebase sign-in")
        return user, True

    def update_profile(self, user: models.User, updates: dict) -> models.User:
        """
        Partially update a user's profile.

        Args:
            user: The user being updated
            updates: Fields set in the request (exclude_unset)

        Raises:
            ValidationError: Email taken by someone else or bad phone fields
        """
        country_code = updates.get("country_code", user.country_code)
        phone_number = updates.get("phone_number", user.phone_number)
        if "country_code" in updates or "phone_number" in updates:
            validate_phone_number(country_code, phone_number)

        email = updates.get("email")
        if email and email != user.email:
            existing = self.get_user_by_email(email)
            if existing and existing.user_id != user.user_id:
                raise ValidationError("Email already in use by another account")

        for field, value in updates.items():
            if field == "password":
                if value:
                    user.password = hash_password(value)
                continue
            setattr(user, field, value)

        self.db.commit()
        self.db.refresh(user)
        return user
