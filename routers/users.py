from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from routers.utils import get_current_user
from services.auth_service import AuthService
from services.errors import ServiceError, to_http_exception

router = APIRouter()

@router.get("/profile", response_model=schemas.UserResponse)
def get_user_profile(
    current_user: models.User = Depends(get_current_user)
):
    """Retrieve the current user's profile details"""
    return current_user

@router.put("/profile")
def update_user_profile(
    user_update: schemas.UserProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Update the current user's profile information"""
    try:
        user = AuthService(db).update_profile(current_user, user_update.model_dump(exclude_unset=True))
    except ServiceError as e:
        raise to_http_exception(e)

    return {
        "message": "User profile updated successfully",
        "user": schemas.UserResponse.model_validate(user),
    }
