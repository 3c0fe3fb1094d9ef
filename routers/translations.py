from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging
import models
import schemas
from database import get_db
from routers.utils import get_current_user, get_request_language
from services.localization_service import LocalizationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=schemas.TranslationsResponse)
def get_translations(
    language: str = Depends(get_request_language),
    db: Session = Depends(get_db)
):
    """Translations for ?lang=, else the Accept-Language header, falling back to English."""
    return LocalizationService(db).get_translations(language)


@router.post("/import")
def import_translations(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Load the translation JSON files into the database."""
    try:
        count = LocalizationService(db).import_translations_from_json()
    except FileNotFoundError as e:
        logger.error(f"Translation import failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to import translations"
        )

    logger.info(f"User {current_user.user_id} imported {count} translations")
    return {"message": "Translations imported successfully"}
