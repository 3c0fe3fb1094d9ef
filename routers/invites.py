from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging
import models
from database import get_db
from routers.utils import get_current_user
from services.errors import ServiceError, to_http_exception
from services.invite_service import InviteService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{code}")
def validate_invite(code: str, db: Session = Depends(get_db)):
    """
    Public invite lookup for the landing page.

    Expired invites answer 410; already accepted ones answer valid=false.
    """
    try:
        return InviteService(db).validate_invite(code)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post("/{code}/accept")
def accept_invite(
    code: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Join the event an invite points to."""
    try:
        event_id = InviteService(db).accept_invite(code, current_user)
    except ServiceError as e:
        raise to_http_exception(e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to accept invite {code}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to accept invite"
        )

    return {"message": "Successfully joined event", "event_id": event_id}
