from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging
import models
import schemas
from database import get_db
from routers.utils import get_current_user
from services.errors import ServiceError, to_http_exception
from services.gift_service import GiftService
from services.gift_suggestion_service import GiftGenerationError

logger = logging.getLogger(__name__)

router = APIRouter()


def generation_failed(e: GiftGenerationError) -> HTTPException:
    logger.error(f"Gift suggestion generation failed: {e}")
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Failed to generate gift suggestion: {e.detail}"
    )


@router.post("", response_model=schemas.GiftSuggestionResponse, status_code=status.HTTP_201_CREATED)
def create_gift_suggestion(
    suggestion: schemas.GiftSuggestionCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Add a suggestion to an event.

    mode "manual" stores the given fields (name_en or name_fr required);
    mode "ai" generates a single suggestion from the prompt.
    """
    service = GiftService(db)
    try:
        db_suggestion = service.create_suggestion(current_user, suggestion)
    except GiftGenerationError as e:
        raise generation_failed(e)
    except ServiceError as e:
        raise to_http_exception(e)

    return service.to_response(db_suggestion, current_user)


@router.put("/{suggestion_id}", response_model=schemas.GiftSuggestionResponse)
def update_gift_suggestion(
    suggestion_id: int,
    suggestion_update: schemas.GiftSuggestionUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update your own suggestion, or regenerate it with AI from a prompt."""
    service = GiftService(db)
    try:
        db_suggestion = service.update_suggestion(suggestion_id, current_user, suggestion_update)
    except GiftGenerationError as e:
        raise generation_failed(e)
    except ServiceError as e:
        raise to_http_exception(e)

    return service.to_response(db_suggestion, current_user)


@router.delete("/{suggestion_id}")
def delete_gift_suggestion(
    suggestion_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        GiftService(db).delete_suggestion(suggestion_id, current_user)
    except ServiceError as e:
        raise to_http_exception(e)
    return {"message": "Gift suggestion deleted successfully"}


# ============ VOTES ============

@router.post("/{suggestion_id}/vote", response_model=schemas.VoteResponse)
def vote_gift_suggestion(
    suggestion_id: int,
    vote: schemas.VoteRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Upvote or downvote. Repeating the same vote removes it."""
    try:
        return GiftService(db).vote(suggestion_id, current_user, vote.vote_type.value)
    except ServiceError as e:
        raise to_http_exception(e)


@router.delete("/{suggestion_id}/vote", response_model=schemas.VoteResponse)
def remove_gift_suggestion_vote(
    suggestion_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return GiftService(db).remove_vote(suggestion_id, current_user)
    except ServiceError as e:
        raise to_http_exception(e)
