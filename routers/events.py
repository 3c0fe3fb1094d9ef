# ============ IMPORTS ============
from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional
import logging
import models
import schemas
from database import get_db
from routers.utils import get_current_user
from services.errors import ServiceError, to_http_exception
from services.event_service import EventService
from services.participant_service import ParticipantService
from services.invite_service import InviteService
from services.message_service import MessageService, process_agent_message_job
from services.gift_service import GiftService, generate_event_gift_suggestions_job
from services.localization_service import detect_language

logger = logging.getLogger(__name__)

# ============ ROUTER SETUP ============
# Note: No prefix here since it's added in main.py
router = APIRouter()

GIFT_LANGUAGES = ("en", "fr")
DEFAULT_GIFT_LANGUAGE = "fr"

# ============ HELPER FUNCTIONS ============

def create_event_response(event: models.Event) -> schemas.EventResponse:
    return schemas.EventResponse.model_validate(event)


def resolve_gift_language(body_language: Optional[schemas.LanguageEnum], accept_language: Optional[str]) -> str:
    """Body language, then Accept-Language (en/fr only), then French."""
    if body_language:
        return body_language.value
    if accept_language:
        detected = detect_language(accept_language)
        if detected in GIFT_LANGUAGES:
            return detected
    return DEFAULT_GIFT_LANGUAGE


def database_error(db: Session, e: SQLAlchemyError, action: str) -> HTTPException:
    db.rollback()
    logger.error(f"Database error while trying to {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )

# ============ EVENT ENDPOINTS ============

@router.post("", response_model=schemas.EventCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_event(
    event: schemas.EventCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create an event. The creator is added as an accepted participant.
    """
    try:
        db_event = EventService(db).create_event(current_user, event)
    except ServiceError as e:
        raise to_http_exception(e)
    except SQLAlchemyError as e:
        raise database_error(db, e, "create event")

    return {"message": "Event created successfully", "event": create_event_response(db_event)}


@router.post("/with-gifts", response_model=schemas.EventResponse, status_code=status.HTTP_201_CREATED)
def create_event_with_gifts(
    event: schemas.GiftEventCreate,
    background_tasks: BackgroundTasks,
    accept_language: Optional[str] = Header(None, alias="Accept-Language"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a gift event for a persona and occasion.

    Suggestions (a curated one when available, then AI generated ones) are
    produced in the background; clients poll the gift-suggestions endpoint.
    """
    try:
        db_event = GiftService(db).create_event_with_gifts(current_user, event)
    except ServiceError as e:
        raise to_http_exception(e)
    except SQLAlchemyError as e:
        raise database_error(db, e, "create event")

    language = resolve_gift_language(event.language, accept_language)
    background_tasks.add_task(generate_event_gift_suggestions_job, db_event.event_id, language)
    return create_event_response(db_event)


@router.get("/me", response_model=schemas.EventListResponse)
def get_my_events(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Events the current user created or participates in, newest first."""
    events = EventService(db).get_user_events(current_user)
    return {"events": [create_event_response(e) for e in events]}


@router.get("/{event_id}", response_model=schemas.EventDetailResponse)
def get_event(
    event_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Event details with participants and pending invitations."""
    try:
        details = EventService(db).get_event_details(event_id, current_user)
    except ServiceError as e:
        raise to_http_exception(e)

    return {
        "event": create_event_response(details["event"]),
        "participants": details["participants"],
        "pendingInvitations": details["pendingInvitations"],
    }


@router.put("/{event_id}")
def update_event(
    event_id: int,
    event_update: schemas.EventUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Partially update an event (creator only).

    Set remove_end_date to clear the end date.
    """
    try:
        db_event = EventService(db).update_event(
            event_id, current_user, event_update.model_dump(exclude_unset=True)
        )
    except ServiceError as e:
        raise to_http_exception(e)
    except SQLAlchemyError as e:
        raise database_error(db, e, "update event")

    return {"message": "Event updated successfully", "event": create_event_response(db_event)}


@router.delete("/{event_id}")
def delete_event(
    event_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete an event and all of its data (creator only)."""
    try:
        EventService(db).delete_event(event_id, current_user)
    except ServiceError as e:
        raise to_http_exception(e)
    except SQLAlchemyError as e:
        raise database_error(db, e, "delete event")

    return {"message": "Event deleted successfully"}

# ============ PARTICIPANT / INVITATION ENDPOINTS ============

@router.post("/{event_id}/participants", response_model=schemas.ParticipantInviteResponse, response_model_exclude_none=True)
def invite_participant(
    event_id: int,
    invite: schemas.ParticipantInviteRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Invite someone by email (creator only).

    Existing users are added as pending participants; anyone else gets an
    invitation link.
    """
    try:
        return InviteService(db).invite_participant(event_id, current_user, invite.identifier)
    except ServiceError as e:
        raise to_http_exception(e)
    except SQLAlchemyError as e:
        raise database_error(db, e, "invite participant")


@router.delete("/{event_id}/invitations/{email}")
def rescind_invitation(
    event_id: int,
    email: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete the pending invitations sent to an email (creator only)."""
    try:
        InviteService(db).rescind_invitation(event_id, current_user, email)
    except ServiceError as e:
        raise to_http_exception(e)

    return {"success": True, "message": "Invitation rescinded successfully"}


@router.put("/{event_id}/participant-status", response_model=schemas.ParticipantStatusResponse)
def update_participant_status(
    event_id: int,
    body: schemas.ParticipantStatusUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Change the caller's own participation status."""
    try:
        new_status = ParticipantService(db).update_status(event_id, current_user, body.status)
    except ServiceError as e:
        raise to_http_exception(e)

    return {"message": "Participant status updated successfully", "status": new_status}

# ============ MESSAGE ENDPOINTS ============

@router.get("/{event_id}/messages", response_model=List[schemas.MessageResponse])
def get_event_messages(
    event_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """All messages of the event thread, oldest first."""
    try:
        return MessageService(db).get_event_messages(event_id, current_user)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/{event_id}/messages/agent", response_model=List[schemas.MessageResponse])
def get_agent_messages(
    event_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Only the conversation with the AI agent."""
    service = MessageService(db)
    try:
        service.events.require_member(event_id, current_user)
    except ServiceError as e:
        raise to_http_exception(e)
    return service.get_agent_messages(event_id)


@router.post("/{event_id}/messages", response_model=schemas.MessageResponse, status_code=status.HTTP_201_CREATED)
def create_event_message(
    event_id: int,
    message: schemas.MessageCreate,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Post a message. Messages mentioning @agent get an AI reply, written in
    the background.
    """
    try:
        db_message = MessageService(db).create_message(event_id, current_user, message.content, message.parent_id)
    except ServiceError as e:
        raise to_http_exception(e)
    except SQLAlchemyError as e:
        raise database_error(db, e, "create message")

    if db_message.for_agent:
        background_tasks.add_task(process_agent_message_job, event_id, db_message.message_id)
    return db_message

# ============ GIFT SUGGESTION ENDPOINTS ============

@router.get("/{event_id}/gift-suggestions", response_model=List[schemas.GiftSuggestionResponse])
def get_event_gift_suggestions(
    event_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Suggestions for the event with vote counts and the caller's vote."""
    try:
        return GiftService(db).list_event_suggestions(event_id, current_user)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post("/{event_id}/regenerate-gift-suggestions")
def regenerate_gift_suggestions(
    event_id: int,
    background_tasks: BackgroundTasks,
    accept_language: Optional[str] = Header(None, alias="Accept-Language"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Replace the event's AI suggestions with a fresh batch (creator only)."""
    try:
        GiftService(db).clear_ai_suggestions(event_id, current_user)
    except ServiceError as e:
        raise to_http_exception(e)
    except SQLAlchemyError as e:
        raise database_error(db, e, "clear existing suggestions")

    language = resolve_gift_language(None, accept_language)
    background_tasks.add_task(generate_event_gift_suggestions_job, event_id, language)
    return {"message": "Generating new gift suggestions"}
