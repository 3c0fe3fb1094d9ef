"""
Participant Service
Participant status changes and membership lookups
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session
import models
from services.errors import ForbiddenError, ValidationError
from services.event_service import EventService

logger = logging.getLogger(__name__)

VALID_STATUSES = ("accepted", "pending", "declined", "going")


class ParticipantService:

    def __init__(self, db: Session):
        self.db = db
        self.events = EventService(db)

    def get_participant(self, event_id: int, user_id: int) -> Optional[models.EventParticipant]:
        return self.db.query(models.EventParticipant).filter(
            models.EventParticipant.event_id == event_id,
            models.EventParticipant.user_id == user_id
        ).first()

    def is_participant(self, event_id: int, user_id: int) -> bool:
        return self.get_participant(event_id, user_id) is not None

    def get_participant_status(self, event_id: int, user_id: int) -> Optional[str]:
        participant = self.get_participant(event_id, user_id)
        return participant.status if participant else None

    def update_status(self, event_id: int, user: models.User, new_status: str) -> str:
        """
        Change the caller's own participation status.

        Raises:
            ValidationError: Unknown status
            ForbiddenError: Caller has no participant row for the event
        """
        if new_status not in VALID_STATUSES:
            raise ValidationError(f"invalid status, must be one of: {', '.join(VALID_STATUSES)}")

        participant = self.get_participant(event_id, user.user_id)
        if not participant:
            raise ForbiddenError("user is not a participant in this event")

        participant.status = new_status
        self.db.commit()

        self.events.try_recount(event_id)
        logger.info(f"User {user.user_id} set status '{new_status}' on event {event_id}")
        return new_status
