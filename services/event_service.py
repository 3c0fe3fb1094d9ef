"""
Event Service
Event lifecycle, access checks and the denormalized participant count
"""
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import models
from services.errors import NotFoundError, ForbiddenError, ValidationError

logger = logging.getLogger(__name__)

COUNTED_STATUSES = ("accepted", "pending", "going")


class EventService:
    """CRUD for events plus membership helpers shared by other services"""

    def __init__(self, db: Session):
        self.db = db

    # ============ LOOKUPS ============

    def get_event_or_404(self, event_id: int) -> models.Event:
        event = self.db.query(models.Event).filter(models.Event.event_id == event_id).first()
        if not event:
            raise NotFoundError("event not found")
        return event

    def is_member(self, event: models.Event, user_id: int) -> bool:
        """Creator or any participant row, whatever its status."""
        if event.creator_id == user_id:
            return True
        return self.db.query(models.EventParticipant).filter(
            models.EventParticipant.event_id == event.event_id,
            models.EventParticipant.user_id == user_id
        ).first() is not None

    def require_member(self, event_id: int, user: models.User) -> models.Event:
        event = self.get_event_or_404(event_id)
        if not self.is_member(event, user.user_id):
            raise ForbiddenError("user is not a participant in this event")
        return event

    def require_creator(self, event_id: int, user: models.User) -> models.Event:
        event = self.get_event_or_404(event_id)
        if event.creator_id != user.user_id:
            raise ForbiddenError("only the event creator can perform this action")
        return event

    # ============ CREATE / READ ============

    def create_event(self, creator: models.User, data, creator_status: str = "accepted", **extra) -> models.Event:
        """
        Insert an event and its creator participant in one transaction.

        Args:
            creator: Authenticated user creating the event
            data: schemas.EventCreate (or a subclass)
            creator_status: Participant status recorded for the creator
            **extra: Additional Event columns (giftee_persona, event_occasion)

        Returns:
            The refreshed Event
        """
        if data.end_date and data.end_date < data.start_date:
            raise ValidationError("end date cannot be before start date")

        event = models.Event(
            creator_id=creator.user_id,
            title=data.title,
            description=data.description,
            start_date=data.start_date,
            end_date=data.end_date,
            banner=data.banner,
            location=data.location,
            active=True,
            participants_count=1,
            **extra
        )
        try:
            self.db.add(event)
            self.db.flush()
            self.db.add(models.EventParticipant(
                event_id=event.event_id,
                user_id=creator.user_id,
                status=creator_status
            ))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(event)
        logger.info(f"Event {event.event_id} created by user {creator.user_id}")
        return event

    def get_event_details(self, event_id: int, user: models.User) -> dict:
        """
        Event with its participants and pending invitations.

        Users who are neither creator nor participant get the same 404 as
        for a missing event.
        """
        event = self.db.query(models.Event).filter(models.Event.event_id == event_id).first()
        if not event or not self.is_member(event, user.user_id):
            raise NotFoundError("event not found")

        self.try_recount(event_id)
        self.db.refresh(event)

        participant_rows = (
            self.db.query(models.EventParticipant, models.User)
            .join(models.User, models.User.user_id == models.EventParticipant.user_id)
            .filter(models.EventParticipant.event_id == event_id)
            .order_by(models.EventParticipant.created_at.asc())
            .all()
        )
        participants = [
            {
                "user_id": u.user_id,
                "first_name": u.first_name,
                "last_name": u.last_name,
                "email": u.email,
                "status": p.status,
            }
            for p, u in participant_rows
        ]

        invitations = (
            self.db.query(models.EventInvitation)
            .filter(
                models.EventInvitation.event_id == event_id,
                models.EventInvitation.status == "pending"
            )
            .order_by(models.EventInvitation.created_at.desc(), models.EventInvitation.invitation_id.desc())
            .all()
        )
        pending = [
            {"email": inv.email, "invitedAt": inv.created_at, "expiresAt": inv.expires_at}
            for inv in invitations
        ]

        return {"event": event, "participants": participants, "pendingInvitations": pending}

    def get_user_events(self, user: models.User) -> List[models.Event]:
        """Distinct events the user created or participates in, newest first."""
        participant_event_ids = self.db.query(models.EventParticipant.event_id).filter(
            models.EventParticipant.user_id == user.user_id
        )
        return (
            self.db.query(models.Event)
            .filter(or_(
                models.Event.creator_id == user.user_id,
                models.Event.event_id.in_(participant_event_ids)
            ))
            .order_by(models.Event.created_at.desc(), models.Event.event_id.desc())
            .all()
        )

    # ============ UPDATE / DELETE ============

    def update_event(self, event_id: int, user: models.User, updates: dict) -> models.Event:
        """
        Partially update an event (creator only).

        Date rules are checked against the new values first, then against
        whichever stored date is left unchanged.
        """
        if not updates:
            raise ValidationError("no fields to update")

        event = self.require_creator(event_id, user)

        new_start: Optional[datetime] = updates.get("start_date")
        new_end: Optional[datetime] = updates.get("end_date")
        remove_end = bool(updates.get("remove_end_date"))

        if new_start and new_end and new_end < new_start:
            raise ValidationError("end date cannot be before start date")
        if new_end and not new_start and new_end < event.start_date:
            raise ValidationError("end date cannot be before existing start date")
        if new_start and not new_end and not remove_end and event.end_date and new_start > event.end_date:
            raise ValidationError("start date cannot be after existing end date")

        for field in ("title", "description", "location", "start_date"):
            if field in updates and updates[field] is not None:
                setattr(event, field, updates[field])
        if "description" in updates and updates["description"] is None:
            event.description = None

        if remove_end:
            event.end_date = None
        elif new_end:
            event.end_date = new_end

        self.db.commit()
        self.db.refresh(event)
        return event

    def delete_event(self, event_id: int, user: models.User) -> None:
        """Delete an event and everything hanging off it (creator only)."""
        event = self.require_creator(event_id, user)

        suggestion_ids = self.db.query(models.GiftSuggestion.suggestion_id).filter(
            models.GiftSuggestion.event_id == event_id
        )
        try:
            self.db.query(models.GiftSuggestionVote).filter(
                models.GiftSuggestionVote.suggestion_id.in_(suggestion_ids)
            ).delete(synchronize_session=False)
            self.db.query(models.EventMessage).filter(
                models.EventMessage.event_id == event_id
            ).update({models.EventMessage.parent_id: None}, synchronize_session=False)
            self.db.delete(event)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info(f"Event {event_id} deleted by user {user.user_id}")

    # ============ PARTICIPANT COUNT ============

    def recount_participants(self, event_id: int) -> int:
        """Set participants_count to the number of accepted/pending/going rows."""
        count = self.db.query(models.EventParticipant).filter(
            models.EventParticipant.event_id == event_id,
            models.EventParticipant.status.in_(COUNTED_STATUSES)
        ).count()
        self.db.query(models.Event).filter(models.Event.event_id == event_id).update(
            {models.Event.participants_count: count}, synchronize_session=False
        )
        self.db.commit()
        return count

    def try_recount(self, event_id: int) -> None:
        """Recount, logging failures instead of raising."""
        try:
            self.recount_participants(event_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to recount participants for event {event_id}: {e}")

    def sync_participant_counts(self) -> int:
        """
        Repair membership data: add missing creator participant rows (as
        "going") and recompute every event's count.

        Returns:
            Number of events processed
        """
        events = self.db.query(models.Event).all()
        added = 0
        for event in events:
            exists = self.db.query(models.EventParticipant).filter(
                models.EventParticipant.event_id == event.event_id,
                models.EventParticipant.user_id == event.creator_id
            ).first()
            if not exists:
                self.db.add(models.EventParticipant(
                    event_id=event.event_id,
                    user_id=event.creator_id,
                    status="going"
                ))
                added += 1
        self.db.commit()

        for event in events:
            self.recount_participants(event.event_id)

        logger.info(f"Synced participant counts for {len(events)} events ({added} creator rows added)")
        return len(events)
