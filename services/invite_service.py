"""
Invite Service
Email invitations: creation, rescinding, public validation and acceptance
"""
import logging
import re
import secrets
from datetime import timedelta
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
import models
from config import Settings, get_settings
from services.errors import NotFoundError, ValidationError, ConflictError, GoneError, ForbiddenError
from services.event_service import EventService

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")
INVITE_LIFETIME = timedelta(days=365 * 100)


def generate_invite_code() -> str:
    """8 lowercase hex characters."""
    return secrets.token_hex(4)


class InviteService:

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.events = EventService(db)

    def invite_link(self, code: str) -> str:
        return f"{self.settings.FRONTEND_URL.rstrip('/')}/invite/{code}"

    # ============ INVITING ============

    def invite_participant(self, event_id: int, user: models.User, email: str) -> dict:
        """
        Add an existing user as a pending participant, or create (or reuse) an
        invitation link for an unknown email.

        Returns:
            {"success", "message", "userExists", "inviteLink"?}
        """
        event = self.events.require_creator(event_id, user)

        email = (email or "").strip()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")

        invited_user = self.db.query(models.User).filter(
            func.lower(models.User.email) == email.lower()
        ).first()
        if invited_user:
            already = self.db.query(models.EventParticipant).filter(
                models.EventParticipant.event_id == event.event_id,
                models.EventParticipant.user_id == invited_user.user_id
            ).first()
            if already:
                return {"success": True, "message": "User is already a participant", "userExists": True}

            self.db.add(models.EventParticipant(
                event_id=event.event_id,
                user_id=invited_user.user_id,
                status="pending"
            ))
            self.db.commit()
            self.events.try_recount(event.event_id)
            logger.info(f"User {invited_user.user_id} added to event {event.event_id} as pending")
            return {"success": True, "message": "Participant added successfully", "userExists": True}

        existing = self.db.query(models.EventInvitation).filter(
            models.EventInvitation.event_id == event.event_id,
            models.EventInvitation.email == email,
            models.EventInvitation.status == "pending"
        ).first()
        if existing:
            return {
                "success": True,
                "message": "Invitation already sent",
                "userExists": False,
                "inviteLink": self.invite_link(existing.invite_code),
            }

        invitation = models.EventInvitation(
            event_id=event.event_id,
            email=email,
            invite_code=generate_invite_code(),
            status="pending",
            expires_at=models.utcnow() + INVITE_LIFETIME,
        )
        self.db.add(invitation)
        self.db.commit()
        logger.info(f"Invitation created for event {event.event_id}")

        return {
            "success": True,
            "message": "Invitation created successfully",
            "userExists": False,
            "inviteLink": self.invite_link(invitation.invite_code),
        }

    def rescind_invitation(self, event_id: int, user: models.User, email: str) -> None:
        self.events.require_creator(event_id, user)

        deleted = self.db.query(models.EventInvitation).filter(
            models.EventInvitation.event_id == event_id,
            models.EventInvitation.email == email,
            models.EventInvitation.status == "pending"
        ).delete(synchronize_session=False)
        if not deleted:
            raise NotFoundError("Invitation not found")
        self.db.commit()

    # ============ VALIDATION / ACCEPTANCE ============

    def _get_invitation(self, code: str) -> models.EventInvitation:
        invitation = self.db.query(models.EventInvitation).filter(
            models.EventInvitation.invite_code == code
        ).first()
        if not invitation:
            raise NotFoundError("Invite not found")
        return invitation

    def _check_expiry(self, invitation: models.EventInvitation) -> None:
        """Raise GoneError for expired invitations, persisting the expired status."""
        if invitation.status == "expired":
            raise GoneError({"error": "Invite has expired", "valid": False})
        if invitation.status == "pending" and models.utcnow() > invitation.expires_at:
            invitation.status = "expired"
            self.db.commit()
            raise GoneError({"error": "Invite has expired", "valid": False})

    def validate_invite(self, code: str) -> dict:
        """Public lookup used by the invite landing page."""
        invitation = self._get_invitation(code)
        self._check_expiry(invitation)
        event = invitation.event

        if invitation.status == "accepted":
            return {
                "valid": False,
                "message": "Invite already accepted",
                "event_id": event.event_id,
                "event_title": event.title,
            }

        return {
            "valid": True,
            "event_id": event.event_id,
            "event_title": event.title,
            "invited_email": invitation.email,
            "event_description": event.description,
        }

    def accept_invite(self, code: str, user: models.User) -> int:
        """
        Join the invitation's event.

        The participant insert, the invitation status change and the count
        increment commit together or not at all.

        Returns:
            The joined event id
        """
        invitation = self._get_invitation(code)
        self._check_expiry(invitation)

        if invitation.status == "accepted":
            raise ConflictError("Invite already accepted")

        if invitation.email and invitation.email.lower() != (user.email or "").lower():
            raise ForbiddenError({
                "error": "This invite was sent to a different email address",
                "invited_email": invitation.email,
                "your_email": user.email,
            })

        event_id = invitation.event_id
        already = self.db.query(models.EventParticipant).filter(
            models.EventParticipant.event_id == event_id,
            models.EventParticipant.user_id == user.user_id
        ).first()
        if already:
            raise ConflictError("You are already a participant in this event")

        try:
            self.db.add(models.EventParticipant(event_id=event_id, user_id=user.user_id, status="going"))
            invitation.status = "accepted"
            self.db.query(models.Event).filter(models.Event.event_id == event_id).update(
                {models.Event.participants_count: models.Event.participants_count + 1},
                synchronize_session=False
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("You are already a participant in this event")
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"User {user.user_id} accepted invite to event {event_id}")
        return event_id
