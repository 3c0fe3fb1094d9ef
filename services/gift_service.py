"""
Gift Service
Stored gift suggestions: listing with vote aggregates, manual and AI creation,
voting, and the per-event background generation job
"""
import logging
from typing import Dict, List, Optional, Sequence
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
import models
from database import SessionLocal
from services.errors import NotFoundError, ForbiddenError, ValidationError, ConflictError
from services.event_service import EventService
from services.gift_suggestion_service import (
    GiftSuggestionService,
    GiftSuggestionRequest,
    GiftCandidate,
    GiftGenerationError,
)
from services.static_gift_service import StaticGiftService
from services.url_validator import sanitize_url, validate_url

logger = logging.getLogger(__name__)

CONTENT_FIELDS = (
    "name_en", "name_fr", "description_en", "description_fr",
    "price_range", "category", "url",
)


def build_request_for_event(
    event: models.Event,
    language: str,
    user_prompt: str = "",
    single_suggestion: bool = False,
) -> GiftSuggestionRequest:
    return GiftSuggestionRequest(
        giftee_persona=event.giftee_persona or "",
        event_occasion=event.event_occasion or "",
        event_title=event.title or "",
        event_date=event.start_date.strftime("%Y-%m-%d") if event.start_date else "",
        location=event.location or "",
        description=event.description or "",
        language=language,
        user_prompt=user_prompt or "",
        single_suggestion=single_suggestion,
    )


class GiftService:
    """Persistence side of gift suggestions"""

    def __init__(self, db: Session, generation: Optional[GiftSuggestionService] = None):
        self.db = db
        self.events = EventService(db)
        self._generation = generation

    @property
    def generation(self) -> GiftSuggestionService:
        if self._generation is None:
            self._generation = GiftSuggestionService()
        return self._generation

    # ============ HELPERS ============

    def get_suggestion_or_404(self, suggestion_id: int) -> models.GiftSuggestion:
        suggestion = self.db.query(models.GiftSuggestion).filter(
            models.GiftSuggestion.suggestion_id == suggestion_id
        ).first()
        if not suggestion:
            raise NotFoundError("Gift suggestion not found")
        return suggestion

    def _require_owner(self, suggestion: models.GiftSuggestion, user: models.User) -> None:
        if suggestion.user_id != user.user_id:
            raise ForbiddenError("Only the creator of this suggestion can modify it")

    def vote_counts(self, suggestion_ids: Sequence[int]) -> Dict[int, Dict[str, int]]:
        counts = {sid: {"upvote": 0, "downvote": 0} for sid in suggestion_ids}
        if not suggestion_ids:
            return counts
        rows = (
            self.db.query(
                models.GiftSuggestionVote.suggestion_id,
                models.GiftSuggestionVote.vote_type,
                func.count(models.GiftSuggestionVote.vote_id)
            )
            .filter(models.GiftSuggestionVote.suggestion_id.in_(suggestion_ids))
            .group_by(models.GiftSuggestionVote.suggestion_id, models.GiftSuggestionVote.vote_type)
            .all()
        )
        for suggestion_id, vote_type, count in rows:
            counts[suggestion_id][vote_type] = count
        return counts

    def user_votes(self, suggestion_ids: Sequence[int], user_id: int) -> Dict[int, str]:
        if not suggestion_ids:
            return {}
        rows = self.db.query(models.GiftSuggestionVote).filter(
            models.GiftSuggestionVote.suggestion_id.in_(suggestion_ids),
            models.GiftSuggestionVote.user_id == user_id
        ).all()
        return {row.suggestion_id: row.vote_type for row in rows}

    def to_response(self, suggestion: models.GiftSuggestion, user: models.User) -> dict:
        """Suggestion columns plus the caller-specific computed fields."""
        counts = self.vote_counts([suggestion.suggestion_id])[suggestion.suggestion_id]
        user_vote = self.user_votes([suggestion.suggestion_id], user.user_id).get(suggestion.suggestion_id)
        return self._serialize(suggestion, counts, user_vote, user)

    def _serialize(self, suggestion: models.GiftSuggestion, counts: Dict[str, int], user_vote: Optional[str], user: models.User) -> dict:
        data = {column.name: getattr(suggestion, column.name) for column in models.GiftSuggestion.__table__.columns}
        data.update({
            "upvotes": counts.get("upvote", 0),
            "downvotes": counts.get("downvote", 0),
            "user_vote": user_vote,
            "can_edit": suggestion.user_id is not None and suggestion.user_id == user.user_id,
        })
        return data

    def _vote_summary(self, suggestion_id: int, user: models.User, message: str) -> dict:
        counts = self.vote_counts([suggestion_id])[suggestion_id]
        return {
            "message": message,
            "user_vote": self.user_votes([suggestion_id], user.user_id).get(suggestion_id),
            "upvotes": counts["upvote"],
            "downvotes": counts["downvote"],
        }

    def _apply_candidate(self, suggestion: models.GiftSuggestion, candidate: GiftCandidate) -> None:
        for field in CONTENT_FIELDS:
            setattr(suggestion, field, getattr(candidate, field) or None)
        suggestion.name_en = candidate.name_en or ""
        suggestion.name_fr = candidate.name_fr or ""
        suggestion.amazon_asin = candidate.amazon_asin
        suggestion.amazon_affiliate_url = candidate.amazon_affiliate_url
        suggestion.amazon_price = candidate.amazon_price
        suggestion.amazon_region = candidate.amazon_region
        suggestion.amazon_last_updated = candidate.amazon_last_updated
        suggestion.is_affiliate_link = candidate.is_affiliate_link
        suggestion.generated_at = candidate.generated_at

    def _clean_url(self, url: Optional[str]) -> Optional[str]:
        url = sanitize_url(url)
        if not url:
            return None
        valid, reason = validate_url(url)
        if not valid:
            raise ValidationError(f"Invalid URL: {reason}")
        return url

    # ============ LISTING ============

    def list_event_suggestions(self, event_id: int, user: models.User) -> List[dict]:
        """Suggestions newest first, with vote counts and the caller's vote."""
        self.events.require_member(event_id, user)

        suggestions = (
            self.db.query(models.GiftSuggestion)
            .filter(models.GiftSuggestion.event_id == event_id)
            .order_by(models.GiftSuggestion.created_at.desc(), models.GiftSuggestion.suggestion_id.desc())
            .all()
        )
        ids = [s.suggestion_id for s in suggestions]
        counts = self.vote_counts(ids)
        votes = self.user_votes(ids, user.user_id)
        return [self._serialize(s, counts[s.suggestion_id], votes.get(s.suggestion_id), user) for s in suggestions]

    # ============ CREATE / UPDATE / DELETE ============

    def create_suggestion(self, user: models.User, data) -> models.GiftSuggestion:
        """
        Create a suggestion by hand or from a single AI generation.

        Args:
            user: Caller, must belong to the event
            data: schemas.GiftSuggestionCreate

        Raises:
            ValidationError: Missing name or rejected URL (manual mode)
            GiftGenerationError: AI generation failed (ai mode)
        """
        event = self.events.require_member(data.event_id, user)
        mode = getattr(data.mode, "value", data.mode)
        language = getattr(data.language, "value", data.language)

        if mode == "ai":
            existing = self.db.query(models.GiftSuggestion).filter(
                models.GiftSuggestion.event_id == event.event_id
            ).all()
            request = build_request_for_event(event, language, user_prompt=data.prompt or "", single_suggestion=True)
            candidates = self.generation.generate_gift_suggestions(request, existing)

            suggestion = models.GiftSuggestion(
                event_id=event.event_id,
                user_id=user.user_id,
                creation_mode="ai",
                prompt=data.prompt,
            )
            self._apply_candidate(suggestion, candidates[0])
        else:
            name_en = (data.name_en or "").strip()
            name_fr = (data.name_fr or "").strip()
            if not name_en and not name_fr:
                raise ValidationError("name_en or name_fr is required")

            suggestion = models.GiftSuggestion(
                event_id=event.event_id,
                user_id=user.user_id,
                name_en=name_en or name_fr,
                name_fr=name_fr or name_en,
                description_en=data.description_en or data.description_fr,
                description_fr=data.description_fr or data.description_en,
                price_range=data.price_range,
                category=data.category,
                url=self._clean_url(data.url),
                creation_mode="manual",
                prompt=data.prompt,
            )

        self.db.add(suggestion)
        self.db.commit()
        self.db.refresh(suggestion)
        logger.info(f"Gift suggestion {suggestion.suggestion_id} ({mode}) created on event {event.event_id}")
        return suggestion

    def update_suggestion(self, suggestion_id: int, user: models.User, data) -> models.GiftSuggestion:
        """Partial update by the owner, optionally regenerating the content with AI."""
        suggestion = self.get_suggestion_or_404(suggestion_id)
        self._require_owner(suggestion, user)

        if data.regenerate_with_ai:
            if not data.prompt:
                raise ValidationError("prompt is required to regenerate with AI")
            event = self.events.get_event_or_404(suggestion.event_id)
            others = self.db.query(models.GiftSuggestion).filter(
                models.GiftSuggestion.event_id == event.event_id,
                models.GiftSuggestion.suggestion_id != suggestion.suggestion_id
            ).all()
            language = getattr(data.language, "value", data.language)
            request = build_request_for_event(event, language, user_prompt=data.prompt, single_suggestion=True)
            candidates = self.generation.generate_gift_suggestions(request, others)

            self._apply_candidate(suggestion, candidates[0])
            suggestion.creation_mode = "ai"
            suggestion.prompt = data.prompt
        else:
            updates = data.model_dump(exclude_unset=True, exclude={"regenerate_with_ai", "language"})
            if "url" in updates:
                updates["url"] = self._clean_url(updates["url"])
            if "creation_mode" in updates and updates["creation_mode"] is not None:
                updates["creation_mode"] = getattr(updates["creation_mode"], "value", updates["creation_mode"])
            for field in ("name_en", "name_fr"):
                if field in updates and updates[field] is None:
                    updates[field] = ""
            for field, value in updates.items():
                setattr(suggestion, field, value)
            if not suggestion.name_en and not suggestion.name_fr:
                raise ValidationError("name_en or name_fr is required")

        self.db.commit()
        self.db.refresh(suggestion)
        return suggestion

    def delete_suggestion(self, suggestion_id: int, user: models.User) -> None:
        suggestion = self.get_suggestion_or_404(suggestion_id)
        self._require_owner(suggestion, user)
        self.db.delete(suggestion)  # votes cascade
        self.db.commit()

    # ============ VOTES ============

    def vote(self, suggestion_id: int, user: models.User, vote_type: str) -> dict:
        """
        Toggle-style voting: the same vote twice clears it, the other type
        switches the existing row.
        """
        suggestion = self.get_suggestion_or_404(suggestion_id)
        self.events.require_member(suggestion.event_id, user)

        existing = self.db.query(models.GiftSuggestionVote).filter(
            models.GiftSuggestionVote.suggestion_id == suggestion_id,
            models.GiftSuggestionVote.user_id == user.user_id
        ).first()

        if existing and existing.vote_type == vote_type:
            self.db.delete(existing)
            message = "Vote removed"
        elif existing:
            existing.vote_type = vote_type
            message = "Vote updated"
        else:
            self.db.add(models.GiftSuggestionVote(
                suggestion_id=suggestion_id,
                user_id=user.user_id,
                vote_type=vote_type
            ))
            message = "Vote recorded"

        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent first vote by the same user won the insert
            self.db.rollback()
            raise ConflictError("Vote already recorded, retry the request")
        return self._vote_summary(suggestion_id, user, message)

    def remove_vote(self, suggestion_id: int, user: models.User) -> dict:
        suggestion = self.get_suggestion_or_404(suggestion_id)
        self.events.require_member(suggestion.event_id, user)

        deleted = self.db.query(models.GiftSuggestionVote).filter(
            models.GiftSuggestionVote.suggestion_id == suggestion_id,
            models.GiftSuggestionVote.user_id == user.user_id
        ).delete(synchronize_session=False)
        if not deleted:
            raise NotFoundError("Vote not found")
        self.db.commit()
        return self._vote_summary(suggestion_id, user, "Vote removed")

    # ============ EVENT GENERATION ============

    def create_event_with_gifts(self, user: models.User, data) -> models.Event:
        return self.events.create_event(
            user,
            data,
            creator_status="going",
            giftee_persona=data.giftee_persona,
            event_occasion=data.event_occasion,
        )

    def clear_ai_suggestions(self, event_id: int, user: models.User) -> int:
        """Delete the event's AI suggestions (creator only); votes cascade."""
        self.events.require_creator(event_id, user)
        suggestions = self.db.query(models.GiftSuggestion).filter(
            models.GiftSuggestion.event_id == event_id,
            models.GiftSuggestion.creation_mode == "ai"
        ).all()
        for suggestion in suggestions:
            self.db.delete(suggestion)
        self.db.commit()
        return len(suggestions)

    def store_candidates(
        self,
        event_id: int,
        candidates: Sequence[GiftCandidate],
        creation_mode: str,
        user_id: Optional[int] = None,
    ) -> List[models.GiftSuggestion]:
        stored = []
        for candidate in candidates:
            suggestion = models.GiftSuggestion(event_id=event_id, user_id=user_id, creation_mode=creation_mode)
            self._apply_candidate(suggestion, candidate)
            self.db.add(suggestion)
            stored.append(suggestion)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return stored

    def generate_for_event(self, event_id: int, language: str) -> int:
        """
        Store the curated gift for the event's persona/occasion (if any and
        not stored yet), then generate AI suggestions that avoid everything
        already stored.

        Returns:
            Number of suggestions stored
        """
        event = self.events.get_event_or_404(event_id)
        stored = 0

        has_static = self.db.query(models.GiftSuggestion).filter(
            models.GiftSuggestion.event_id == event_id,
            models.GiftSuggestion.creation_mode == "static"
        ).first() is not None

        static_gift = None
        if event.giftee_persona and event.event_occasion and not has_static:
            static_gift = StaticGiftService(self.db).get_static_gift(event.giftee_persona, event.event_occasion)
        if static_gift:
            self.store_candidates(event_id, [static_gift], "static")
            stored += 1

        existing = self.db.query(models.GiftSuggestion).filter(
            models.GiftSuggestion.event_id == event_id
        ).all()
        candidates = self.generation.generate_gift_suggestions(build_request_for_event(event, language), existing)
        self.store_candidates(event_id, candidates, "ai")
        stored += len(candidates)

        logger.info(f"Generated and stored {stored} gift suggestions for event {event_id}")
        return stored


def generate_event_gift_suggestions_job(event_id: int, language: str) -> None:
    """Background task entry point with its own session. Failures are logged."""
    db = SessionLocal()
    try:
        GiftService(db).generate_for_event(event_id, language)
    except GiftGenerationError as e:
        db.rollback()
        logger.error(f"Error generating gift suggestions for event {event_id}: {e}")
    except Exception as e:
        db.rollback()
        logger.exception(f"Unexpected error generating gift suggestions for event {event_id}: {e}")
    finally:
        db.close()
