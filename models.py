from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
from database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False, default="")
    email = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=True)  # bcrypt hash, NULL for identity-provider accounts
    profile_picture = Column(String, nullable=True)
    profile_picture_url = Column(String, nullable=True)
    country_code = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)
    firebase_uid = Column(String, unique=True, nullable=True, index=True)
    auth_provider = Column(String, nullable=True)  # "password", "google.com", "apple.com", ...
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    created_events = relationship("Event", back_populates="creator")
    participations = relationship("EventParticipant", back_populates="user")
    messages = relationship("EventMessage", back_populates="user")


class Event(Base):
    __tablename__ = "events"

    event_id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    banner = Column(String, nullable=True)
    location = Column(String, nullable=True)
    participants_count = Column(Integer, nullable=False, default=0)  # Denormalized, see EventService.recount_participants
    giftee_persona = Column(String, nullable=True)
    event_occasion = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    creator = relationship("User", back_populates="created_events")
    participants = relationship("EventParticipant", back_populates="event", cascade="all, delete-orphan")
    invitations = relationship("EventInvitation", back_populates="event", cascade="all, delete-orphan")
    messages = relationship("EventMessage", back_populates="event", cascade="all, delete-orphan")
    gift_suggestions = relationship("GiftSuggestion", back_populates="event", cascade="all, delete-orphan")


class EventParticipant(Base):
    __tablename__ = "event_participants"

    event_id = Column(Integer, ForeignKey("events.event_id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'going')",
            name="check_participant_status"
        ),
    )

    # Relationships
    event = relationship("Event", back_populates="participants")
    user = relationship("User", back_populates="participations")


class EventInvitation(Base):
    __tablename__ = "event_invitations"

    invitation_id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String, nullable=True, index=True)
    phone = Column(String, nullable=True)
    invite_code = Column(String, unique=True, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'expired')",
            name="check_invitation_status"
        ),
    )

    # Relationships
    event = relationship("Event", back_populates="invitations")


class EventMessage(Base):
    __tablename__ = "event_messages"

    message_id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    content = Column(Text, nullable=False)
    parent_id = Column(Integer, ForeignKey("event_messages.message_id", ondelete="SET NULL"), nullable=True)
    is_agent_message = Column(Boolean, nullable=False, default=False)  # Authored by the agent system user
    for_agent = Column(Boolean, nullable=False, default=False)  # Content carries the @agent tag
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    event = relationship("Event", back_populates="messages")
    user = relationship("User", back_populates="messages")
    parent = relationship("EventMessage", remote_side=[message_id])


class GiftSuggestion(Base):
    __tablename__ = "gift_suggestions"

    suggestion_id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)  # Owner; NULL for background output
    name_en = Column(String, nullable=False, default="")
    name_fr = Column(String, nullable=False, default="")
    description_en = Column(Text, nullable=True)
    description_fr = Column(Text, nullable=True)
    price_range = Column(String, nullable=True)
    category = Column(String, nullable=True)
    url = Column(String, nullable=True)
    creation_mode = Column(String, nullable=False, default="ai")
    prompt = Column(Text, nullable=True)

    # Amazon affiliate enrichment
    amazon_asin = Column(String, nullable=True)
    amazon_affiliate_url = Column(String, nullable=True)
    amazon_price = Column(String, nullable=True)
    amazon_region = Column(String, nullable=True)
    amazon_last_updated = Column(DateTime, nullable=True)
    is_affiliate_link = Column(Boolean, nullable=False, default=False)

    generated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "creation_mode IN ('manual', 'ai', 'static')",
            name="check_creation_mode"
        ),
    )

    # Relationships
    event = relationship("Event", back_populates="gift_suggestions")
    owner = relationship("User")
    votes = relationship("GiftSuggestionVote", back_populates="suggestion", cascade="all, delete-orphan")


class GiftSuggestionVote(Base):
    __tablename__ = "gift_suggestion_votes"

    vote_id = Column(Integer, primary_key=True, index=True)
    suggestion_id = Column(Integer, ForeignKey("gift_suggestions.suggestion_id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    vote_type = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("suggestion_id", "user_id", name="uq_vote_suggestion_user"),
        CheckConstraint(
            "vote_type IN ('upvote', 'downvote')",
            name="check_vote_type"
        ),
    )

    # Relationships
    suggestion = relationship("GiftSuggestion", back_populates="votes")


class StaticGift(Base):
    __tablename__ = "static_gifts"

    static_gift_id = Column(Integer, primary_key=True, index=True)
    persona_key = Column(String, nullable=False)
    occasion_key = Column(String, nullable=False)
    name_en = Column(String, nullable=True)
    name_fr = Column(String, nullable=True)
    description_en = Column(Text, nullable=True)
    description_fr = Column(Text, nullable=True)
    price_range = Column(String, nullable=True)
    category = Column(String, nullable=True)
    amazon_affiliate_url = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("persona_key", "occasion_key", name="uq_static_gift_persona_occasion"),
    )


class Translation(Base):
    __tablename__ = "translations"

    translation_id = Column(Integer, primary_key=True, index=True)
    language_code = Column(String(10), nullable=False, index=True)
    key = Column(String, nullable=False)
    value = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("language_code", "key", name="uq_translation_language_key"),
    )
