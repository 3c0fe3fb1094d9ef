"""
Event Message Service
Event chat threads and the @agent assistant that can search flights
"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload
import models
from database import SessionLocal
from services.errors import ValidationError, ServiceError
from services.event_service import EventService
from services.mistral_service import (
    MistralService,
    get_mistral_service,
    detect_function_call,
    extract_tool_calls,
    extract_message_content,
    FLIGHT_TOOLS,
)
from services.amadeus_service import AmadeusClient, get_amadeus_client
from services.flight_formatter import format_flights_for_display, format_flight_dates_for_display

logger = logging.getLogger(__name__)

AGENT_TAG = "@agent"

SYSTEM_USER_EMAIL = "agent@system.local"
SYSTEM_USER_FIRST_NAME = "AI"
SYSTEM_USER_LAST_NAME = "Assistant"
SYSTEM_USER_AVATAR = "/assets/images/ai-avatar.png"

FLIGHT_TOOL_NAMES = ("search_flights", "search_flight_dates")


def is_message_for_agent(content: str) -> bool:
    return AGENT_TAG in (content or "")


def remove_agent_tag(content: str) -> str:
    return (content or "").replace(AGENT_TAG, "")


def to_chat_messages(messages: List[models.EventMessage]) -> List[Dict[str, Any]]:
    """Agent replies become assistant turns; user turns lose the @agent tag."""
    chat = []
    for message in messages:
        if message.is_agent_message:
            chat.append({"role": "assistant", "content": message.content})
        else:
            content = remove_agent_tag(message.content) if message.for_agent else message.content
            chat.append({"role": "user", "content": content})
    return chat


def _int_arg(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


def _bool_arg(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


class MessageService:
    """Event messages and agent replies"""

    def __init__(
        self,
        db: Session,
        mistral: Optional[MistralService] = None,
        amadeus: Optional[AmadeusClient] = None,
    ):
        self.db = db
        self.events = EventService(db)
        self._mistral = mistral
        self._amadeus = amadeus

    @property
    def mistral(self) -> MistralService:
        if self._mistral is None:
            self._mistral = get_mistral_service()
        return self._mistral

    @property
    def amadeus(self) -> AmadeusClient:
        if self._amadeus is None:
            self._amadeus = get_amadeus_client()
        return self._amadeus

    # ============ THREADS ============

    def _query_messages(self, event_id: int):
        return (
            self.db.query(models.EventMessage)
            .options(joinedload(models.EventMessage.user))
            .filter(models.EventMessage.event_id == event_id)
        )

    def get_event_messages(self, event_id: int, user: models.User) -> List[models.EventMessage]:
        self.events.require_member(event_id, user)
        return self._query_messages(event_id).order_by(
            models.EventMessage.created_at.asc(), models.EventMessage.message_id.asc()
        ).all()

    def get_agent_messages(self, event_id: int) -> List[models.EventMessage]:
        """The agent conversation: messages addressed to or written by the agent."""
        return (
            self._query_messages(event_id)
            .filter(or_(
                models.EventMessage.for_agent.is_(True),
                models.EventMessage.is_agent_message.is_(True)
            ))
            .order_by(models.EventMessage.created_at.asc(), models.EventMessage.message_id.asc())
            .all()
        )

    def create_message(self, event_id: int, user: models.User, content: str, parent_id: Optional[int] = None) -> models.EventMessage:
        """
        Post a message to an event thread.

        Raises:
            ValidationError: Empty content or a parent from another event
            ForbiddenError: Caller is not creator or participant
        """
        if not content or not content.strip():
            raise ValidationError("content is required")
        self.events.require_member(event_id, user)

        if parent_id is not None:
            parent = self.db.query(models.EventMessage).filter(
                models.EventMessage.message_id == parent_id,
                models.EventMessage.event_id == event_id
            ).first()
            if not parent:
                raise ValidationError("parent message not found in this event")

        message = models.EventMessage(
            event_id=event_id,
            user_id=user.user_id,
            content=content,
            parent_id=parent_id,
            is_agent_message=False,
            for_agent=is_message_for_agent(content),
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    # ============ AGENT ============

    def get_or_create_system_user(self) -> models.User:
        user = self.db.query(models.User).filter(models.User.email == SYSTEM_USER_EMAIL).first()
        if user:
            return user

        user = models.User(
            email=SYSTEM_USER_EMAIL,
            first_name=SYSTEM_USER_FIRST_NAME,
            last_name=SYSTEM_USER_LAST_NAME,
            profile_picture=SYSTEM_USER_AVATAR,
            password=None,  # no password hash, cannot log in
            auth_provider="system",
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def create_agent_message(self, event_id: int, content: str, parent_id: Optional[int]) -> models.EventMessage:
        system_user = self.get_or_create_system_user()
        message = models.EventMessage(
            event_id=event_id,
            user_id=system_user.user_id,
            content=content,
            parent_id=parent_id,
            is_agent_message=True,
            for_agent=False,
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def process_agent_message(self, event_id: int, message_id: int) -> models.EventMessage:
        """
        Ask the agent to answer the conversation and store its reply.

        When the agent calls a flight tool, the search runs here and its
        formatted result is sent back for a final answer.

        Returns:
            The stored agent message
        """
        event = self.db.query(models.Event).filter(models.Event.event_id == event_id).first()
        chat_messages = to_chat_messages(self.get_agent_messages(event_id))

        response = self.mistral.send_chat_with_tools(chat_messages, FLIGHT_TOOLS)
        call = detect_function_call(response)

        if call and call[0] in FLIGHT_TOOL_NAMES:
            name, arguments, tool_call_id = call
            tool_result = self.run_flight_tool(name, arguments, event)

            follow_up = list(chat_messages)
            follow_up.append({"role": "assistant", "content": "", "tool_calls": extract_tool_calls(response)})
            follow_up.append({
                "role": "tool",
                "name": name,
                "content": tool_result,
                "tool_call_id": tool_call_id,
            })
            reply = self.mistral.send_chat_raw(follow_up)
        else:
            reply = extract_message_content(response)

        return self.create_agent_message(event_id, reply, message_id)

    def run_flight_tool(self, name: str, arguments: Dict[str, Any], event: Optional[models.Event]) -> str:
        """
        Execute a flight tool call, defaulting dates from the event.

        Returns:
            French text summary of the results
        """
        origin = arguments.get("origin")
        if not origin or not isinstance(origin, str):
            raise ValidationError("missing origin parameter for flight search")

        departure_date = arguments.get("departureDate") or None
        if not departure_date and event is not None and event.start_date:
            departure_date = event.start_date.strftime("%Y-%m-%d")

        max_price = _int_arg(arguments.get("maxPrice"))
        one_way = _bool_arg(arguments.get("oneWay"))
        non_stop = _bool_arg(arguments.get("nonStop"))

        if name == "search_flights":
            flights = self.amadeus.search_destinations(
                origin, departure_date=departure_date, max_price=max_price,
                one_way=one_way, non_stop=non_stop
            )
            return format_flights_for_display(flights)

        destination = arguments.get("destination")
        if not destination or not isinstance(destination, str):
            raise ValidationError("missing destination parameter for flight dates search")

        if "duration" in arguments:
            duration = _int_arg(arguments.get("duration"))
        else:
            duration = None
            if event is not None and event.start_date and event.end_date:
                days = int((event.end_date - event.start_date).total_seconds() // 86400)
                if days > 0:
                    duration = days

        flights = self.amadeus.search_cheapest_dates(
            origin, destination, departure_date=departure_date, duration=duration,
            max_price=max_price, one_way=one_way, non_stop=non_stop
        )
        return format_flight_dates_for_display(flights)


def process_agent_message_job(event_id: int, message_id: int) -> None:
    """
    Background task entry point. Uses its own session; failures are logged
    and no reply is stored.
    """
    db = SessionLocal()
    try:
        reply = MessageService(db).process_agent_message(event_id, message_id)
        logger.info(f"Agent replied to message {message_id} in event {event_id} (reply {reply.message_id})")
    except (ServiceError, ValueError) as e:
        db.rollback()
        logger.error(f"Agent processing failed for message {message_id}: {e}")
    except Exception as e:
        db.rollback()
        logger.exception(f"Unexpected error processing agent message {message_id}: {e}")
    finally:
        db.close()
