from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime, timezone
from enum import Enum

# ============ ENUMS ============
class CreationModeEnum(str, Enum):
    manual = "manual"
    ai = "ai"
    static = "static"

class SuggestionModeEnum(str, Enum):
    manual = "manual"
    ai = "ai"

class VoteTypeEnum(str, Enum):
    upvote = "upvote"
    downvote = "downvote"

class LanguageEnum(str, Enum):
    en = "en"
    fr = "fr"


def _strip_required(value: str) -> str:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored datetimes are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

# ============ AUTH SCHEMAS ============
class UserRegister(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72, description="User password (8-72 characters)")
    profile_picture: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class RefreshTokenRequest(BaseModel):
    refresh_token: str

class FirebaseLoginRequest(BaseModel):
    id_token: str = Field(..., alias="idToken")
    auth_provider: Optional[str] = Field(None, alias="authProvider")
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")

    class Config:
        populate_by_name = True

class UserSummary(BaseModel):
    user_id: int
    email: str
    first_name: str
    last_name: str

    class Config:
        from_attributes = True

class TokenPair(BaseModel):
    token: str
    refresh_token: str
    expires_in: int
    user: Optional[UserSummary] = None

class AccessTokenResponse(BaseModel):
    token: str
    expires_in: int

# ============ USER SCHEMAS ============
class UserResponse(BaseModel):
    user_id: int
    first_name: str
    last_name: str
    email: str
    profile_picture: Optional[str] = None
    profile_picture_url: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None
    auth_provider: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class UserProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=72)
    profile_picture: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None

# ============ EVENT SCHEMAS ============
class EventBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200, description="Event title")
    description: Optional[str] = Field(None, description="Free-text description")
    start_date: datetime = Field(..., description="Event start")
    end_date: Optional[datetime] = Field(None, description="Optional event end, must not precede start")
    banner: Optional[str] = None
    location: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value):
        return _strip_required(value)

    @field_validator("start_date", "end_date")
    @classmethod
    def _dates_to_utc(cls, value):
        return _naive_utc(value)

class EventCreate(EventBase):
    pass

class GiftEventCreate(EventBase):
    giftee_persona: str = Field(..., min_length=1, description="Who the gift is for, e.g. 'mom'")
    event_occasion: str = Field(..., min_length=1, description="Why, e.g. 'birthday'")
    language: Optional[LanguageEnum] = Field(None, description="Language used for generated suggestions")

class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    remove_end_date: Optional[bool] = None
    location: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _dates_to_utc(cls, value):
        return _naive_utc(value)

class EventResponse(BaseModel):
    event_id: int
    creator_id: int
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    active: bool
    banner: Optional[str] = None
    location: Optional[str] = None
    participants_count: int
    giftee_persona: Optional[str] = None
    event_occasion: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class EventCreatedResponse(BaseModel):
    message: str
    event: EventResponse

class EventListResponse(BaseModel):
    events: List[EventResponse]

class ParticipantResponse(BaseModel):
    user_id: int
    first_name: str
    last_name: str
    email: str
    status: str

class PendingInvitationResponse(BaseModel):
    email: Optional[str] = None
    invitedAt: datetime
    expiresAt: datetime

class EventDetailResponse(BaseModel):
    event: EventResponse
    participants: List[ParticipantResponse]
    pendingInvitations: List[PendingInvitationResponse]

# ============ PARTICIPANT SCHEMAS ============
class ParticipantStatusUpdate(BaseModel):
    status: str

class ParticipantStatusResponse(BaseModel):
    message: str
    status: str

# ============ INVITATION SCHEMAS ============
class ParticipantInviteRequest(BaseModel):
    identifier: str = Field(..., description="Email address of the person to invite")
    type: str = Field("email", description="Only 'email' is supported")

    @field_validator("type")
    @classmethod
    def _only_email(cls, value):
        if value != "email":
            raise ValueError("type must be 'email'")
        return value

class ParticipantInviteResponse(BaseModel):
    success: bool
    message: str
    userExists: bool
    inviteLink: Optional[str] = None

# ============ MESSAGE SCHEMAS ============
class MessageCreate(BaseModel):
    content: str
    parent_id: Optional[int] = None

class MessageAuthor(BaseModel):
    user_id: int
    email: str
    first_name: str
    last_name: str
    profile_picture: Optional[str] = None

    class Config:
        from_attributes = True

class MessageResponse(BaseModel):
    message_id: int
    event_id: int
    user_id: int
    content: str
    parent_id: Optional[int] = None
    is_agent_message: bool
    for_agent: bool
    created_at: datetime
    updated_at: datetime
    user: MessageAuthor

    class Config:
        from_attributes = True

# ============ GIFT SUGGESTION SCHEMAS ============
class GiftSuggestionFields(BaseModel):
    name_en: Optional[str] = Field(None, max_length=300)
    name_fr: Optional[str] = Field(None, max_length=300)
    description_en: Optional[str] = None
    description_fr: Optional[str] = None
    price_range: Optional[str] = Field(None, max_length=50)
    category: Optional[str] = Field(None, max_length=100)
    url: Optional[str] = None

class GiftSuggestionCreate(GiftSuggestionFields):
    event_id: int
    mode: SuggestionModeEnum = SuggestionModeEnum.manual
    prompt: Optional[str] = None
    language: LanguageEnum = LanguageEnum.en

class GiftSuggestionUpdate(GiftSuggestionFields):
    creation_mode: Optional[SuggestionModeEnum] = None
    prompt: Optional[str] = None
    language: LanguageEnum = LanguageEnum.en
    regenerate_with_ai: bool = False

class GiftSuggestionResponse(BaseModel):
    suggestion_id: int
    event_id: int
    user_id: Optional[int] = None
    name_en: str
    name_fr: str
    description_en: Optional[str] = None
    description_fr: Optional[str] = None
    price_range: Optional[str] = None
    category: Optional[str] = None
    url: Optional[str] = None
    creation_mode: CreationModeEnum
    prompt: Optional[str] = None
    amazon_asin: Optional[str] = None
    amazon_affiliate_url: Optional[str] = None
    amazon_price: Optional[str] = None
    amazon_region: Optional[str] = None
    amazon_last_updated: Optional[datetime] = None
    is_affiliate_link: bool = False
    generated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    # Computed at query time
    upvotes: int = 0
    downvotes: int = 0
    user_vote: Optional[VoteTypeEnum] = None
    can_edit: bool = False

    class Config:
        from_attributes = True

class VoteRequest(BaseModel):
    vote_type: VoteTypeEnum

class VoteResponse(BaseModel):
    message: str
    user_vote: Optional[VoteTypeEnum] = None
    upvotes: int
    downvotes: int

# ============ FLIGHT SCHEMAS ============
class FlightInspirationRequest(BaseModel):
    origin: str = ""
    departure_date: Optional[str] = Field(None, alias="departureDate")
    max_price: Optional[int] = Field(None, alias="maxPrice")
    one_way: Optional[bool] = Field(None, alias="oneWay")
    non_stop: Optional[bool] = Field(None, alias="nonStop")

    class Config:
        populate_by_name = True

class FlightDatesRequest(FlightInspirationRequest):
    destination: str = ""
    duration: Optional[int] = None

class FlightOptionResponse(BaseModel):
    origin: str
    destination: str
    departureDate: str
    returnDate: Optional[str] = None
    price: str
    currency: str

class FlightSearchResponse(BaseModel):
    flights: List[FlightOptionResponse]

# ============ LOCALIZATION SCHEMAS ============
class TranslationsResponse(BaseModel):
    language_code: str
    translations: Dict[str, str]
