"""
Gift Suggestion Generation Service
Prompts an LLM for gift ideas, rejects near-duplicates and attaches Amazon links
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence
from config import Settings, get_settings
from models import utcnow
from services.errors import UpstreamError
from services.similarity_service import SimilarityChecker, localized_name, localized_description
from services.amazon_service import AmazonService, get_amazon_service, map_language_to_region
from services.gemini_service import get_gemini_service
from services.mistral_service import get_mistral_service

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

JSON_FORMAT_BLOCK = """{
  "suggestions": [
    {
      "name_en": "English gift name",
      "name_fr": "French gift name",
      "description_en": "English description explaining why this gift is perfect",
      "description_fr": "French description explaining why this gift is perfect",
      "price_range": "€15-30",
      "category": "Books",
      "url": ""
    }
  ]
}"""


class GiftGenerationError(UpstreamError):
    """No usable suggestion could be produced."""


@dataclass
class GiftSuggestionRequest:
    giftee_persona: str
    event_occasion: str
    event_title: str = ""
    event_date: str = ""
    location: str = ""
    description: str = ""
    language: str = "en"
    user_prompt: str = ""
    single_suggestion: bool = False


@dataclass
class GiftCandidate:
    """A generated (not yet stored) suggestion."""
    name_en: str = ""
    name_fr: str = ""
    description_en: str = ""
    description_fr: str = ""
    price_range: str = ""
    category: str = ""
    url: str = ""
    amazon_asin: Optional[str] = None
    amazon_affiliate_url: Optional[str] = None
    amazon_price: Optional[str] = None
    amazon_region: Optional[str] = None
    amazon_last_updated: Optional[datetime] = None
    is_affiliate_link: bool = False
    generated_at: datetime = field(default_factory=utcnow)


# ============ PROMPT / PARSING ============

def build_gift_suggestion_prompt(request: GiftSuggestionRequest, existing: Sequence) -> str:
    """Prompt asking for bilingual suggestions in a fixed JSON shape."""
    count = "1" if request.single_suggestion else "2-3"
    parts = []

    if request.user_prompt:
        parts.append(f"Generate {count} gift suggestion(s) based on this user request:\n")
        parts.append(f"User Request: {request.user_prompt}\n\n")
        parts.append(f"Context - Persona: {request.giftee_persona}, Occasion: {request.event_occasion}\n\n")
    else:
        parts.append(f"Generate {count} gift suggestions for {request.giftee_persona} for {request.event_occasion}.\n\n")

    parts.append("Event Details:\n")
    parts.append(f"- Title: {request.event_title}\n")
    parts.append(f"- Date: {request.event_date}\n")
    if request.location:
        parts.append(f"- Location: {request.location}\n")
    if request.description:
        parts.append(f"- Description: {request.description}\n")

    if existing:
        parts.append("\n⚠️ AVOID THESE EXISTING SUGGESTIONS - Do not generate similar gifts:\n")
        for i, suggestion in enumerate(existing, start=1):
            parts.append(f"{i}. {localized_name(suggestion, request.language)} (Category: {suggestion.category or ''})\n")
            description = localized_description(suggestion, request.language)
            if description:
                parts.append(f"   Description: {description}\n")
        parts.append("\nYour new suggestions MUST be different in category OR name OR description from all the above.\n")

    parts.append("\nReturn suggestions in this exact JSON format:\n")
    parts.append(JSON_FORMAT_BLOCK)

    parts.append("\n\nIMPORTANT RULES:\n")
    parts.append("- Both English and French names/descriptions are provided\n")
    parts.append("- Price ranges are realistic and in Euros\n")
    parts.append("- Categories are specific (Books, Electronics, Fashion, Home, Sports, Kitchen, etc.)\n")
    parts.append("- URL field: LEAVE EMPTY (just use empty string \"\") - DO NOT create fake URLs\n")
    parts.append("- NEVER generate example URLs like https://example.com or https://amazon.fr/fake-product\n")
    parts.append("- DO NOT invent product IDs or links that don't exist\n")
    parts.append("- Focus on describing the gift well so users can search for it themselves\n")
    if request.user_prompt:
        parts.append("- The suggestion closely matches the user's specific request\n")
    parts.append("- Suggestions are thoughtful and appropriate for the persona and occasion\n")

    return "".join(parts)


def parse_gift_suggestions(content: str) -> List[GiftCandidate]:
    """
    Extract suggestions from model output, tolerating text or markdown
    around the JSON object.

    Raises:
        ValueError: Empty content, no JSON object, or malformed JSON
    """
    if not content:
        raise ValueError("empty content received from model")

    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ValueError("no JSON found in response")

    try:
        data = json.loads(content[start:end + 1])
    except json.JSONDecodeError as e:
        raise ValueError(f"failed to parse JSON: {e}")

    candidates = []
    for item in data.get("suggestions") or []:
        candidates.append(GiftCandidate(
            name_en=item.get("name_en") or "",
            name_fr=item.get("name_fr") or "",
            description_en=item.get("description_en") or "",
            description_fr=item.get("description_fr") or "",
            price_range=item.get("price_range") or "",
            category=item.get("category") or "",
            url=item.get("url") or "",
        ))
    return candidates


# ============ SERVICE ============

class GiftSuggestionService:
    """
    Generation loop: up to MAX_ATTEMPTS prompts, each candidate checked for
    similarity against the existing suggestions plus every earlier candidate.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        generator: Optional[Callable[[str], str]] = None,
        similarity_checker: Optional[SimilarityChecker] = None,
        amazon: Optional[AmazonService] = None,
    ):
        self.settings = settings or get_settings()
        self._generator = generator
        self.similarity_checker = similarity_checker or SimilarityChecker(self.settings)
        self._amazon = amazon

    @property
    def amazon(self) -> AmazonService:
        if self._amazon is None:
            self._amazon = get_amazon_service()
        return self._amazon

    def _default_generator(self) -> Callable[[str], str]:
        provider = (self.settings.GIFT_LLM_PROVIDER or "mistral").lower()
        if provider == "gemini":
            return get_gemini_service().generate_content_sync

        if not self.settings.MISTRAL_API_KEY:
            raise GiftGenerationError("MISTRAL_API_KEY not configured")
        if not self.settings.gift_agent_id:
            raise GiftGenerationError("MISTRAL_AGENT_ID not configured")
        return get_mistral_service().start_conversation

    def generate_attempt(self, request: GiftSuggestionRequest, exclusions: Sequence) -> List[GiftCandidate]:
        generator = self._generator or self._default_generator()
        content = generator(build_gift_suggestion_prompt(request, exclusions))
        try:
            return parse_gift_suggestions(content)
        except ValueError as e:
            raise GiftGenerationError(f"failed to parse gift suggestions: {e}")

    def generate_gift_suggestions(self, request: GiftSuggestionRequest, existing: Sequence = ()) -> List[GiftCandidate]:
        """
        Generate unique suggestions for an event.

        Args:
            request: Persona, occasion, event context and language
            existing: Suggestions already stored (or otherwise to avoid)

        Returns:
            Accepted candidates, enriched with Amazon data

        Raises:
            GiftGenerationError: A generation call failed, or nothing was
                accepted after MAX_ATTEMPTS
        """
        target = 1 if request.single_suggestion else 2
        exclusions = list(existing)
        accepted: List[GiftCandidate] = []

        for attempt in range(1, MAX_ATTEMPTS + 1):
            logger.info(f"Gift suggestion generation attempt {attempt}/{MAX_ATTEMPTS}")
            try:
                candidates = self.generate_attempt(request, exclusions)
            except GiftGenerationError:
                raise
            except Exception as e:
                raise GiftGenerationError(f"gift suggestion generation failed: {e}")

            for candidate in candidates:
                try:
                    similar, reason = self.similarity_checker.check(candidate, exclusions, request.language)
                except Exception as e:
                    # Fail open
                    logger.warning(f"Similarity check failed, accepting '{candidate.name_en}': {e}")
                    accepted.append(candidate)
                    exclusions.append(candidate)
                    continue

                if similar:
                    logger.info(f"Rejected similar suggestion '{candidate.name_en}': {reason}")
                else:
                    accepted.append(candidate)
                exclusions.append(candidate)

            if len(accepted) >= target:
                break
            if attempt < MAX_ATTEMPTS:
                logger.info(f"Only got {len(accepted)}/{target} suggestions, retrying")

        if not accepted:
            raise GiftGenerationError(f"failed to generate unique suggestions after {MAX_ATTEMPTS} attempts")

        logger.info(f"Generated {len(accepted)} gift suggestions")
        self.enrich_with_amazon_data(accepted, request.language)
        return accepted

    def enrich_with_amazon_data(self, candidates: List[GiftCandidate], language: str) -> None:
        """Attach affiliate or search URLs. Never raises."""
        region = map_language_to_region(language)
        for candidate in candidates:
            name = candidate.name_fr if language == "fr" else candidate.name_en
            name = name or candidate.name_en or candidate.name_fr
            try:
                if not self.amazon.is_enabled():
                    candidate.amazon_affiliate_url = self.amazon.generate_search_url(name, region)
                else:
                    url, price, asin = self.amazon.enrich_with_amazon_data(name, candidate.category, region)
                    candidate.amazon_affiliate_url = url
                    candidate.amazon_price = price or None
                    candidate.amazon_asin = asin or None
            except Exception as e:
                logger.warning(f"Amazon enrichment failed for '{name}': {e}")
                candidate.amazon_affiliate_url = self.amazon.generate_search_url(name, region)

            candidate.amazon_region = region
            candidate.amazon_last_updated = utcnow()
            candidate.is_affiliate_link = bool(candidate.amazon_affiliate_url)
