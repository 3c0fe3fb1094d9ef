"""
Similarity Service
Asks a chat model whether a new gift suggestion duplicates existing ones
"""
import logging
from typing import Optional, Sequence, Tuple
from config import Settings, get_settings
from services.mistral_service import MistralService, get_mistral_service

logger = logging.getLogger(__name__)


def localized_name(suggestion, language: str) -> str:
    if language == "fr":
        return suggestion.name_fr or ""
    return suggestion.name_en or ""


def localized_description(suggestion, language: str) -> str:
    if language == "fr":
        return suggestion.description_fr or ""
    return suggestion.description_en or ""


def build_similarity_prompt(new_suggestion, existing: Sequence, language: str) -> str:
    parts = [
        "You are a gift suggestion similarity checker. Analyze if the NEW suggestion is too similar to any EXISTING suggestions.\n\n",
        "A suggestion is TOO SIMILAR if it matches in category AND (name OR description are semantically similar).\n\n",
        "NEW SUGGESTION:\n",
        f"- Category: {new_suggestion.category or ''}\n",
        f"- Name: {localized_name(new_suggestion, language)}\n",
        f"- Description: {localized_description(new_suggestion, language)}\n\n",
        "EXISTING SUGGESTIONS:\n",
    ]
    for i, suggestion in enumerate(existing, start=1):
        parts.append(f"{i}. Category: {suggestion.category or ''}\n")
        parts.append(f"   Name: {localized_name(suggestion, language)}\n")
        parts.append(f"   Description: {localized_description(suggestion, language)}\n\n")

    parts.append("Answer with ONLY 'YES' if the new suggestion is too similar to any existing suggestion, or 'NO' if it's sufficiently different.\n")
    parts.append("You may add a brief reason after your YES/NO answer.\n")
    return "".join(parts)


def is_similar_answer(answer: str) -> bool:
    upper = (answer or "").strip().upper()
    return "YES" in upper or "SIMILAR" in upper


class SimilarityChecker:
    """Semantic duplicate detection over category, name and description"""

    def __init__(self, settings: Optional[Settings] = None, mistral: Optional[MistralService] = None):
        self.settings = settings or get_settings()
        self._mistral = mistral

    def check(self, new_suggestion, existing: Sequence, language: str) -> Tuple[bool, str]:
        """
        Args:
            new_suggestion: Candidate with name_*/description_*/category
            existing: Suggestions to compare against
            language: "en" or "fr", selects which name/description is compared

        Returns:
            (is_similar, model answer)

        Raises:
            MistralAPIError: The chat call failed; callers decide how to treat it
        """
        if not existing:
            return False, ""
        if not self.settings.MISTRAL_API_KEY:
            return False, ""

        mistral = self._mistral or get_mistral_service()
        answer = mistral.chat_completion(
            build_similarity_prompt(new_suggestion, existing, language),
            model=self.settings.MISTRAL_SIMILARITY_MODEL,
            temperature=0.0,
            max_tokens=500,
        ).strip()
        logger.debug(f"Similarity check answer: {answer}")
        return is_similar_answer(answer), answer
