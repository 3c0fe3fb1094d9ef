"""
Static Gift Service
Curated suggestions keyed by (persona, occasion)
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session
import models
from services.gift_suggestion_service import GiftCandidate

logger = logging.getLogger(__name__)

# Curated gifts link to Amazon.fr
STATIC_GIFT_REGION = "FR"


class StaticGiftService:

    def __init__(self, db: Session):
        self.db = db

    def _find(self, persona_key: str, occasion_key: str) -> Optional[models.StaticGift]:
        return self.db.query(models.StaticGift).filter(
            models.StaticGift.persona_key == persona_key,
            models.StaticGift.occasion_key == occasion_key
        ).first()

    def get_static_gift(self, persona_key: str, occasion_key: str) -> Optional[GiftCandidate]:
        """
        Curated suggestion for a persona/occasion pair, ready to be stored
        with creation mode "static".

        Returns:
            GiftCandidate, or None when nothing is curated for the pair
        """
        gift = self._find(persona_key, occasion_key)
        if not gift:
            return None

        now = models.utcnow()
        candidate = GiftCandidate(
            name_en=gift.name_en or "",
            name_fr=gift.name_fr or "",
            description_en=gift.description_en or "",
            description_fr=gift.description_fr or "",
            price_range=gift.price_range or "",
            category=gift.category or "",
            amazon_affiliate_url=gift.amazon_affiliate_url,
            amazon_region=STATIC_GIFT_REGION,
            amazon_last_updated=now,
            is_affiliate_link=bool(gift.amazon_affiliate_url),
            generated_at=now,
        )
        logger.info(f"Found static gift '{candidate.name_en}' for persona={persona_key}, occasion={occasion_key}")
        return candidate

    def has_static_gift(self, persona_key: str, occasion_key: str) -> bool:
        return self._find(persona_key, occasion_key) is not None
