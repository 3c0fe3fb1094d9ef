"""
Migration 005: Seed curated static gifts
Description: One hand-picked Amazon.fr gift per (persona, occasion) pair.
Existing pairs are left untouched.

Usage:
    python -m migrations.005_seed_static_gifts
    OR
    cd migrations && python 005_seed_static_gifts.py
"""
import sys
from pathlib import Path

# Add parent directory to path to import database module
sys.path.append(str(Path(__file__).parent.parent))

from database import engine
from sqlalchemy import text

STATIC_GIFTS = [
    {
        "persona_key": "mom",
        "occasion_key": "birthday",
        "name_en": "Personalized photo book",
        "name_fr": "Livre photo personnalisé",
        "description_en": "A hardcover album filled with family memories.",
        "description_fr": "Un album rigide rempli de souvenirs de famille.",
        "price_range": "30-60€",
        "category": "Home",
        "amazon_affiliate_url": "https://www.amazon.fr/s?k=livre+photo+personnalis%C3%A9",
    },
    {
        "persona_key": "dad",
        "occasion_key": "birthday",
        "name_en": "Leather wallet",
        "name_fr": "Portefeuille en cuir",
        "description_en": "A slim genuine leather wallet with RFID protection.",
        "description_fr": "Un portefeuille fin en cuir véritable avec protection RFID.",
        "price_range": "25-50€",
        "category": "Fashion",
        "amazon_affiliate_url": "https://www.amazon.fr/s?k=portefeuille+cuir+homme",
    },
    {
        "persona_key": "friend",
        "occasion_key": "birthday",
        "name_en": "Board game night set",
        "name_fr": "Jeu de société pour soirée entre amis",
        "description_en": "A party board game for four to eight players.",
        "description_fr": "Un jeu d'ambiance pour quatre à huit joueurs.",
        "price_range": "20-40€",
        "category": "Toys",
        "amazon_affiliate_url": "https://www.amazon.fr/s?k=jeu+de+soci%C3%A9t%C3%A9+ambiance",
    },
    {
        "persona_key": "partner",
        "occasion_key": "anniversary",
        "name_en": "Scented candle gift box",
        "name_fr": "Coffret de bougies parfumées",
        "description_en": "Three natural wax candles in a gift box.",
        "description_fr": "Trois bougies en cire naturelle dans un coffret cadeau.",
        "price_range": "25-45€",
        "category": "Home",
        "amazon_affiliate_url": "https://www.amazon.fr/s?k=coffret+bougies+parfum%C3%A9es",
    },
    {
        "persona_key": "colleague",
        "occasion_key": "farewell",
        "name_en": "Insulated travel mug",
        "name_fr": "Mug de voyage isotherme",
        "description_en": "A stainless steel mug that keeps drinks hot for hours.",
        "description_fr": "Un mug en inox qui garde les boissons chaudes des heures.",
        "price_range": "15-30€",
        "category": "Kitchen",
        "amazon_affiliate_url": "https://www.amazon.fr/s?k=mug+isotherme+voyage",
    },
]


def migrate():
    """Insert curated gifts missing from static_gifts"""
    try:
        with engine.connect() as conn:
            inserted = 0
            for gift in STATIC_GIFTS:
                exists = conn.execute(
                    text("""
                        SELECT 1 FROM static_gifts
                        WHERE persona_key = :persona_key AND occasion_key = :occasion_key
                    """),
                    {"persona_key": gift["persona_key"], "occasion_key": gift["occasion_key"]}
                ).first()
                if exists:
                    continue

                conn.execute(text("""
                    INSERT INTO static_gifts (
                        persona_key, occasion_key, name_en, name_fr, description_en,
                        description_fr, price_range, category, amazon_affiliate_url
                    ) VALUES (
                        :persona_key, :occasion_key, :name_en, :name_fr, :description_en,
                        :description_fr, :price_range, :category, :amazon_affiliate_url
                    )
                """), gift)
                inserted += 1

            conn.commit()
            print(f"SUCCESS: Seeded {inserted} static gifts")
    except Exception as e:
        print(f"ERROR: Failed to seed static gifts: {e}")
        raise


if __name__ == "__main__":
    migrate()
