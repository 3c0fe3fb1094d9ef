"""
Migration 003: Add Amazon affiliate columns to gift_suggestions table

Usage:
    python -m migrations.003_add_gift_suggestion_amazon_columns
    OR
    cd migrations && python 003_add_gift_suggestion_amazon_columns.py
"""
import sys
from pathlib import Path

# Add parent directory to path to import database module
sys.path.append(str(Path(__file__).parent.parent))

from database import engine
from sqlalchemy import inspect, text

AMAZON_COLUMNS = [
    ("amazon_asin", "VARCHAR"),
    ("amazon_affiliate_url", "VARCHAR"),
    ("amazon_price", "VARCHAR"),
    ("amazon_region", "VARCHAR"),
    ("amazon_last_updated", "TIMESTAMP"),
    ("is_affiliate_link", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("generated_at", "TIMESTAMP"),
]


def migrate():
    """Add Amazon enrichment columns to gift_suggestions table"""
    try:
        columns = {c["name"] for c in inspect(engine).get_columns("gift_suggestions")}
        with engine.connect() as conn:
            added = []
            for name, column_type in AMAZON_COLUMNS:
                if name not in columns:
                    conn.execute(text(f"ALTER TABLE gift_suggestions ADD COLUMN {name} {column_type}"))
                    added.append(name)

            conn.commit()
            print("SUCCESS: Added Amazon columns to gift_suggestions table")
            for name in added:
                print(f"  - {name}")
    except Exception as e:
        print(f"ERROR: Failed to add columns: {e}")
        raise


if __name__ == "__main__":
    migrate()
