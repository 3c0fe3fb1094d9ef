"""
Migration 002: Add gift context to events table
Description: Events created through /events/with-gifts remember who the gift
is for and why, so suggestions can be regenerated later.

Usage:
    python -m migrations.002_add_event_gift_context
    OR
    cd migrations && python 002_add_event_gift_context.py
"""
import sys
from pathlib import Path

# Add parent directory to path to import database module
sys.path.append(str(Path(__file__).parent.parent))

from database import engine
from sqlalchemy import inspect, text


def migrate():
    """Add giftee_persona and event_occasion columns to events table"""
    try:
        columns = {c["name"] for c in inspect(engine).get_columns("events")}
        with engine.connect() as conn:
            for column in ("giftee_persona", "event_occasion"):
                if column not in columns:
                    conn.execute(text(f"ALTER TABLE events ADD COLUMN {column} VARCHAR"))

            conn.commit()
            print("SUCCESS: Added gift context columns to events table")
    except Exception as e:
        print(f"ERROR: Failed to add columns: {e}")
        raise


if __name__ == "__main__":
    migrate()
