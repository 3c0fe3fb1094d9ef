"""
Migration 004: Index invitations by event and status
Description: Event details list pending invitations on every request.

Usage:
    python -m migrations.004_add_invitation_event_status_index
    OR
    cd migrations && python 004_add_invitation_event_status_index.py
"""
import sys
from pathlib import Path

# Add parent directory to path to import database module
sys.path.append(str(Path(__file__).parent.parent))

from database import engine
from sqlalchemy import text


def migrate():
    """Create a composite index on event_invitations (event_id, status)"""
    try:
        with engine.connect() as conn:
            conn.execute(text("""
                CREATE INDEX IF NOT EXISTS ix_event_invitations_event_status
                ON event_invitations (event_id, status)
            """))

            conn.commit()
            print("SUCCESS: Created index ix_event_invitations_event_status")
    except Exception as e:
        print(f"ERROR: Failed to create index: {e}")
        raise


if __name__ == "__main__":
    migrate()
