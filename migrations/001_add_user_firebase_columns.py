"""
Migration 001: Add identity-provider columns to users table
Description: Accounts created through Firebase have no password, so the
password column becomes nullable and firebase_uid/auth_provider are added.

Usage:
    python -m migrations.001_add_user_firebase_columns
    OR
    cd migrations && python 001_add_user_firebase_columns.py
"""
import sys
from pathlib import Path

# Add parent directory to path to import database module
sys.path.append(str(Path(__file__).parent.parent))

from database import engine
from sqlalchemy import inspect, text


def migrate():
    """Add firebase_uid and auth_provider columns to users table"""
    try:
        columns = {c["name"] for c in inspect(engine).get_columns("users")}
        with engine.connect() as conn:
            if "firebase_uid" not in columns:
                conn.execute(text("ALTER TABLE users ADD COLUMN firebase_uid VARCHAR"))
                conn.execute(text(
                    "CREATE UNIQUE INDEX IF NOT EXISTS ix_users_firebase_uid ON users (firebase_uid)"
                ))

            if "auth_provider" not in columns:
                conn.execute(text("ALTER TABLE users ADD COLUMN auth_provider VARCHAR"))

            if engine.dialect.name == "postgresql":
                conn.execute(text("ALTER TABLE users ALTER COLUMN password DROP NOT NULL"))

            conn.commit()
            print("SUCCESS: Added identity-provider columns to users table")
            print("  - firebase_uid (VARCHAR, unique): Firebase account id")
            print("  - auth_provider (VARCHAR): password, google.com, apple.com, ...")
    except Exception as e:
        print(f"ERROR: Failed to add columns: {e}")
        raise


if __name__ == "__main__":
    migrate()
