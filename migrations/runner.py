"""
Migration runner
Applies numbered migration scripts (NNN_description.py) that are not yet
recorded in the schema_migrations table, in version order.

Usage:
    python -m migrations.runner
"""
import importlib.util
import logging
import re
import sys
from pathlib import Path
from typing import List, Tuple

# Add parent directory to path to import database module
sys.path.append(str(Path(__file__).parent.parent))

from database import engine
from sqlalchemy import text

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent
MIGRATION_FILE = re.compile(r"^(\d{3})_[a-z0-9_]+\.py$")


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> List[Tuple[str, Path]]:
    """(version, path) pairs for every migration script, sorted by version."""
    found = []
    for path in directory.iterdir():
        match = MIGRATION_FILE.match(path.name)
        if match:
            found.append((match.group(1), path))
    return sorted(found)


def ensure_migrations_table():
    with engine.connect() as conn:
        conn.execute(text("""
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version VARCHAR(10) PRIMARY KEY,
                name VARCHAR NOT NULL,
                applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
        """))
        conn.commit()


def applied_versions() -> set:
    with engine.connect() as conn:
        rows = conn.execute(text("SELECT version FROM schema_migrations")).fetchall()
    return {row[0] for row in rows}


def load_migration(path: Path):
    spec = importlib.util.spec_from_file_location(f"migration_{path.stem}", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    if not hasattr(module, "migrate"):
        raise RuntimeError(f"Migration {path.name} has no migrate() function")
    return module


def run_migrations() -> List[str]:
    """
    Apply pending migrations.

    A failing migration is not recorded and its exception propagates, so
    later migrations never run on top of a partial schema.

    Returns:
        Versions applied by this call
    """
    ensure_migrations_table()
    done = applied_versions()
    applied = []

    for version, path in discover_migrations():
        if version in done:
            continue

        logger.info(f"Applying migration {path.name}")
        load_migration(path).migrate()

        with engine.connect() as conn:
            conn.execute(
                text("INSERT INTO schema_migrations (version, name) VALUES (:version, :name)"),
                {"version": version, "name": path.stem}
            )
            conn.commit()
        applied.append(version)

    if applied:
        logger.info(f"Applied {len(applied)} migrations: {', '.join(applied)}")
    else:
        logger.info("Database schema is up to date")
    return applied


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_migrations()
