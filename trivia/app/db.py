"""Database engine, sessions and the startup schema guard."""
import logging
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base

from .settings import DATABASE_URL

logger = logging.getLogger(__name__)

engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

MIGRATION_MODULE = "trivia.migrations.001_multi_question_schema"

# Columns the app reads. Single-question era files lack daily_question.slot
# and player_state.schema_version.
REQUIRED_SCHEMA = {
    "player_state": [
        "player_id", "schema_version", "payload_json", "updated_ts_utc",
    ],
    "daily_question": [
        "question_date", "day", "slot", "category", "question", "answer",
        "alternate_answers_json",
    ],
}


def sqlite_file(url: str) -> Path | None:
    """Path behind a file-backed SQLite URL, or None for memory and other backends."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or parsed.database in (None, "", ":memory:"):
        return None
    return Path(parsed.database)


def check_schema(db_path: Path) -> dict[str, list[str]]:
    """Missing columns per table. An absent table reports all of its columns."""
    file_engine = create_engine(f"sqlite:///{db_path}")
    try:
        inspector = inspect(file_engine)
        tables = set(inspector.get_table_names())
        missing: dict[str, list[str]] = {}
        for table, required in REQUIRED_SCHEMA.items():
            present = {col["name"] for col in inspector.get_columns(table)} if table in tables else set()
            absent = [col for col in required if col not in present]
            if absent:
                missing[table] = absent
        return missing
    finally:
        file_engine.dispose()


def _backup_and_recreate(db_path: Path):
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    backup = db_path.with_name(f"{db_path.name}.bak-{stamp}")
    shutil.move(str(db_path), str(backup))
    logger.warning("Stale trivia schema moved to %s, recreating %s", backup, db_path)
    Base.metadata.create_all(bind=engine)


def _stale_schema_error(missing: dict[str, list[str]]) -> RuntimeError:
    detail = "\n".join(f"  {table}: {', '.join(cols)}" for table, cols in sorted(missing.items()))
    return RuntimeError(
        "Trivia database predates multi-question days. Missing columns:\n"
        f"{detail}\n\n"
        f"Migrate in place with: python -m {MIGRATION_MODULE}\n"
        "or set ALLOW_DEV_DB_RESET=1 to back up the file and start empty."
    )


def ensure_schema():
    """Create tables at startup, refusing to serve from a stale SQLite file.

    ALLOW_DEV_DB_RESET=1 moves a stale file aside as ``<name>.bak-<utc stamp>``
    instead of failing.
    """
    from . import models  # noqa: F401

    db_path = sqlite_file(DATABASE_URL)
    if db_path is not None and db_path.exists():
        missing = check_schema(db_path)
        if missing:
            if os.getenv("ALLOW_DEV_DB_RESET", "") != "1":
                raise _stale_schema_error(missing)
            _backup_and_recreate(db_path)
            return
    Base.metadata.create_all(bind=engine)


def get_db():
    """Dependency that provides a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Dependency that provides the session factory for long-lived collaborators."""
    return SessionLocal
