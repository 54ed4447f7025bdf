"""Migration: Upgrade a single-question database to multi-question days.

Adds daily_question.slot (existing rows become slot 0) with a unique index on
(question_date, slot), and player_state.schema_version (existing rows are
version 1; the JSON payload itself is migrated on load).

Idempotent, safe to run multiple times.

Run with: python -m trivia.migrations.001_multi_question_schema
"""
import sqlite3
import sys
from pathlib import Path

# Database path at repo root
REPO_ROOT = Path(__file__).resolve().parent.parent.parent
DB_PATH = REPO_ROOT / "trivia.db"


def column_exists(cursor: sqlite3.Cursor, table_name: str, column_name: str) -> bool:
    """Check if a column exists in a table."""
    cursor.execute(f"PRAGMA table_info({table_name})")
    columns = [row[1] for row in cursor.fetchall()]
    return column_name in columns


def table_exists(cursor: sqlite3.Cursor, table_name: str) -> bool:
    """Check if a table exists."""
    cursor.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table_name,),
    )
    return cursor.fetchone() is not None


def index_exists(cursor: sqlite3.Cursor, index_name: str) -> bool:
    """Check if an index exists."""
    cursor.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND name=?",
        (index_name,),
    )
    return cursor.fetchone() is not None


def single_date_unique(cursor: sqlite3.Cursor) -> bool:
    """True if daily_question still allows only one row per question_date."""
    cursor.execute("PRAGMA index_list(daily_question)")
    for _, name, unique, *_ in cursor.fetchall():
        if not unique:
            continue
        cursor.execute(f"PRAGMA index_info(\"{name}\")")
        if [row[2] for row in cursor.fetchall()] == ["question_date"]:
            return True
    return False


def rebuild_daily_question(cursor: sqlite3.Cursor):
    """Copy daily_question into a table keyed on (question_date, slot).

    SQLite cannot drop a column-level UNIQUE constraint in place.
    """
    slot_expr = "slot" if column_exists(cursor, "daily_question", "slot") else "0"
    cursor.execute("""
        CREATE TABLE daily_question_new (
            id INTEGER PRIMARY KEY,
            question_date VARCHAR NOT NULL,
            day INTEGER NOT NULL,
            slot INTEGER NOT NULL DEFAULT 0,
            category VARCHAR NOT NULL,
            question TEXT NOT NULL,
            answer VARCHAR NOT NULL,
            alternate_answers_json TEXT NOT NULL DEFAULT '[]'
        )
    """)
    cursor.execute(
        "INSERT INTO daily_question_new "
        "(id, question_date, day, slot, category, question, answer, alternate_answers_json) "
        f"SELECT id, question_date, day, {slot_expr}, category, question, answer, "
        "COALESCE(alternate_answers_json, '[]') FROM daily_question"
    )
    cursor.execute("DROP TABLE daily_question")
    cursor.execute("ALTER TABLE daily_question_new RENAME TO daily_question")
    cursor.execute(
        "CREATE INDEX ix_daily_question_question_date ON daily_question (question_date)"
    )


def migrate(db_path: Path | None = None):
    """Run the migration against the given DB file (defaults to DB_PATH)."""
    path = db_path or DB_PATH

    if not path.exists():
        print(f"Database not found at {path}")
        print("No migration needed, the database will be created with the new schema on first run.")
        return

    conn = sqlite3.connect(str(path))
    cursor = conn.cursor()

    try:
        # --- daily_question ---
        if table_exists(cursor, "daily_question"):
            if single_date_unique(cursor):
                print("Rebuilding daily_question to allow several questions per date...")
                rebuild_daily_question(cursor)
                print("  Done.")

            if not column_exists(cursor, "daily_question", "slot"):
                print("Adding slot column to daily_question (default=0)...")
                cursor.execute(
                    "ALTER TABLE daily_question ADD COLUMN slot INTEGER NOT NULL DEFAULT 0"
                )
                print("  Done.")
            else:
                print("Column slot already exists in daily_question, skipping.")

            if not index_exists(cursor, "uq_daily_question_date_slot"):
                print("Creating unique index uq_daily_question_date_slot...")
                cursor.execute(
                    "CREATE UNIQUE INDEX uq_daily_question_date_slot "
                    "ON daily_question (question_date, slot)"
                )
                print("  Done.")
            else:
                print("Index uq_daily_question_date_slot already exists, skipping.")
        else:
            print("Table daily_question does not exist, it will be created on app startup.")

        # --- player_state ---
        if table_exists(cursor, "player_state"):
            if not column_exists(cursor, "player_state", "schema_version"):
                print("Adding schema_version column to player_state (default=1)...")
                cursor.execute(
                    "ALTER TABLE player_state ADD COLUMN schema_version INTEGER NOT NULL DEFAULT 1"
                )
                print("  Done.")
            else:
                print("Column schema_version already exists in player_state, skipping.")
        else:
            print("Table player_state does not exist, it will be created on app startup.")

        conn.commit()
        print("\nMigration 001_multi_question_schema completed successfully!")

    except Exception as e:
        conn.rollback()
        print(f"Migration failed: {e}")
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    migrate()
