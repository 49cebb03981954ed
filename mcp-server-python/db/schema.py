"""
Schema bootstrap for the Kanban pipeline database.

Creates the applications table, the append-only history ledger, and the
employee directory table used by the Finalization Gate. All statements are
idempotent and safe to run against an existing database.
"""

import sqlite3
from pathlib import Path
from typing import Optional

from models.errors import create_db_error
from utils.path_resolution import resolve_db_path

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS applications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        candidate_id TEXT NOT NULL,
        candidate_name TEXT,
        convocatoria_id TEXT NOT NULL,
        state TEXT NOT NULL DEFAULT 'CVS_RECEIVED',
        fully_finalized INTEGER NOT NULL DEFAULT 0,
        employee_id TEXT,
        finalize_claim TEXT,
        finalize_claimed_at TEXT,
        priority_rank INTEGER,
        form_answers_json TEXT NOT NULL DEFAULT '{}',
        submitted_at TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        CHECK (fully_finalized = 0 OR state = 'FINALIZED')
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_applications_state
    ON applications(state, convocatoria_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS history_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        application_id INTEGER NOT NULL REFERENCES applications(id),
        candidate_id TEXT NOT NULL,
        state_before TEXT NOT NULL,
        state_after TEXT NOT NULL,
        change_kind TEXT NOT NULL,
        actor_id TEXT NOT NULL,
        actor_name TEXT NOT NULL,
        reason TEXT,
        comment TEXT,
        days_in_previous_state INTEGER,
        process_stage TEXT,
        changed_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_history_entries_application
    ON history_entries(application_id, changed_at, id)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_history_entries_candidate
    ON history_entries(candidate_id, changed_at, id)
    """,
    """
    CREATE TRIGGER IF NOT EXISTS history_entries_no_update
    BEFORE UPDATE ON history_entries
    BEGIN
        SELECT RAISE(ABORT, 'history entries are append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS history_entries_no_delete
    BEFORE DELETE ON history_entries
    BEGIN
        SELECT RAISE(ABORT, 'history entries are append-only');
    END
    """,
    """
    CREATE TABLE IF NOT EXISTS employees (
        id TEXT PRIMARY KEY,
        application_id INTEGER NOT NULL UNIQUE REFERENCES applications(id),
        candidate_id TEXT NOT NULL,
        convocatoria_id TEXT NOT NULL,
        created_by TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
)


def ensure_parent_dirs(db_path: Path) -> None:
    """
    Ensure parent directories exist for the database file.

    Args:
        db_path: Resolved database path

    Raises:
        ToolError: If directory creation fails
    """
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise create_db_error(
            f"Failed to create parent directories: {str(e)}", retryable=False, original_error=e
        ) from e


def bootstrap_schema(conn: sqlite3.Connection) -> None:
    """
    Bootstrap all tables, indexes and ledger guards if they don't exist.

    Args:
        conn: Database connection

    Raises:
        ToolError: If schema creation fails
    """
    try:
        for statement in SCHEMA_STATEMENTS:
            conn.execute(statement)
        conn.commit()

    except sqlite3.Error as e:
        raise create_db_error(
            f"Failed to bootstrap schema: {str(e)}", retryable=False, original_error=e
        ) from e


def initialize_database(db_path: Optional[str] = None) -> Path:
    """
    Create the database file (and parent directories) and bootstrap the schema.

    Args:
        db_path: Optional database path override

    Returns:
        Resolved path of the initialized database
    """
    resolved_path = resolve_db_path(db_path)
    ensure_parent_dirs(resolved_path)

    conn = None
    try:
        conn = sqlite3.connect(str(resolved_path))
        bootstrap_schema(conn)
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e
    finally:
        if conn is not None:
            conn.close()

    return resolved_path
