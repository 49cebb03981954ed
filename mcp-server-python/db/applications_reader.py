"""
Database reader layer for the Kanban board and the history ledger.

Provides read-only access with connection management and deterministic
query ordering. Every connection reads inside one deferred transaction, so
multi-query reads (such as the aggregate board) see a single snapshot.
"""

import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from models.errors import (
    create_db_error,
    create_db_not_found_error,
    create_timeout_error,
)
from models.pipeline_state import PipelineState
from utils.path_resolution import resolve_existing_db_path

DEFAULT_TIMEOUT_SECONDS = 5.0

# Column orderings. POSSIBLE_CANDIDATES is ranked (unranked last); every other
# column shows the newest submissions first.
RANKED_COLUMN_ORDER = "priority_rank IS NULL, priority_rank ASC, id ASC"
RECENT_COLUMN_ORDER = "submitted_at DESC, id DESC"

LEDGER_ORDER_DESC = "changed_at DESC, id DESC"
LEDGER_ORDER_ASC = "changed_at ASC, id ASC"


def column_order_clause(state: str) -> str:
    """ORDER BY body for one Kanban column."""
    if state == PipelineState.POSSIBLE_CANDIDATES.value:
        return RANKED_COLUMN_ORDER
    return RECENT_COLUMN_ORDER


@contextmanager
def get_connection(db_path: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT_SECONDS):
    """
    Context manager for read-only SQLite connections.

    Ensures connections are always properly closed, even on errors.

    Args:
        db_path: Optional database path override
        timeout: Seconds to wait on a locked database

    Yields:
        sqlite3.Connection: Read-only connection inside a read transaction

    Raises:
        ToolError: If database file doesn't exist or connection fails
    """
    resolved_path = resolve_existing_db_path(db_path)

    conn = None
    try:
        uri = f"file:{resolved_path}?mode=ro"
        conn = sqlite3.connect(uri, uri=True, timeout=timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("BEGIN")

        yield conn

    except sqlite3.OperationalError as e:
        error_msg = str(e).lower()
        if "unable to open database" in error_msg:
            raise create_db_not_found_error(str(resolved_path)) from e
        if "database is locked" in error_msg:
            raise create_timeout_error("Reading database: database is locked", original_error=e) from e
        raise create_db_error(str(e), retryable=True, original_error=e) from e

    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e

    finally:
        if conn is not None:
            conn.close()


def _rows_to_dicts(rows) -> List[Dict[str, Any]]:
    return [dict(row) for row in rows]


def fetch_application(conn: sqlite3.Connection, application_id: int) -> Optional[Dict[str, Any]]:
    """Return one application row, or None if it does not exist."""
    row = conn.execute("SELECT * FROM applications WHERE id = ?", (application_id,)).fetchone()
    return dict(row) if row is not None else None


def query_applications_by_state(
    conn: sqlite3.Connection,
    state: str,
    limit: int,
    offset: int = 0,
    convocatoria_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Query one Kanban column page.

    Args:
        conn: Database connection
        state: Column state
        limit: Page size
        offset: Number of rows to skip
        convocatoria_id: Optional requisition filter

    Returns:
        Application rows in the column's deterministic order
    """
    query = f"""
        SELECT *
        FROM applications
        WHERE state = ?
          AND (? IS NULL OR convocatoria_id = ?)
        ORDER BY {column_order_clause(state)}
        LIMIT ? OFFSET ?
    """
    rows = conn.execute(
        query, (state, convocatoria_id, convocatoria_id, limit, offset)
    ).fetchall()
    return _rows_to_dicts(rows)


def count_applications_by_state(
    conn: sqlite3.Connection, state: str, convocatoria_id: Optional[str] = None
) -> int:
    """Total number of applications in one column."""
    row = conn.execute(
        """
        SELECT COUNT(*) AS total
        FROM applications
        WHERE state = ?
          AND (? IS NULL OR convocatoria_id = ?)
        """,
        (state, convocatoria_id, convocatoria_id),
    ).fetchone()
    return row["total"]


def count_all_states(
    conn: sqlite3.Connection, convocatoria_id: Optional[str] = None
) -> Dict[str, Dict[str, int]]:
    """
    Per-state totals, grouped server-side.

    Returns:
        Mapping of state -> {"total": n, "fully_finalized": m}
    """
    rows = conn.execute(
        """
        SELECT state, COUNT(*) AS total, SUM(fully_finalized) AS fully_finalized
        FROM applications
        WHERE (? IS NULL OR convocatoria_id = ?)
        GROUP BY state
        """,
        (convocatoria_id, convocatoria_id),
    ).fetchall()
    return {
        row["state"]: {"total": row["total"], "fully_finalized": row["fully_finalized"] or 0}
        for row in rows
    }


def query_board_first_pages(
    conn: sqlite3.Connection, per_column_limit: int, convocatoria_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    First page of every column in one windowed query.

    Each partition uses its column's ordering; the result carries a
    ``column_position`` (1-based) per row.
    """
    possible = PipelineState.POSSIBLE_CANDIDATES.value
    query = f"""
        SELECT *
        FROM (
            SELECT
                applications.*,
                ROW_NUMBER() OVER (
                    PARTITION BY state
                    ORDER BY
                        CASE WHEN state = '{possible}' THEN priority_rank IS NULL END,
                        CASE WHEN state = '{possible}' THEN priority_rank END ASC,
                        CASE WHEN state = '{possible}' THEN id END ASC,
                        CASE WHEN state != '{possible}' THEN submitted_at END DESC,
                        CASE WHEN state != '{possible}' THEN id END DESC
                ) AS column_position
            FROM applications
            WHERE (? IS NULL OR convocatoria_id = ?)
        )
        WHERE column_position <= ?
        ORDER BY state, column_position
    """
    rows = conn.execute(query, (convocatoria_id, convocatoria_id, per_column_limit)).fetchall()
    return _rows_to_dicts(rows)


def query_history(
    conn: sqlite3.Connection, application_id: int, ascending: bool = False
) -> List[Dict[str, Any]]:
    """Ledger entries of one application, newest first unless ``ascending``."""
    order = LEDGER_ORDER_ASC if ascending else LEDGER_ORDER_DESC
    rows = conn.execute(
        f"SELECT * FROM history_entries WHERE application_id = ? ORDER BY {order}",
        (application_id,),
    ).fetchall()
    return _rows_to_dicts(rows)


def query_candidate_history(conn: sqlite3.Connection, candidate_id: str) -> List[Dict[str, Any]]:
    """Ledger entries of a candidate across all of their applications, newest first."""
    rows = conn.execute(
        f"SELECT * FROM history_entries WHERE candidate_id = ? ORDER BY {LEDGER_ORDER_DESC}",
        (candidate_id,),
    ).fetchall()
    return _rows_to_dicts(rows)


def fetch_latest_history_entry(
    conn: sqlite3.Connection, application_id: int
) -> Optional[Dict[str, Any]]:
    """Most recent ledger entry of an application, or None when it has no history."""
    row = conn.execute(
        f"""
        SELECT * FROM history_entries
        WHERE application_id = ?
        ORDER BY {LEDGER_ORDER_DESC}
        LIMIT 1
        """,
        (application_id,),
    ).fetchone()
    return dict(row) if row is not None else None


def query_history_for_stats(
    conn: sqlite3.Connection,
    convocatoria_id: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Ledger entries filtered by requisition and changed_at window (inclusive).
    """
    rows = conn.execute(
        """
        SELECT history_entries.*
        FROM history_entries
        JOIN applications ON applications.id = history_entries.application_id
        WHERE (? IS NULL OR applications.convocatoria_id = ?)
          AND (? IS NULL OR history_entries.changed_at >= ?)
          AND (? IS NULL OR history_entries.changed_at <= ?)
        ORDER BY history_entries.changed_at ASC, history_entries.id ASC
        """,
        (convocatoria_id, convocatoria_id, date_from, date_from, date_to, date_to),
    ).fetchall()
    return _rows_to_dicts(rows)


HISTORY_FILTER_CLAUSE = """
    (? IS NULL OR candidate_id = ?)
    AND (? IS NULL OR application_id = ?)
    AND (? IS NULL OR actor_id = ?)
    AND (? IS NULL OR change_kind = ?)
    AND (? IS NULL OR state_after = ?)
    AND (? IS NULL OR changed_at >= ?)
    AND (? IS NULL OR changed_at <= ?)
"""


def _history_filter_params(filters: Dict[str, Any]) -> tuple:
    params = []
    for key in (
        "candidate_id",
        "application_id",
        "actor_id",
        "change_kind",
        "state_after",
        "date_from",
        "date_to",
    ):
        value = filters.get(key)
        params.extend([value, value])
    return tuple(params)


def query_history_filtered(
    conn: sqlite3.Connection, filters: Dict[str, Any], limit: int, offset: int = 0
) -> List[Dict[str, Any]]:
    """
    One page of ledger entries matching every given filter, newest first.

    Args:
        conn: Database connection
        filters: Any of candidate_id, application_id, actor_id, change_kind,
            state_after, date_from, date_to (inclusive ``changed_at`` bounds).
            Missing or None keys do not filter.
        limit: Page size
        offset: Number of entries to skip
    """
    rows = conn.execute(
        f"""
        SELECT * FROM history_entries
        WHERE {HISTORY_FILTER_CLAUSE}
        ORDER BY {LEDGER_ORDER_DESC}
        LIMIT ? OFFSET ?
        """,
        _history_filter_params(filters) + (limit, offset),
    ).fetchall()
    return _rows_to_dicts(rows)


def count_history_filtered(conn: sqlite3.Connection, filters: Dict[str, Any]) -> int:
    """Number of ledger entries matching the filters."""
    row = conn.execute(
        f"SELECT COUNT(*) FROM history_entries WHERE {HISTORY_FILTER_CLAUSE}",
        _history_filter_params(filters),
    ).fetchone()
    return row[0]
