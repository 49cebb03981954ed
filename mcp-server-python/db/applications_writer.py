"""
Database writer layer for the pipeline state machine.

Every state-changing operation runs inside one ``BEGIN IMMEDIATE`` transaction
opened by ``ApplicationsWriter``. State changes are compare-and-set updates so
that two writers holding the same expected state can never both commit.
"""

import json
import logging
import sqlite3
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from models.errors import (
    create_db_error,
    create_db_not_found_error,
    create_timeout_error,
)
from models.pipeline_state import PipelineState
from utils.path_resolution import resolve_existing_db_path
from utils.validation import format_utc_timestamp, parse_utc_timestamp

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


def _is_lock_error(error: sqlite3.Error) -> bool:
    message = str(error).lower()
    return "database is locked" in message or "database is busy" in message


def _raise_for_sqlite_error(error: sqlite3.Error, action: str):
    """Translate a sqlite3 error into the matching ToolError and raise it."""
    if isinstance(error, sqlite3.OperationalError) and _is_lock_error(error):
        raise create_timeout_error(f"{action}: database is locked", original_error=error) from error
    raise create_db_error(str(error), retryable=False, original_error=error) from error


class ApplicationsWriter:
    """
    Context manager for write operations on the applications database.

    Opens the connection and takes the write lock on enter; rolls back on
    exception and always closes on exit.

    Usage:
        with ApplicationsWriter(db_path, timeout=5.0) as writer:
            row = writer.fetch_application(42)
            writer.compare_and_set_state(42, "TO_CALL", "PRE_INTERVIEW", now)
            writer.append_history_entry(...)
            writer.commit()
    """

    def __init__(self, db_path: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        """
        Initialize writer with database path.

        Args:
            db_path: Optional database path override
            timeout: Seconds to wait for the write lock before giving up
        """
        self.db_path = db_path
        self.timeout = timeout
        self.resolved_path: Optional[Path] = None
        self.conn: Optional[sqlite3.Connection] = None
        self._in_transaction = False

    def __enter__(self):
        """
        Open connection and begin an immediate (write-locking) transaction.

        Raises:
            ToolError: If the database file doesn't exist, the lock cannot be
                acquired within the timeout, or the connection fails
        """
        self.resolved_path = resolve_existing_db_path(self.db_path)

        try:
            # Autocommit mode: transactions are managed explicitly below
            self.conn = sqlite3.connect(
                str(self.resolved_path),
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")

            self.conn.execute("BEGIN IMMEDIATE")
            self._in_transaction = True
            return self

        except sqlite3.Error as e:
            self._close()
            if "unable to open database" in str(e).lower():
                raise create_db_not_found_error(str(self.resolved_path)) from e
            _raise_for_sqlite_error(e, "Acquiring write transaction")

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            # An uncommitted transaction never survives the block
            if self._in_transaction:
                self.rollback()
        finally:
            self._close()

        return False

    def _close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def _require_connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise create_db_error("Connection not established", retryable=False)
        return self.conn

    def fetch_application(self, application_id: int) -> Optional[Dict[str, Any]]:
        """
        Read an application row inside the write transaction.

        Args:
            application_id: The application to read

        Returns:
            Row as a dictionary, or None if the application does not exist
        """
        conn = self._require_connection()
        try:
            row = conn.execute(
                "SELECT * FROM applications WHERE id = ?", (application_id,)
            ).fetchone()
            return dict(row) if row is not None else None
        except sqlite3.Error as e:
            _raise_for_sqlite_error(e, "Reading application")

    def fetch_latest_history_entry(self, application_id: int) -> Optional[Dict[str, Any]]:
        """Most recent ledger entry of an application (changed_at DESC, id DESC)."""
        conn = self._require_connection()
        try:
            row = conn.execute(
                """
                SELECT * FROM history_entries
                WHERE application_id = ?
                ORDER BY changed_at DESC, id DESC
                LIMIT 1
                """,
                (application_id,),
            ).fetchone()
            return dict(row) if row is not None else None
        except sqlite3.Error as e:
            _raise_for_sqlite_error(e, "Reading latest history entry")

    def insert_application(
        self,
        candidate_id: str,
        convocatoria_id: str,
        state: str,
        submitted_at: str,
        timestamp: str,
        candidate_name: Optional[str] = None,
        form_answers: Optional[Dict[str, Any]] = None,
        priority_rank: Optional[int] = None,
    ) -> int:
        """
        Insert a new application row.

        Returns:
            The new application id
        """
        conn = self._require_connection()
        try:
            cursor = conn.execute(
                """
                INSERT INTO applications (
                    candidate_id, candidate_name, convocatoria_id, state,
                    priority_rank, form_answers_json, submitted_at, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    candidate_id,
                    candidate_name,
                    convocatoria_id,
                    state,
                    priority_rank,
                    json.dumps(form_answers or {}, sort_keys=True),
                    submitted_at,
                    timestamp,
                    timestamp,
                ),
            )
            return cursor.lastrowid
        except sqlite3.Error as e:
            _raise_for_sqlite_error(e, "Inserting application")

    def compare_and_set_state(
        self, application_id: int, expected_state: str, new_state: str, timestamp: str
    ) -> bool:
        """
        Move an application to ``new_state`` only if it is still in ``expected_state``.

        Finalized applications never match.

        Returns:
            True if exactly one row changed, False if the guard did not match
        """
        conn = self._require_connection()
        try:
            cursor = conn.execute(
                """
                UPDATE applications
                SET state = ?,
                    updated_at = ?
                WHERE id = ?
                  AND state = ?
                  AND fully_finalized = 0
                """,
                (new_state, timestamp, application_id, expected_state),
            )
            return cursor.rowcount == 1
        except sqlite3.Error as e:
            _raise_for_sqlite_error(e, "Updating application state")

    def append_history_entry(
        self,
        application_id: int,
        candidate_id: str,
        state_before: str,
        state_after: str,
        change_kind: str,
        actor_id: str,
        actor_name: str,
        changed_at: str,
        reason: Optional[str] = None,
        comment: Optional[str] = None,
        days_in_previous_state: Optional[int] = None,
        process_stage: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Append one immutable entry to the history ledger.

        Returns:
            The stored entry as a dictionary (including its sequence id)
        """
        conn = self._require_connection()
        try:
            cursor = conn.execute(
                """
                INSERT INTO history_entries (
                    application_id, candidate_id, state_before, state_after,
                    change_kind, actor_id, actor_name, reason, comment,
                    days_in_previous_state, process_stage, changed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    application_id,
                    candidate_id,
                    state_before,
                    state_after,
                    change_kind,
                    actor_id,
                    actor_name,
                    reason,
                    comment,
                    days_in_previous_state,
                    process_stage,
                    changed_at,
                ),
            )
            row = conn.execute(
                "SELECT * FROM history_entries WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
            return dict(row)
        except sqlite3.Error as e:
            _raise_for_sqlite_error(e, "Appending history entry")

    def claim_finalization(
        self, application_id: int, claim_token: str, timestamp: str, claim_ttl_seconds: int
    ) -> bool:
        """
        Take the finalization claim for an application.

        The claim is granted only while the application is FINALIZED, not yet
        fully finalized, and holds no live claim. Claims older than
        ``claim_ttl_seconds`` are treated as abandoned.

        Returns:
            True if the claim was taken by this call
        """
        conn = self._require_connection()
        stale_before = format_utc_timestamp(
            parse_utc_timestamp(timestamp) - timedelta(seconds=claim_ttl_seconds)
        )
        try:
            cursor = conn.execute(
                """
                UPDATE applications
                SET finalize_claim = ?,
                    finalize_claimed_at = ?
                WHERE id = ?
                  AND state = ?
                  AND fully_finalized = 0
                  AND (finalize_claim IS NULL OR finalize_claimed_at < ?)
                """,
                (claim_token, timestamp, application_id, PipelineState.FINALIZED.value, stale_before),
            )
            return cursor.rowcount == 1
        except sqlite3.Error as e:
            _raise_for_sqlite_error(e, "Claiming finalization")

    def release_finalization_claim(self, application_id: int, claim_token: str) -> None:
        """Drop a finalization claim if it is still held by ``claim_token``."""
        conn = self._require_connection()
        try:
            conn.execute(
                """
                UPDATE applications
                SET finalize_claim = NULL,
                    finalize_claimed_at = NULL
                WHERE id = ? AND finalize_claim = ?
                """,
                (application_id, claim_token),
            )
        except sqlite3.Error as e:
            _raise_for_sqlite_error(e, "Releasing finalization claim")

    def mark_fully_finalized(
        self, application_id: int, claim_token: str, employee_id: str, timestamp: str
    ) -> bool:
        """
        Set the terminal ``fully_finalized`` flag together with the employee id.

        Only succeeds while ``claim_token`` still owns the claim.

        Returns:
            True if the flag was set by this call
        """
        conn = self._require_connection()
        try:
            cursor = conn.execute(
                """
                UPDATE applications
                SET fully_finalized = 1,
                    employee_id = ?,
                    finalize_claim = NULL,
                    finalize_claimed_at = NULL,
                    updated_at = ?
                WHERE id = ?
                  AND fully_finalized = 0
                  AND finalize_claim = ?
                """,
                (employee_id, timestamp, application_id, claim_token),
            )
            return cursor.rowcount == 1
        except sqlite3.Error as e:
            _raise_for_sqlite_error(e, "Marking application fully finalized")

    def update_priority_rank(
        self, application_id: int, priority_rank: Optional[int], timestamp: str
    ) -> bool:
        """Set (or clear) the ordering key of the POSSIBLE_CANDIDATES column."""
        conn = self._require_connection()
        try:
            cursor = conn.execute(
                """
                UPDATE applications
                SET priority_rank = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (priority_rank, timestamp, application_id),
            )
            return cursor.rowcount == 1
        except sqlite3.Error as e:
            _raise_for_sqlite_error(e, "Updating priority rank")

    def commit(self) -> None:
        """
        Commit the transaction.

        The writer does not start a new transaction afterwards; open a new
        writer for any follow-up write.

        Raises:
            ToolError: If commit fails
        """
        conn = self._require_connection()

        if not self._in_transaction:
            return

        try:
            conn.execute("COMMIT")
            self._in_transaction = False
        except sqlite3.Error as e:
            if isinstance(e, sqlite3.OperationalError) and _is_lock_error(e):
                raise create_timeout_error(
                    "Committing transaction: database is locked", original_error=e
                ) from e
            raise create_db_error(
                f"Failed to commit transaction: {str(e)}", retryable=True, original_error=e
            ) from e

    def rollback(self) -> None:
        """
        Rollback the transaction.

        Does not raise: rollback is called while another error is propagating.
        """
        if self.conn is None or not self._in_transaction:
            return

        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.warning("Rollback failed: %s", e)
        finally:
            self._in_transaction = False
