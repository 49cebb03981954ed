"""
Employee directory used by the Finalization Gate.

An employee is keyed by the application it came from: the unique
``application_id`` column turns creation into insert-or-ignore, so calling
``create_employee`` again for the same application returns the record that
already exists instead of creating a second one.
"""

import logging
import sqlite3
import uuid
from typing import Any, Dict, Optional

from models.errors import create_db_error
from utils.path_resolution import resolve_existing_db_path
from utils.validation import get_current_utc_timestamp

logger = logging.getLogger(__name__)


class EmployeeDirectory:
    """SQLite-backed employee records, one per finalized application."""

    def __init__(self, db_path: Optional[str] = None, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        resolved_path = resolve_existing_db_path(self.db_path)
        conn = sqlite3.connect(str(resolved_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def create_employee(
        self, application_id: int, candidate_id: str, convocatoria_id: str, created_by: str
    ) -> Dict[str, Any]:
        """
        Create the employee for an application, or return the existing one.

        Args:
            application_id: Source application
            candidate_id: Candidate being hired
            convocatoria_id: Requisition the candidate was hired for
            created_by: Actor performing the finalization

        Returns:
            Employee record with an ``id`` key

        Raises:
            ToolError: If the database write fails
        """
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT OR IGNORE INTO employees (
                        id, application_id, candidate_id, convocatoria_id, created_by, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        f"emp-{uuid.uuid4().hex}",
                        application_id,
                        candidate_id,
                        convocatoria_id,
                        created_by,
                        get_current_utc_timestamp(),
                    ),
                )
            row = conn.execute(
                "SELECT * FROM employees WHERE application_id = ?", (application_id,)
            ).fetchone()
            logger.debug("Employee %s resolved for application %s", row["id"], application_id)
            return dict(row)
        except sqlite3.Error as e:
            raise create_db_error(str(e), retryable=True, original_error=e) from e
        finally:
            conn.close()

    def get_employee(self, application_id: int) -> Optional[Dict[str, Any]]:
        """Return the employee created from an application, if any."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM employees WHERE application_id = ?", (application_id,)
            ).fetchone()
            return dict(row) if row is not None else None
        except sqlite3.Error as e:
            raise create_db_error(str(e), retryable=True, original_error=e) from e
        finally:
            conn.close()
