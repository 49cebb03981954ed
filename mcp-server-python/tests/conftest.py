"""
Shared fixtures: temporary pipeline databases and row factories.
"""

import json
import sqlite3

import pytest

from db.schema import bootstrap_schema

DEFAULT_SUBMITTED_AT = "2026-01-05T09:00:00.000Z"


def insert_application(
    db_path,
    state="CVS_RECEIVED",
    candidate_id="cand-1",
    convocatoria_id="conv-1",
    candidate_name=None,
    submitted_at=DEFAULT_SUBMITTED_AT,
    priority_rank=None,
    fully_finalized=0,
    employee_id=None,
    form_answers=None,
):
    """Insert an application row directly and return its id."""
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.execute(
            """
            INSERT INTO applications (
                candidate_id, candidate_name, convocatoria_id, state, fully_finalized,
                employee_id, priority_rank, form_answers_json, submitted_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                candidate_id,
                candidate_name,
                convocatoria_id,
                state,
                fully_finalized,
                employee_id,
                priority_rank,
                json.dumps(form_answers or {}),
                submitted_at,
                submitted_at,
            ),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def insert_history_entry(
    db_path,
    application_id,
    state_before,
    state_after,
    changed_at,
    change_kind="MOVEMENT",
    candidate_id="cand-1",
    days_in_previous_state=None,
    actor_id="seed",
):
    """Append a ledger row directly and return its id."""
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.execute(
            """
            INSERT INTO history_entries (
                application_id, candidate_id, state_before, state_after, change_kind,
                actor_id, actor_name, days_in_previous_state, changed_at
            ) VALUES (?, ?, ?, ?, ?, ?, 'Seed', ?, ?)
            """,
            (
                application_id,
                candidate_id,
                state_before,
                state_after,
                change_kind,
                actor_id,
                days_in_previous_state,
                changed_at,
            ),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def count_rows(db_path, table, where="1=1", params=()):
    conn = sqlite3.connect(str(db_path))
    try:
        return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {where}", params).fetchone()[0]
    finally:
        conn.close()


def fetch_row(db_path, table, row_id):
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    try:
        row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()
        return dict(row) if row is not None else None
    finally:
        conn.close()


@pytest.fixture
def temp_db(tmp_path):
    """Empty pipeline database with the full schema."""
    db_path = tmp_path / "kanban.db"
    conn = sqlite3.connect(str(db_path))
    bootstrap_schema(conn)
    conn.close()
    return str(db_path)


@pytest.fixture
def actor():
    return {"actor_id": "user-7", "actor_name": "Recruiter Seven"}
