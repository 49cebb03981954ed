"""
Tests for the finalize_application tool (the Finalization Gate).

Covers idempotency, downstream failure and timeout handling, and the
finalization claim.
"""

import threading
from unittest.mock import MagicMock

import pytest

from conftest import count_rows, fetch_row, insert_application
from db.applications_writer import ApplicationsWriter
from db.employee_directory import EmployeeDirectory
from tools.finalize_application import finalize_application
from tools.transition_application import transition_application
from utils.validation import get_current_utc_timestamp


def _args(db_path, app_id, **extra):
    args = {"application_id": app_id, "actor_id": "user-7", "db_path": db_path}
    args.update(extra)
    return args


@pytest.fixture
def finalized_app(temp_db):
    return insert_application(temp_db, state="FINALIZED", candidate_id="cand-42")


class TestFinalization:
    def test_creates_employee_and_sets_flag(self, temp_db, finalized_app):
        result = finalize_application(_args(temp_db, finalized_app))

        assert result["created"] is True
        assert result["application_id"] == finalized_app
        assert result["employee_id"].startswith("emp-")

        row = fetch_row(temp_db, "applications", finalized_app)
        assert row["fully_finalized"] == 1
        assert row["employee_id"] == result["employee_id"]
        assert row["finalize_claim"] is None

        employee = EmployeeDirectory(temp_db).get_employee(finalized_app)
        assert employee["candidate_id"] == "cand-42"
        assert employee["created_by"] == "user-7"

    def test_second_call_returns_same_employee(self, temp_db, finalized_app):
        first = finalize_application(_args(temp_db, finalized_app))
        second = finalize_application(_args(temp_db, finalized_app))

        assert second["employee_id"] == first["employee_id"]
        assert second["created"] is False
        assert count_rows(temp_db, "employees") == 1

    def test_end_to_end_from_last_stage(self, temp_db):
        app_id = insert_application(temp_db, state="CALL_COMMUNICATE_ENTRY")
        moved = transition_application(
            {
                "application_id": app_id,
                "target_state": "FINALIZED",
                "expected_current_state": "CALL_COMMUNICATE_ENTRY",
                "actor_id": "user-7",
                "actor_name": "Recruiter Seven",
                "call_confirmed": True,
                "communication_confirmed": True,
                "db_path": temp_db,
            }
        )
        assert moved["state"] == "FINALIZED"

        result = finalize_application(_args(temp_db, app_id))

        assert result["created"] is True
        frozen = transition_application(
            {
                "application_id": app_id,
                "target_state": "POSSIBLE_CANDIDATES",
                "expected_current_state": "FINALIZED",
                "actor_id": "user-7",
                "actor_name": "Recruiter Seven",
                "reason": "too late",
                "db_path": temp_db,
            }
        )
        assert frozen["error"]["code"] == "ALREADY_FINALIZED"

    def test_concurrent_calls_create_one_employee(self, temp_db, finalized_app):
        barrier = threading.Barrier(3)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            result = finalize_application(_args(temp_db, finalized_app, timeout_seconds=10.0))
            with lock:
                results.append(result)

        threads = [threading.Thread(target=worker) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert count_rows(temp_db, "employees") == 1
        assert sum(1 for r in results if r.get("created") is True) == 1
        for result in results:
            if "error" in result:
                assert result["error"]["code"] == "FINALIZATION_IN_PROGRESS"
                assert result["error"]["retryable"] is True
        assert fetch_row(temp_db, "applications", finalized_app)["fully_finalized"] == 1


class TestPreconditions:
    def test_not_finalized_state(self, temp_db):
        app_id = insert_application(temp_db, state="MANAGEMENT_APPROVAL")

        result = finalize_application(_args(temp_db, app_id))

        assert result["error"]["code"] == "ILLEGAL_TRANSITION"
        assert count_rows(temp_db, "employees") == 0
        assert fetch_row(temp_db, "applications", app_id)["fully_finalized"] == 0

    def test_not_found(self, temp_db):
        result = finalize_application(_args(temp_db, 31337))
        assert result["error"]["code"] == "NOT_FOUND"

    def test_live_claim_reports_in_progress(self, temp_db, finalized_app):
        with ApplicationsWriter(temp_db) as writer:
            writer.claim_finalization(finalized_app, "other", get_current_utc_timestamp(), 300)
            writer.commit()

        result = finalize_application(_args(temp_db, finalized_app))

        assert result["error"]["code"] == "FINALIZATION_IN_PROGRESS"
        assert count_rows(temp_db, "employees") == 0

    def test_missing_actor(self, temp_db, finalized_app):
        result = finalize_application({"application_id": finalized_app, "db_path": temp_db})
        assert result["error"]["message"] == "Missing required parameter: 'actor_id'"


class TestDownstreamFailures:
    def test_failure_releases_claim_and_is_retryable(self, temp_db, finalized_app):
        directory = MagicMock()
        directory.create_employee.side_effect = ConnectionError("directory unreachable")

        result = finalize_application(_args(temp_db, finalized_app), employee_directory=directory)

        assert result["error"]["code"] == "DOWNSTREAM_FAILURE"
        assert result["error"]["retryable"] is True
        row = fetch_row(temp_db, "applications", finalized_app)
        assert row["fully_finalized"] == 0
        assert row["finalize_claim"] is None

        retry = finalize_application(_args(temp_db, finalized_app))
        assert retry["created"] is True

    def test_timeout_releases_claim(self, temp_db, finalized_app):
        release = threading.Event()
        directory = MagicMock()
        directory.create_employee.side_effect = lambda **kwargs: release.wait(5)

        try:
            result = finalize_application(
                _args(temp_db, finalized_app, timeout_seconds=0.2), employee_directory=directory
            )
        finally:
            release.set()

        assert result["error"]["code"] == "TIMEOUT"
        assert result["error"]["retryable"] is True
        row = fetch_row(temp_db, "applications", finalized_app)
        assert row["fully_finalized"] == 0
        assert row["finalize_claim"] is None

    def test_retry_after_partial_failure_reuses_employee(self, temp_db, finalized_app):
        """An employee created before a failure is found again on retry."""
        real = EmployeeDirectory(temp_db)
        flaky = MagicMock()

        def create_then_fail(**kwargs):
            real.create_employee(**kwargs)
            raise ConnectionError("response lost")

        flaky.create_employee.side_effect = create_then_fail

        failed = finalize_application(_args(temp_db, finalized_app), employee_directory=flaky)
        assert failed["error"]["code"] == "DOWNSTREAM_FAILURE"
        existing = real.get_employee(finalized_app)

        result = finalize_application(_args(temp_db, finalized_app))

        assert result["employee_id"] == existing["id"]
        assert count_rows(temp_db, "employees") == 1
