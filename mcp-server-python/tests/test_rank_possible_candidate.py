"""
Tests for the rank_possible_candidate tool.
"""

from conftest import count_rows, fetch_row, insert_application
from tools.list_applications_by_state import list_applications_by_state
from tools.rank_possible_candidate import rank_possible_candidate


class TestRankPossibleCandidate:
    def test_rank_reorders_column(self, temp_db):
        first = insert_application(temp_db, state="POSSIBLE_CANDIDATES", priority_rank=1)
        second = insert_application(temp_db, state="POSSIBLE_CANDIDATES", priority_rank=2)

        result = rank_possible_candidate(
            {"application_id": second, "priority_rank": 0, "db_path": temp_db}
        )

        assert result == {"application_id": second, "priority_rank": 0, "previous_priority_rank": 2}
        page = list_applications_by_state({"state": "POSSIBLE_CANDIDATES", "db_path": temp_db})
        assert [item["id"] for item in page["items"]] == [second, first]
        assert count_rows(temp_db, "history_entries") == 0

    def test_null_clears_rank(self, temp_db):
        app_id = insert_application(temp_db, state="POSSIBLE_CANDIDATES", priority_rank=4)

        result = rank_possible_candidate(
            {"application_id": app_id, "priority_rank": None, "db_path": temp_db}
        )

        assert result["priority_rank"] is None
        assert fetch_row(temp_db, "applications", app_id)["priority_rank"] is None

    def test_only_possible_candidates_can_be_ranked(self, temp_db):
        app_id = insert_application(temp_db, state="TO_CALL")

        result = rank_possible_candidate(
            {"application_id": app_id, "priority_rank": 1, "db_path": temp_db}
        )

        assert result["error"]["code"] == "ILLEGAL_TRANSITION"
        assert fetch_row(temp_db, "applications", app_id)["priority_rank"] is None

    def test_priority_rank_is_required(self, temp_db):
        result = rank_possible_candidate({"application_id": 1, "db_path": temp_db})
        assert result["error"]["message"] == "Missing required parameter: 'priority_rank'"

    def test_negative_rank(self, temp_db):
        result = rank_possible_candidate(
            {"application_id": 1, "priority_rank": -3, "db_path": temp_db}
        )
        assert result["error"]["code"] == "VALIDATION_ERROR"

    def test_not_found(self, temp_db):
        result = rank_possible_candidate(
            {"application_id": 9, "priority_rank": 1, "db_path": temp_db}
        )
        assert result["error"]["code"] == "NOT_FOUND"
