"""
Tests for the aggregate_board tool.
"""

from conftest import insert_application
from models.pipeline_state import BOARD_COLUMNS
from tools.aggregate_board import aggregate_board, build_summary
from tools.list_applications_by_state import list_applications_by_state


def _columns_by_state(result):
    return {column["state"]: column for column in result["columns"]}


class TestAggregateBoard:
    def test_empty_board_has_every_column(self, temp_db):
        result = aggregate_board({"db_path": temp_db})

        assert [column["state"] for column in result["columns"]] == [s.value for s in BOARD_COLUMNS]
        assert all(column["items"] == [] for column in result["columns"])
        assert result["summary"] == {
            "total": 0,
            "active": 0,
            "finalized": 0,
            "discarded": 0,
            "possible_candidates": 0,
            "rejected_by_candidate": 0,
        }

    def test_first_pages_equal_column_reads(self, temp_db):
        for day in range(1, 5):
            insert_application(temp_db, state="TO_CALL", submitted_at=f"2026-01-0{day}T00:00:00.000Z")
        for rank in (3, None, 1):
            insert_application(temp_db, state="POSSIBLE_CANDIDATES", priority_rank=rank)

        board = _columns_by_state(aggregate_board({"db_path": temp_db, "limit": 2}))

        for state in ("TO_CALL", "POSSIBLE_CANDIDATES"):
            page = list_applications_by_state({"state": state, "limit": 2, "db_path": temp_db})
            assert board[state]["items"] == page["items"]
            assert board[state]["has_next_page"] == page["has_next_page"]
            assert board[state]["total_count"] == page["total_count"]

        assert board["TO_CALL"]["count"] == 2
        assert board["TO_CALL"]["total_count"] == 4
        assert board["TO_CALL"]["label"] == "To Call"

    def test_summary_counts(self, temp_db):
        insert_application(temp_db, state="CVS_RECEIVED")
        insert_application(temp_db, state="REFERENCES")
        insert_application(temp_db, state="FINALIZED", fully_finalized=1, employee_id="e-1")
        insert_application(temp_db, state="DISCARDED")
        insert_application(temp_db, state="DISCARDED")
        insert_application(temp_db, state="POSSIBLE_CANDIDATES")
        insert_application(temp_db, state="REJECTED_BY_CANDIDATE")

        summary = aggregate_board({"db_path": temp_db})["summary"]

        assert summary == {
            "total": 7,
            "active": 2,
            "finalized": 1,
            "discarded": 2,
            "possible_candidates": 1,
            "rejected_by_candidate": 1,
        }

    def test_convocatoria_filter(self, temp_db):
        insert_application(temp_db, state="TO_CALL", convocatoria_id="conv-a")
        insert_application(temp_db, state="TO_CALL", convocatoria_id="conv-b")

        result = aggregate_board({"db_path": temp_db, "convocatoria_id": "conv-a"})

        assert result["convocatoria_id"] == "conv-a"
        assert result["summary"]["total"] == 1
        assert _columns_by_state(result)["TO_CALL"]["items"][0]["convocatoria_id"] == "conv-a"

    def test_invalid_limit(self, temp_db):
        result = aggregate_board({"db_path": temp_db, "limit": 0})
        assert result["error"]["code"] == "VALIDATION_ERROR"


class TestBuildSummary:
    def test_active_excludes_finalized_and_archival(self):
        counts = {
            "TO_CALL": {"total": 3, "fully_finalized": 0},
            "FINALIZED": {"total": 2, "fully_finalized": 1},
            "DISCARDED": {"total": 4, "fully_finalized": 0},
        }
        summary = build_summary(counts)
        assert summary["active"] == 3
        assert summary["total"] == 9
        assert summary["finalized"] == 2
