"""
Tests for the history ledger read tools.
"""

import pytest

from conftest import insert_application, insert_history_entry
from tools.list_history import list_candidate_history, list_history, search_history


class TestListHistory:
    def test_newest_first_by_default(self, temp_db):
        app_id = insert_application(temp_db, state="PRE_INTERVIEW")
        insert_history_entry(temp_db, app_id, "CVS_RECEIVED", "TO_CALL", "2026-01-02T00:00:00.000Z")
        insert_history_entry(temp_db, app_id, "TO_CALL", "PRE_INTERVIEW", "2026-01-04T00:00:00.000Z")

        result = list_history({"application_id": app_id, "db_path": temp_db})

        assert result["count"] == 2
        assert result["order"] == "desc"
        assert [e["state_after"] for e in result["entries"]] == ["PRE_INTERVIEW", "TO_CALL"]

    def test_ascending_order(self, temp_db):
        app_id = insert_application(temp_db, state="PRE_INTERVIEW")
        insert_history_entry(temp_db, app_id, "CVS_RECEIVED", "TO_CALL", "2026-01-02T00:00:00.000Z")
        insert_history_entry(temp_db, app_id, "TO_CALL", "PRE_INTERVIEW", "2026-01-04T00:00:00.000Z")

        result = list_history({"application_id": app_id, "order": "asc", "db_path": temp_db})

        assert [e["state_after"] for e in result["entries"]] == ["TO_CALL", "PRE_INTERVIEW"]

    def test_same_timestamp_ordered_by_sequence(self, temp_db):
        app_id = insert_application(temp_db, state="PRE_INTERVIEW")
        same = "2026-01-02T00:00:00.000Z"
        first = insert_history_entry(temp_db, app_id, "CVS_RECEIVED", "TO_CALL", same)
        second = insert_history_entry(temp_db, app_id, "TO_CALL", "PRE_INTERVIEW", same)

        result = list_history({"application_id": app_id, "db_path": temp_db})

        assert [e["id"] for e in result["entries"]] == [second, first]

    def test_application_without_history(self, temp_db):
        app_id = insert_application(temp_db)
        result = list_history({"application_id": app_id, "db_path": temp_db})
        assert result["entries"] == []
        assert result["count"] == 0

    def test_unknown_application(self, temp_db):
        result = list_history({"application_id": 5, "db_path": temp_db})
        assert result["error"]["code"] == "NOT_FOUND"

    def test_invalid_order(self, temp_db):
        result = list_history({"application_id": 1, "order": "newest", "db_path": temp_db})
        assert result["error"]["code"] == "VALIDATION_ERROR"


class TestListCandidateHistory:
    def test_entries_across_applications(self, temp_db):
        first_app = insert_application(temp_db, candidate_id="cand-7", convocatoria_id="conv-a")
        second_app = insert_application(temp_db, candidate_id="cand-7", convocatoria_id="conv-b")
        other_app = insert_application(temp_db, candidate_id="cand-8")
        insert_history_entry(
            temp_db, first_app, "CVS_RECEIVED", "TO_CALL", "2026-01-02T00:00:00.000Z",
            candidate_id="cand-7",
        )
        insert_history_entry(
            temp_db, second_app, "CVS_RECEIVED", "TO_CALL", "2026-01-03T00:00:00.000Z",
            candidate_id="cand-7",
        )
        insert_history_entry(
            temp_db, other_app, "CVS_RECEIVED", "TO_CALL", "2026-01-04T00:00:00.000Z",
            candidate_id="cand-8",
        )

        result = list_candidate_history({"candidate_id": "cand-7", "db_path": temp_db})

        assert result["candidate_id"] == "cand-7"
        assert [e["application_id"] for e in result["entries"]] == [second_app, first_app]

    def test_unknown_candidate_is_empty(self, temp_db):
        result = list_candidate_history({"candidate_id": "nobody", "db_path": temp_db})
        assert result == {"candidate_id": "nobody", "entries": [], "count": 0}

    def test_blank_candidate_id(self, temp_db):
        result = list_candidate_history({"candidate_id": " ", "db_path": temp_db})
        assert result["error"]["code"] == "VALIDATION_ERROR"


@pytest.fixture
def ledger(temp_db):
    """Two applications of different candidates with a small mixed ledger."""
    app_a = insert_application(temp_db, state="PRE_INTERVIEW", candidate_id="cand-a")
    app_b = insert_application(temp_db, state="DISCARDED", candidate_id="cand-b")
    ids = {
        "a1": insert_history_entry(
            temp_db, app_a, "CVS_RECEIVED", "TO_CALL", "2026-01-02T09:00:00.000Z",
            candidate_id="cand-a", actor_id="u1",
        ),
        "a2": insert_history_entry(
            temp_db, app_a, "TO_CALL", "PRE_INTERVIEW", "2026-01-04T09:00:00.000Z",
            candidate_id="cand-a", actor_id="u2",
        ),
        "b1": insert_history_entry(
            temp_db, app_b, "CVS_RECEIVED", "TO_CALL", "2026-01-04T15:00:00.000Z",
            candidate_id="cand-b", actor_id="u1",
        ),
        "b2": insert_history_entry(
            temp_db, app_b, "TO_CALL", "DISCARDED", "2026-01-05T09:00:00.000Z",
            change_kind="REJECTION", candidate_id="cand-b", actor_id="u2",
        ),
    }
    return temp_db, app_a, app_b, ids


class TestSearchHistory:
    def test_unfiltered_newest_first(self, ledger):
        db_path, _, _, ids = ledger

        result = search_history({"db_path": db_path})

        assert [e["id"] for e in result["entries"]] == [ids["b2"], ids["b1"], ids["a2"], ids["a1"]]
        assert result["total_count"] == 4
        assert result["has_next_page"] is False
        assert result["filters"]["change_kind"] is None

    def test_filters_combine(self, ledger):
        db_path, _, _, ids = ledger

        by_actor = search_history({"db_path": db_path, "actor_id": "u1"})
        by_kind = search_history({"db_path": db_path, "change_kind": "rejection"})
        by_target = search_history(
            {"db_path": db_path, "state_after": "TO_CALL", "candidate_id": "cand-a"}
        )

        assert [e["id"] for e in by_actor["entries"]] == [ids["b1"], ids["a1"]]
        assert [e["id"] for e in by_kind["entries"]] == [ids["b2"]]
        assert by_kind["filters"]["change_kind"] == "REJECTION"
        assert [e["id"] for e in by_target["entries"]] == [ids["a1"]]

    def test_application_filter(self, ledger):
        db_path, app_a, _, _ = ledger

        result = search_history({"db_path": db_path, "application_id": app_a})

        assert {e["application_id"] for e in result["entries"]} == {app_a}
        assert result["count"] == 2

    def test_bare_date_window_is_whole_day(self, ledger):
        db_path, _, _, ids = ledger

        result = search_history(
            {"db_path": db_path, "date_from": "2026-01-04", "date_to": "2026-01-04"}
        )

        assert [e["id"] for e in result["entries"]] == [ids["b1"], ids["a2"]]

    def test_pages(self, ledger):
        db_path, _, _, ids = ledger

        first = search_history({"db_path": db_path, "limit": 3})
        second = search_history({"db_path": db_path, "limit": 3, "offset": 3})

        assert first["count"] == 3
        assert first["has_next_page"] is True
        assert [e["id"] for e in second["entries"]] == [ids["a1"]]
        assert second["has_next_page"] is False
        assert second["total_count"] == 4

    def test_exact_last_page_is_terminal(self, ledger):
        db_path, _, _, _ = ledger

        result = search_history({"db_path": db_path, "limit": 4})

        assert result["count"] == 4
        assert result["has_next_page"] is False

    def test_unknown_change_kind(self, ledger):
        db_path, _, _, _ = ledger

        result = search_history({"db_path": db_path, "change_kind": "PROMOTION"})

        assert result["error"]["code"] == "VALIDATION_ERROR"
        assert result["error"]["message"].startswith("Invalid change_kind: expected one of")

    @pytest.mark.parametrize(
        "args",
        [
            {"application_id": 0},
            {"actor_id": "  "},
            {"limit": 0},
            {"offset": -1},
            {"date_from": "2026-02-01", "date_to": "2026-01-01"},
        ],
    )
    def test_invalid_filters(self, temp_db, args):
        result = search_history({"db_path": temp_db, **args})
        assert result["error"]["code"] == "VALIDATION_ERROR"

    def test_missing_database(self, tmp_path):
        result = search_history({"db_path": str(tmp_path / "missing.db")})
        assert result["error"]["code"] == "DB_NOT_FOUND"
