"""
Tests for the list_applications_by_state tool (one Kanban column page).
"""

import sqlite3
import tempfile
from pathlib import Path
from unittest.mock import patch

from hypothesis import given, settings, strategies as st

from conftest import insert_application
from db.schema import bootstrap_schema
from tools.list_applications_by_state import list_applications_by_state, resolve_page_size


def _page(db_path, state, **extra):
    return list_applications_by_state({"state": state, "db_path": db_path, **extra})


class TestColumnPages:
    def test_ranked_column_pages_without_overlap_or_gap(self, temp_db):
        ids = [
            insert_application(temp_db, state="POSSIBLE_CANDIDATES", priority_rank=rank)
            for rank in (4, 2, 5, 1, 3)
        ]
        expected = [ids[3], ids[1], ids[4], ids[0], ids[2]]

        first = _page(temp_db, "POSSIBLE_CANDIDATES", limit=2, offset=0)
        second = _page(temp_db, "POSSIBLE_CANDIDATES", limit=2, offset=2)
        third = _page(temp_db, "POSSIBLE_CANDIDATES", limit=2, offset=4)

        assert [item["id"] for item in first["items"]] == expected[:2]
        assert [item["id"] for item in second["items"]] == expected[2:4]
        assert [item["id"] for item in third["items"]] == expected[4:]
        assert first["has_next_page"] is True
        assert third["has_next_page"] is False
        assert first["total_count"] == 5

    def test_recent_submissions_first(self, temp_db):
        older = insert_application(temp_db, state="TO_CALL", submitted_at="2026-01-01T00:00:00.000Z")
        newer = insert_application(temp_db, state="TO_CALL", submitted_at="2026-01-09T00:00:00.000Z")

        result = _page(temp_db, "TO_CALL")

        assert [item["id"] for item in result["items"]] == [newer, older]
        assert result["state"] == "TO_CALL"
        assert result["limit"] == 20

    def test_full_last_page_reports_next_then_empty(self, temp_db):
        for _ in range(4):
            insert_application(temp_db, state="TO_CALL")

        full = _page(temp_db, "TO_CALL", limit=2, offset=2)
        empty = _page(temp_db, "TO_CALL", limit=2, offset=4)

        assert full["has_next_page"] is True
        assert empty["items"] == []
        assert empty["has_next_page"] is False

    def test_card_shape(self, temp_db):
        insert_application(
            temp_db,
            state="TO_CALL",
            candidate_name="Ana Pérez",
            form_answers={"years_experience": 4, "languages": ["es", "en"]},
        )

        item = _page(temp_db, "TO_CALL")["items"][0]

        assert item["candidate_name"] == "Ana Pérez"
        assert item["form_answers"] == {"years_experience": 4, "languages": ["es", "en"]}
        assert item["fully_finalized"] is False
        assert "form_answers_json" not in item
        assert "finalize_claim" not in item

    def test_convocatoria_filter(self, temp_db):
        insert_application(temp_db, state="TO_CALL", convocatoria_id="conv-a")
        insert_application(temp_db, state="TO_CALL", convocatoria_id="conv-b")

        result = _page(temp_db, "TO_CALL", convocatoria_id="conv-b")

        assert result["count"] == 1
        assert result["total_count"] == 1
        assert result["items"][0]["convocatoria_id"] == "conv-b"

    def test_lowercase_state(self, temp_db):
        insert_application(temp_db, state="DISCARDED")
        assert _page(temp_db, "discarded")["count"] == 1


class TestValidation:
    def test_unknown_state(self, temp_db):
        result = _page(temp_db, "ARCHIVED")
        assert result["error"]["code"] == "VALIDATION_ERROR"

    def test_limit_bounds(self, temp_db):
        assert _page(temp_db, "TO_CALL", limit=0)["error"]["code"] == "VALIDATION_ERROR"
        assert _page(temp_db, "TO_CALL", limit=201)["error"]["code"] == "VALIDATION_ERROR"
        assert _page(temp_db, "TO_CALL", limit=200)["count"] == 0

    def test_negative_offset(self, temp_db):
        result = _page(temp_db, "TO_CALL", offset=-1)
        assert result["error"]["message"].startswith("Invalid offset")

    def test_missing_state(self, temp_db):
        result = list_applications_by_state({"db_path": temp_db})
        assert result["error"]["message"] == "Missing required parameter: 'state'"

    def test_missing_database(self, tmp_path):
        result = _page(str(tmp_path / "missing.db"), "TO_CALL")
        assert result["error"]["code"] == "DB_NOT_FOUND"


class TestPageSize:
    def test_explicit_limit_wins(self):
        assert resolve_page_size(7) == 7

    def test_configured_default_is_clamped(self):
        with patch("tools.list_applications_by_state.get_config") as mock_config:
            mock_config.return_value.column_page_size = 500
            assert resolve_page_size(None) == 200


class TestPaginationProperty:
    @settings(max_examples=25, deadline=None)
    @given(
        ranks=st.lists(st.one_of(st.none(), st.integers(min_value=0, max_value=5)), max_size=12),
        limit=st.integers(min_value=1, max_value=5),
    )
    def test_pages_partition_the_column(self, ranks, limit):
        """Concatenated pages equal the column read in one go: no overlap, no gap."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            db_path = str(Path(tmp_dir) / "kanban.db")
            conn = sqlite3.connect(db_path)
            bootstrap_schema(conn)
            conn.close()
            for rank in ranks:
                insert_application(db_path, state="POSSIBLE_CANDIDATES", priority_rank=rank)

            collected = []
            offset = 0
            while True:
                page = _page(db_path, "POSSIBLE_CANDIDATES", limit=limit, offset=offset)
                collected.extend(item["id"] for item in page["items"])
                if not page["has_next_page"]:
                    break
                offset += limit

            whole = _page(db_path, "POSSIBLE_CANDIDATES", limit=200)
            assert collected == [item["id"] for item in whole["items"]]
            assert len(set(collected)) == len(ranks)
