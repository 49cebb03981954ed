"""
Tests for repo-root anchored path resolution.
"""

import os
from unittest.mock import patch

import pytest

from models.errors import ErrorCode, ToolError
from utils.path_resolution import (
    get_repo_root,
    resolve_db_path,
    resolve_existing_db_path,
    resolve_log_path,
)


class TestResolveDbPath:
    def test_explicit_argument_wins(self, tmp_path):
        explicit = tmp_path / "explicit.db"
        with patch.dict(os.environ, {"KANBAN_DB": str(tmp_path / "env.db")}, clear=True):
            assert resolve_db_path(str(explicit)) == explicit

    def test_env_relative_to_root(self, tmp_path):
        env = {"KANBAN_ROOT": str(tmp_path), "KANBAN_DB": "boards/hr.db"}
        with patch.dict(os.environ, env, clear=True):
            assert resolve_db_path() == tmp_path.resolve() / "boards" / "hr.db"

    def test_default_under_root(self, tmp_path):
        with patch.dict(os.environ, {"KANBAN_ROOT": str(tmp_path)}, clear=True):
            assert resolve_db_path() == tmp_path.resolve() / "data" / "kanban.db"

    def test_default_root_is_repository(self):
        with patch.dict(os.environ, {}, clear=True):
            assert (get_repo_root() / "mcp-server-python").is_dir()


class TestResolveExistingDbPath:
    def test_existing_file(self, temp_db):
        assert str(resolve_existing_db_path(temp_db)) == temp_db

    def test_missing_file_is_db_not_found(self, tmp_path):
        with pytest.raises(ToolError) as exc_info:
            resolve_existing_db_path(str(tmp_path / "missing.db"))
        assert exc_info.value.code == ErrorCode.DB_NOT_FOUND

    def test_directory_is_not_a_database(self, tmp_path):
        with pytest.raises(ToolError) as exc_info:
            resolve_existing_db_path(str(tmp_path))
        assert exc_info.value.code == ErrorCode.DB_NOT_FOUND


class TestResolveLogPath:
    def test_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            assert resolve_log_path() is None

    def test_relative_to_root(self, tmp_path):
        env = {"KANBAN_ROOT": str(tmp_path), "KANBAN_LOG_FILE": "logs/kanban.log"}
        with patch.dict(os.environ, env, clear=True):
            assert resolve_log_path() == tmp_path.resolve() / "logs" / "kanban.log"
