"""
Path resolution for the board database and log files.

Relative paths are anchored at the repository root (or KANBAN_ROOT), never at
the process cwd, so the server behaves the same whichever directory an MCP
client launches it from.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

from models.errors import create_db_not_found_error

DEFAULT_DB_RELATIVE_PATH = Path("data") / "kanban.db"


def get_repo_root() -> Path:
    """
    Resolve the repository root.

    Resolution order:
    1. KANBAN_ROOT environment variable
    2. Parent of the mcp-server-python directory
    """
    root_env = os.getenv("KANBAN_ROOT")
    if root_env:
        return Path(root_env).expanduser().resolve()

    # utils/ -> mcp-server-python/ -> repo root
    return Path(__file__).resolve().parents[2]


def resolve_repo_relative_path(path: Union[str, Path]) -> Path:
    """Return absolute paths unchanged; anchor relative ones at the repo root."""
    path_obj = Path(path).expanduser()
    if path_obj.is_absolute():
        return path_obj
    return get_repo_root() / path_obj


def resolve_db_path(db_path: Optional[str] = None) -> Path:
    """
    Resolve the board database path.

    Resolution order:
    1. Explicit `db_path` argument (tool override)
    2. `KANBAN_DB`
    3. `<repo_root>/data/kanban.db`
    """
    if db_path is not None:
        return resolve_repo_relative_path(db_path)

    db_env = os.getenv("KANBAN_DB")
    if db_env:
        return resolve_repo_relative_path(db_env)

    return resolve_repo_relative_path(DEFAULT_DB_RELATIVE_PATH)


def resolve_existing_db_path(db_path: Optional[str] = None) -> Path:
    """
    Resolve the board database and require it to exist.

    Tools never create the database implicitly; `scripts/init_kanban_db.py`
    does that.

    Raises:
        ToolError: DB_NOT_FOUND when the resolved path is not a file
    """
    resolved = resolve_db_path(db_path)
    if not resolved.is_file():
        raise create_db_not_found_error(str(resolved))
    return resolved


def resolve_log_path() -> Optional[Path]:
    """Resolve KANBAN_LOG_FILE, or None when logging goes to stderr only."""
    log_env = os.getenv("KANBAN_LOG_FILE")
    if not log_env:
        return None
    return resolve_repo_relative_path(log_env)
