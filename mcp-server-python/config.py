"""
Configuration module for the Kanban pipeline MCP Server.

Provides centralized configuration management with support for:
- Environment variables
- Default values
- Path resolution
- Logging configuration
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from models.pipeline_state import ACTIVE_STATES
from utils.path_resolution import get_repo_root, resolve_db_path, resolve_log_path

# Load environment variables from .env file at project root
# config.py is in mcp-server-python/, so .env is in parent directory
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=_env_path)

DEFAULT_REJECTION_THRESHOLD_STATE = "REFERENCES"


def _parse_int(env_var: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back on bad input."""
    value = os.getenv(env_var)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float(env_var: str, default: float) -> float:
    """Parse a float from an environment variable, falling back on bad input."""
    value = os.getenv(env_var)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


class Config:
    """
    Configuration class for MCP server settings.

    Supports configuration via environment variables (and .env file) with sensible defaults.
    All paths are resolved relative to the repository root.
    """

    def __init__(self):
        """Initialize configuration from environment variables and defaults."""
        self._repo_root = get_repo_root()

        # Database configuration (KANBAN_DB, else <repo_root>/data/kanban.db)
        self.db_path = resolve_db_path()

        # Logging configuration; no KANBAN_LOG_FILE means stderr only
        self.log_level = os.getenv("KANBAN_LOG_LEVEL", "INFO").upper()
        self.log_file = resolve_log_path()

        # Server configuration
        self.server_name = os.getenv("KANBAN_SERVER_NAME", "kanban-pipeline-mcp-server")

        # Column reader defaults
        self.column_page_size = _parse_int("KANBAN_COLUMN_PAGE_SIZE", 20)

        # Rejection bucket threshold: rejections at or after this state are kept
        # as possible candidates instead of being discarded
        self.rejection_threshold_state = os.getenv(
            "KANBAN_REJECTION_THRESHOLD_STATE", DEFAULT_REJECTION_THRESHOLD_STATE
        ).strip().upper()

        # I/O deadlines
        self.operation_timeout_seconds = _parse_float("KANBAN_OPERATION_TIMEOUT_SECONDS", 5.0)
        self.finalize_claim_ttl_seconds = _parse_int("KANBAN_FINALIZE_CLAIM_TTL_SECONDS", 300)

    def setup_logging(self):
        """
        Configure logging based on configuration settings.

        Sets up logging to stderr and optionally to a file.
        Log level is controlled by KANBAN_LOG_LEVEL.
        """
        numeric_level = getattr(logging, self.log_level, logging.INFO)

        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(numeric_level)

        # Remove existing handlers to avoid duplicates
        root_logger.handlers.clear()

        # Always add stderr handler (stdout carries the MCP stdio transport)
        stderr_handler = logging.StreamHandler()
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(formatter)
        root_logger.addHandler(stderr_handler)

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(self.log_file)
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

            logging.info(f"Logging to file: {self.log_file}")

        logging.info(f"Log level set to: {self.log_level}")
        logging.info(f"Repository root: {self._repo_root}")
        logging.info(f"Database path: {self.db_path}")

    def get_db_path_str(self) -> str:
        """
        Get database path as string for use in tool handlers.

        Returns:
            Database path as string
        """
        return str(self.db_path)

    def validate(self) -> list[str]:
        """
        Validate configuration and return any warnings.

        Returns:
            List of warning messages (empty if all valid)
        """
        warnings = []

        if not self.db_path.exists():
            warnings.append(
                f"Database file not found: {self.db_path}. "
                "Run scripts/init_kanban_db.py to create it; tools will fail until it exists."
            )

        if self.rejection_threshold_state not in {state.value for state in ACTIVE_STATES}:
            warnings.append(
                f"Invalid KANBAN_REJECTION_THRESHOLD_STATE '{self.rejection_threshold_state}'. "
                f"Falling back to {DEFAULT_REJECTION_THRESHOLD_STATE}."
            )
            self.rejection_threshold_state = DEFAULT_REJECTION_THRESHOLD_STATE

        if self.column_page_size < 1:
            warnings.append(
                f"Invalid KANBAN_COLUMN_PAGE_SIZE {self.column_page_size}. Falling back to 20."
            )
            self.column_page_size = 20

        if self.operation_timeout_seconds <= 0:
            warnings.append(
                f"Invalid KANBAN_OPERATION_TIMEOUT_SECONDS {self.operation_timeout_seconds}. "
                "Falling back to 5.0."
            )
            self.operation_timeout_seconds = 5.0

        if self.log_file:
            log_dir = self.log_file.parent
            if not log_dir.exists():
                try:
                    log_dir.mkdir(parents=True, exist_ok=True)
                except Exception as e:
                    warnings.append(f"Cannot create log directory {log_dir}: {e}")
            elif not os.access(log_dir, os.W_OK):
                warnings.append(f"Log directory not writable: {log_dir}")

        return warnings


# Global configuration instance
config = Config()


def get_config() -> Config:
    """
    Get the global configuration instance.

    Returns:
        Global Config instance
    """
    return config
