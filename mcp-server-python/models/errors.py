"""
Error model for the Kanban pipeline MCP tools.

Provides structured error codes, typed exceptions for each failure class of
the state machine, and sanitized error messages.
"""

from enum import Enum
from typing import Optional
import os
import re


class ErrorCode(str, Enum):
    """Structured error codes for the MCP tools."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    STALE_STATE = "STALE_STATE"
    ALREADY_FINALIZED = "ALREADY_FINALIZED"
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
    NOT_ARCHIVED = "NOT_ARCHIVED"
    FINALIZATION_IN_PROGRESS = "FINALIZATION_IN_PROGRESS"
    DOWNSTREAM_FAILURE = "DOWNSTREAM_FAILURE"
    TIMEOUT = "TIMEOUT"
    DB_NOT_FOUND = "DB_NOT_FOUND"
    DB_ERROR = "DB_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ToolError(Exception):
    """Base exception for tool errors with structured error information."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        retryable: bool = False,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize a tool error.

        Args:
            code: The error code
            message: Human-readable error message
            retryable: Whether the operation can be retried
            original_error: The original exception if this wraps another error
        """
        self.code = code
        self.message = message
        self.retryable = retryable
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert error to dictionary format for MCP response."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "retryable": self.retryable
            }
        }


class _TypedToolError(ToolError):
    """ToolError whose code and retryability are fixed by the subclass."""

    CODE: ErrorCode = ErrorCode.INTERNAL_ERROR
    RETRYABLE: bool = False

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            code=self.CODE,
            message=message,
            retryable=self.RETRYABLE,
            original_error=original_error,
        )


class RequestValidationError(_TypedToolError):
    """Caller input is invalid; fix the request before sending it again."""
    CODE = ErrorCode.VALIDATION_ERROR


class ApplicationNotFoundError(_TypedToolError):
    CODE = ErrorCode.NOT_FOUND


class StaleStateError(_TypedToolError):
    """The application moved since the caller read it. Re-read, then resubmit."""
    CODE = ErrorCode.STALE_STATE
    RETRYABLE = True


class AlreadyFinalizedError(_TypedToolError):
    CODE = ErrorCode.ALREADY_FINALIZED


class IllegalTransitionError(_TypedToolError):
    """Target state is not reachable from the current state by any rule."""
    CODE = ErrorCode.ILLEGAL_TRANSITION


class NotArchivedError(_TypedToolError):
    CODE = ErrorCode.NOT_ARCHIVED


class FinalizationInProgressError(_TypedToolError):
    """Another request currently holds the finalization claim."""
    CODE = ErrorCode.FINALIZATION_IN_PROGRESS
    RETRYABLE = True


class DownstreamFailure(_TypedToolError):
    """Employee creation failed. Retrying is safe: creation is idempotent."""
    CODE = ErrorCode.DOWNSTREAM_FAILURE
    RETRYABLE = True


class OperationTimeoutError(_TypedToolError):
    CODE = ErrorCode.TIMEOUT
    RETRYABLE = True


def sanitize_path(path: str) -> str:
    """
    Sanitize file paths to avoid exposing sensitive system details.

    Returns only the basename for absolute paths, keeps relative paths.

    Args:
        path: The file path to sanitize

    Returns:
        Sanitized path string
    """
    if os.path.isabs(path):
        return os.path.basename(path)
    return path


def sanitize_sql_error(error_msg: str) -> str:
    """
    Sanitize SQL error messages to remove sensitive details.

    Removes SQL fragments and keeps only actionable information.

    Args:
        error_msg: The original error message

    Returns:
        Sanitized error message
    """
    sanitized = re.sub(r'SQL:.*', '', error_msg, flags=re.IGNORECASE)
    sanitized = re.sub(r'"[^"]*SELECT[^"]*"', '[SQL query]', sanitized, flags=re.IGNORECASE)
    sanitized = re.sub(r"'[^']*SELECT[^']*'", '[SQL query]', sanitized, flags=re.IGNORECASE)

    # Unquoted statements
    sanitized = re.sub(r'\b(SELECT|INSERT|UPDATE|DELETE)\b.*', '[SQL query]', sanitized, flags=re.IGNORECASE)

    sanitized = re.sub(r'/[^\s]+/', '[path]/', sanitized)

    return sanitized.strip()


def sanitize_stack_trace(error_msg: str) -> str:
    """
    Remove stack traces from error messages.

    Args:
        error_msg: The original error message

    Returns:
        Error message without stack trace
    """
    lines = error_msg.split('\n')
    if lines:
        return lines[0].strip()
    return error_msg


def create_validation_error(message: str) -> ToolError:
    """
    Create a validation error.

    Args:
        message: Description of the validation failure

    Returns:
        RequestValidationError with VALIDATION_ERROR code
    """
    return RequestValidationError(message)


def create_not_found_error(application_id: int) -> ToolError:
    """Create an error for an application id that does not exist."""
    return ApplicationNotFoundError(f"Application {application_id} does not exist")


def create_stale_state_error(application_id: int, expected: str, actual: str) -> ToolError:
    """
    Create an optimistic-concurrency conflict error.

    Args:
        application_id: The application that was targeted
        expected: The state the caller believed the application was in
        actual: The state found at commit time

    Returns:
        StaleStateError (retryable after re-reading the application)
    """
    return StaleStateError(
        f"Application {application_id} is in state '{actual}', expected '{expected}'. "
        "Re-read the application and resubmit."
    )


def create_db_not_found_error(db_path: str) -> ToolError:
    """
    Create a database not found error.

    Args:
        db_path: The database path that was not found

    Returns:
        ToolError with DB_NOT_FOUND code
    """
    sanitized_path = sanitize_path(db_path)
    return ToolError(
        code=ErrorCode.DB_NOT_FOUND,
        message=f"Database not found: {sanitized_path}",
        retryable=False
    )


def create_timeout_error(message: str, original_error: Optional[Exception] = None) -> ToolError:
    """
    Create a retryable timeout error.

    Args:
        message: What timed out
        original_error: The original exception

    Returns:
        OperationTimeoutError with TIMEOUT code
    """
    return OperationTimeoutError(
        f"Timed out: {sanitize_stack_trace(message)}", original_error=original_error
    )


def create_db_error(message: str, retryable: bool = False, original_error: Optional[Exception] = None) -> ToolError:
    """
    Create a database error.

    Args:
        message: Description of the database error
        retryable: Whether the operation can be retried
        original_error: The original exception

    Returns:
        ToolError with DB_ERROR code
    """
    sanitized_message = sanitize_sql_error(message)
    sanitized_message = sanitize_stack_trace(sanitized_message)

    return ToolError(
        code=ErrorCode.DB_ERROR,
        message=f"Database error: {sanitized_message}",
        retryable=retryable,
        original_error=original_error
    )


def create_internal_error(message: str, original_error: Optional[Exception] = None) -> ToolError:
    """
    Create an internal error for unexpected exceptions.

    Args:
        message: Description of the internal error
        original_error: The original exception

    Returns:
        ToolError with INTERNAL_ERROR code
    """
    sanitized_message = sanitize_stack_trace(message)

    return ToolError(
        code=ErrorCode.INTERNAL_ERROR,
        message=f"Internal error: {sanitized_message}",
        retryable=True,
        original_error=original_error
    )
