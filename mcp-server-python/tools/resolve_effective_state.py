"""
MCP tool handler for resolve_effective_state.

Read-only: reports the state an application is effectively in (its state
before archival, when archived) and the state a reactivation would restore.
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from db.applications_reader import fetch_application, fetch_latest_history_entry, get_connection
from models.errors import ToolError, create_internal_error, create_not_found_error
from schemas.transition import ResolveEffectiveStateRequest, ResolveEffectiveStateResponse
from utils.effective_state import resolve_effective_state as resolve
from utils.pydantic_error_mapper import map_pydantic_validation_error

logger = logging.getLogger(__name__)


def resolve_effective_state(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Resolve an application's effective state from the history ledger.

    Args:
        args: Dictionary containing:
            - application_id (int)
            - db_path (str, optional)

    Returns:
        Dictionary with structure:
        {
            "application_id": int,
            "current_state": str,
            "effective_state": str,  # current if active; if archived, state_before of the latest entry
            "resume_state": str,     # effective state if active, else CVS_RECEIVED
            "source": str            # "history" or "current"
        }
    """
    try:
        request = ResolveEffectiveStateRequest.model_validate(args)

        with get_connection(request.db_path) as conn:
            application = fetch_application(conn, request.application_id)
            if application is None:
                raise create_not_found_error(request.application_id)
            latest_entry = fetch_latest_history_entry(conn, request.application_id)

        resolved = resolve(application, latest_entry)
        return ResolveEffectiveStateResponse(**resolved.to_dict()).model_dump()

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in resolve_effective_state")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
