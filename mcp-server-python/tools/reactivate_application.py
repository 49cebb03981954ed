"""
MCP tool handler for reactivate_application.

Returns an archival application to the active state it was in before it was
archived, as resolved from the history ledger.
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from db.applications_writer import ApplicationsWriter
from models.errors import NotArchivedError, ToolError, create_internal_error
from models.pipeline_state import PipelineState, is_archival
from schemas.transition import ReactivateApplicationRequest
from tools.transition_application import (
    build_transition_response,
    load_application_for_update,
    log_committed_transition,
    perform_transition,
    resolve_timeout,
)
from utils.effective_state import resolve_effective_state
from utils.pydantic_error_mapper import map_pydantic_validation_error

logger = logging.getLogger(__name__)


def reactivate_application(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reactivate an application parked in an archival bucket.

    The resolver read and the state change share one write transaction, so
    the resume state cannot shift between the two.

    Args:
        args: Dictionary containing:
            - application_id (int)
            - actor_id (str), actor_name (str)
            - reason (str, optional), comment (str, optional)
            - timeout_seconds (float, optional)
            - db_path (str, optional)

    Returns:
        Same structure as transition_application with change_kind
        REACTIVATION, or an error dictionary (NOT_ARCHIVED when the
        application is active)
    """
    try:
        request = ReactivateApplicationRequest.model_validate(args)

        timeout = resolve_timeout(request.timeout_seconds)
        with ApplicationsWriter(request.db_path, timeout=timeout) as writer:
            application = load_application_for_update(writer, request.application_id)
            current_state = PipelineState(application["state"])
            if not is_archival(current_state):
                raise NotArchivedError(
                    f"Application {request.application_id} is in active state "
                    f"'{current_state.value}' and cannot be reactivated"
                )

            latest_entry = writer.fetch_latest_history_entry(request.application_id)
            resolved = resolve_effective_state(application, latest_entry)

            decision, entry = perform_transition(
                writer,
                application,
                resolved.resume_state,
                actor_id=request.actor_id,
                actor_name=request.actor_name,
                reason=request.reason,
                comment=request.comment,
            )
            writer.commit()

        log_committed_transition(entry)
        return build_transition_response(request.application_id, decision, entry)

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in reactivate_application")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
