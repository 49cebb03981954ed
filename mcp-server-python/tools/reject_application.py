"""
MCP tool handler for reject_application.

Generic reject action: the archival bucket is computed from the rejection
threshold instead of being chosen by the caller.
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from db.applications_writer import ApplicationsWriter
from models.errors import IllegalTransitionError, ToolError, create_internal_error
from models.pipeline_state import PipelineState, is_archival
from schemas.transition import RejectApplicationRequest
from tools.transition_application import (
    build_transition_response,
    get_rejection_threshold,
    load_application_for_update,
    log_committed_transition,
    perform_transition,
    resolve_timeout,
)
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.transition_policy import rejection_target

logger = logging.getLogger(__name__)


def reject_application(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reject an application into the bucket its current stage calls for.

    Rejections at or after the threshold state land in POSSIBLE_CANDIDATES,
    earlier ones in DISCARDED.

    Args:
        args: Dictionary containing:
            - application_id (int)
            - expected_current_state (str)
            - actor_id (str), actor_name (str)
            - reason (str): Required
            - comment (str, optional)
            - timeout_seconds (float, optional)
            - db_path (str, optional)

    Returns:
        Same structure as transition_application, or an error dictionary
    """
    try:
        request = RejectApplicationRequest.model_validate(args)

        timeout = resolve_timeout(request.timeout_seconds)
        with ApplicationsWriter(request.db_path, timeout=timeout) as writer:
            application = load_application_for_update(
                writer, request.application_id, request.expected_current_state
            )
            current_state = PipelineState(application["state"])
            if is_archival(current_state):
                raise IllegalTransitionError(
                    f"Application {request.application_id} is already archived in "
                    f"'{current_state.value}'"
                )

            bucket = rejection_target(current_state, get_rejection_threshold())
            decision, entry = perform_transition(
                writer,
                application,
                bucket,
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
        logger.exception("Unexpected error in reject_application")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
