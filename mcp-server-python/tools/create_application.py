"""
MCP tool handler for create_application (intake).
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from db.applications_writer import ApplicationsWriter
from models.application import to_application_schema
from models.errors import ToolError, create_internal_error
from schemas.intake import CreateApplicationRequest, CreateApplicationResponse
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.validation import get_current_utc_timestamp

logger = logging.getLogger(__name__)


def create_application(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Register a new application on the board.

    Creation is not a transition: no ledger entry is written, even when the
    application starts in an archival bucket.

    Args:
        args: Dictionary containing:
            - candidate_id (str), convocatoria_id (str)
            - candidate_name (str, optional)
            - form_answers (dict, optional): Stored verbatim
            - priority_rank (int, optional)
            - initial_state (str, optional): Any state except FINALIZED
              (default CVS_RECEIVED)
            - submitted_at (str, optional): ISO 8601 (default now)
            - db_path (str, optional)

    Returns:
        {"application": {...}} or an error dictionary
    """
    try:
        request = CreateApplicationRequest.model_validate(args)
        timestamp = get_current_utc_timestamp()

        with ApplicationsWriter(request.db_path) as writer:
            application_id = writer.insert_application(
                candidate_id=request.candidate_id,
                convocatoria_id=request.convocatoria_id,
                state=request.initial_state.value,
                submitted_at=request.submitted_at or timestamp,
                timestamp=timestamp,
                candidate_name=request.candidate_name,
                form_answers=request.form_answers,
                priority_rank=request.priority_rank,
            )
            row = writer.fetch_application(application_id)
            writer.commit()

        logger.info(
            "Created application %s for candidate %s in %s",
            application_id,
            request.candidate_id,
            request.initial_state.value,
        )
        return CreateApplicationResponse(application=to_application_schema(row)).model_dump(
            mode="json"
        )

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in create_application")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
