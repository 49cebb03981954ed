"""
MCP tool handler for rank_possible_candidate.

Sets the ordering key of the POSSIBLE_CANDIDATES column. Ranking is not a
state change and writes no ledger entry.
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from db.applications_writer import ApplicationsWriter
from models.errors import (
    IllegalTransitionError,
    ToolError,
    create_internal_error,
    create_not_found_error,
)
from models.pipeline_state import PipelineState
from schemas.board import RankPossibleCandidateRequest, RankPossibleCandidateResponse
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.validation import get_current_utc_timestamp

logger = logging.getLogger(__name__)


def rank_possible_candidate(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Set or clear the priority rank of a possible candidate.

    Args:
        args: Dictionary containing:
            - application_id (int)
            - priority_rank (int | None): Lower ranks sort first; None clears
            - db_path (str, optional)

    Returns:
        {"application_id", "priority_rank", "previous_priority_rank"} or an
        error dictionary (ILLEGAL_TRANSITION when the application is not in
        POSSIBLE_CANDIDATES)
    """
    try:
        request = RankPossibleCandidateRequest.model_validate(args)

        with ApplicationsWriter(request.db_path) as writer:
            application = writer.fetch_application(request.application_id)
            if application is None:
                raise create_not_found_error(request.application_id)
            if application["state"] != PipelineState.POSSIBLE_CANDIDATES.value:
                raise IllegalTransitionError(
                    f"Only POSSIBLE_CANDIDATES can be ranked; application "
                    f"{request.application_id} is in '{application['state']}'"
                )
            writer.update_priority_rank(
                request.application_id, request.priority_rank, get_current_utc_timestamp()
            )
            writer.commit()

        return RankPossibleCandidateResponse(
            application_id=request.application_id,
            priority_rank=request.priority_rank,
            previous_priority_rank=application["priority_rank"],
        ).model_dump()

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in rank_possible_candidate")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
