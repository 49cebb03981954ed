"""
MCP tool handler for list_applications_by_state (one Kanban column page).
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from config import get_config
from db.applications_reader import (
    count_applications_by_state,
    get_connection,
    query_applications_by_state,
)
from models.application import to_application_schema
from models.errors import ToolError, create_internal_error
from schemas.board import ListApplicationsByStateRequest, ListApplicationsByStateResponse
from utils.pagination import build_column_page
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.validation import MAX_LIMIT

logger = logging.getLogger(__name__)


def resolve_page_size(limit: Optional[int]) -> int:
    """Requested page size, or the configured default clamped to the allowed maximum."""
    if limit is not None:
        return limit
    return max(1, min(get_config().column_page_size, MAX_LIMIT))


def list_applications_by_state(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Read one page of a Kanban column.

    POSSIBLE_CANDIDATES is ordered by ascending priority_rank (unranked
    last, ties by id); every other column by submitted_at DESC, id DESC.

    Args:
        args: Dictionary containing:
            - state (str): Column to read
            - convocatoria_id (str, optional): Requisition filter
            - limit (int, optional): Page size, 1-200 (default from configuration)
            - offset (int, optional): Rows to skip (default 0)
            - db_path (str, optional)

    Returns:
        Dictionary with structure:
        {
            "state": str,
            "items": [...],
            "count": int,
            "offset": int,
            "limit": int,
            "has_next_page": bool,   # True when the page came back full
            "total_count": int
        }
    """
    try:
        request = ListApplicationsByStateRequest.model_validate(args)
        limit = resolve_page_size(request.limit)
        state = request.state.value

        with get_connection(request.db_path) as conn:
            rows = query_applications_by_state(
                conn, state, limit, request.offset, request.convocatoria_id
            )
            total_count = count_applications_by_state(conn, state, request.convocatoria_id)

        page = build_column_page(
            [to_application_schema(row) for row in rows], limit, request.offset, total_count
        )
        return ListApplicationsByStateResponse(state=state, **page).model_dump(mode="json")

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in list_applications_by_state")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
