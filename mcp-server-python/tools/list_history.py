"""
MCP tool handlers for history ledger reads: list_history, list_candidate_history
and the filtered search_history.
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from db.applications_reader import (
    count_history_filtered,
    fetch_application,
    get_connection,
    query_candidate_history,
    query_history,
    query_history_filtered,
)
from models.errors import ToolError, create_internal_error, create_not_found_error
from models.history import to_history_entry_schema
from schemas.history import (
    ListCandidateHistoryRequest,
    ListCandidateHistoryResponse,
    ListHistoryRequest,
    ListHistoryResponse,
    SearchHistoryRequest,
    SearchHistoryResponse,
)
from tools.list_applications_by_state import resolve_page_size
from utils.pydantic_error_mapper import map_pydantic_validation_error

logger = logging.getLogger(__name__)


def list_history(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return the ledger entries of one application.

    Args:
        args: Dictionary containing:
            - application_id (int)
            - order (str, optional): "desc" (default, newest first) or "asc"
            - db_path (str, optional)

    Returns:
        Dictionary with structure:
        {
            "application_id": int,
            "order": str,
            "entries": [...],
            "count": int
        }
        Ties on changed_at are broken by the ledger sequence id.
    """
    try:
        request = ListHistoryRequest.model_validate(args)

        with get_connection(request.db_path) as conn:
            if fetch_application(conn, request.application_id) is None:
                raise create_not_found_error(request.application_id)
            rows = query_history(conn, request.application_id, ascending=request.order == "asc")

        entries = [to_history_entry_schema(row) for row in rows]
        return ListHistoryResponse(
            application_id=request.application_id,
            order=request.order,
            entries=entries,
            count=len(entries),
        ).model_dump(mode="json")

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in list_history")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()


def list_candidate_history(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return every ledger entry of a candidate across their applications, newest first.

    An unknown candidate yields an empty list, not an error.
    """
    try:
        request = ListCandidateHistoryRequest.model_validate(args)

        with get_connection(request.db_path) as conn:
            rows = query_candidate_history(conn, request.candidate_id)

        entries = [to_history_entry_schema(row) for row in rows]
        return ListCandidateHistoryResponse(
            candidate_id=request.candidate_id, entries=entries, count=len(entries)
        ).model_dump(mode="json")

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in list_candidate_history")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()


def search_history(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Page through the whole ledger with optional filters, newest first.

    Args:
        args: Dictionary containing (all optional):
            - candidate_id (str)
            - application_id (int)
            - actor_id (str): who made the change
            - change_kind (str): APPROVAL, REJECTION, REACTIVATION or MOVEMENT
            - state_after (str): state the entry moved into
            - date_from / date_to (str): inclusive changed_at bounds; a bare
              date as date_to covers that whole day
            - limit (int): page size, defaults to the configured column page size
            - offset (int): entries to skip, default 0
            - db_path (str)

    Returns:
        Dictionary with structure:
        {
            "entries": [...],
            "count": int,
            "offset": int,
            "limit": int,
            "has_next_page": bool,
            "total_count": int,
            "filters": {...}
        }
    """
    try:
        request = SearchHistoryRequest.model_validate(args)
        limit = resolve_page_size(request.limit)
        filters = request.filters()

        with get_connection(request.db_path) as conn:
            rows = query_history_filtered(conn, filters, limit, request.offset)
            total_count = count_history_filtered(conn, filters)

        entries = [to_history_entry_schema(row) for row in rows]
        return SearchHistoryResponse(
            entries=entries,
            count=len(entries),
            offset=request.offset,
            limit=limit,
            has_next_page=request.offset + len(entries) < total_count,
            total_count=total_count,
            filters=filters,
        ).model_dump(mode="json")

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in search_history")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
