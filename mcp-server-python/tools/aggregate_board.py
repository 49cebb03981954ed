"""
MCP tool handler for aggregate_board.

Returns the first page of every column plus per-state totals in one read
transaction: a single windowed query for the pages and one GROUP BY for the
counts.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List

from pydantic import ValidationError

from db.applications_reader import count_all_states, get_connection, query_board_first_pages
from models.application import to_application_schema
from models.errors import ToolError, create_internal_error
from models.pipeline_state import ACTIVE_STATES, BOARD_COLUMNS, PipelineState, state_label
from schemas.board import AggregateBoardRequest, AggregateBoardResponse
from tools.list_applications_by_state import resolve_page_size
from utils.pagination import compute_has_next_page
from utils.pydantic_error_mapper import map_pydantic_validation_error

logger = logging.getLogger(__name__)


def build_summary(counts: Dict[str, Dict[str, int]]) -> Dict[str, int]:
    """
    Board header figures.

    ``active`` counts applications in the main sequence that have not
    reached FINALIZED.
    """

    def total(state: PipelineState) -> int:
        return counts.get(state.value, {}).get("total", 0)

    return {
        "total": sum(entry["total"] for entry in counts.values()),
        "active": sum(total(state) for state in ACTIVE_STATES if state != PipelineState.FINALIZED),
        "finalized": total(PipelineState.FINALIZED),
        "discarded": total(PipelineState.DISCARDED),
        "possible_candidates": total(PipelineState.POSSIBLE_CANDIDATES),
        "rejected_by_candidate": total(PipelineState.REJECTED_BY_CANDIDATE),
    }


def build_columns(
    rows: List[Dict[str, Any]], counts: Dict[str, Dict[str, int]], limit: int
) -> List[Dict[str, Any]]:
    """Group windowed rows into board columns, in board order, empty columns included."""
    grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for row in rows:
        grouped[row["state"]].append(to_application_schema(row))

    columns = []
    for state in BOARD_COLUMNS:
        items = grouped.get(state.value, [])
        columns.append(
            {
                "state": state.value,
                "label": state_label(state),
                "items": items,
                "count": len(items),
                "total_count": counts.get(state.value, {}).get("total", 0),
                "has_next_page": compute_has_next_page(len(items), limit),
            }
        )
    return columns


def aggregate_board(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Read the whole board in one round trip.

    Args:
        args: Dictionary containing:
            - convocatoria_id (str, optional): Requisition filter
            - limit (int, optional): Per-column page size, 1-200
            - db_path (str, optional)

    Returns:
        Dictionary with structure:
        {
            "columns": [{"state", "label", "items", "count", "total_count", "has_next_page"}, ...],
            "summary": {"total", "active", "finalized", "discarded",
                        "possible_candidates", "rejected_by_candidate"},
            "limit": int,
            "convocatoria_id": str | None
        }
    """
    try:
        request = AggregateBoardRequest.model_validate(args)
        limit = resolve_page_size(request.limit)

        with get_connection(request.db_path) as conn:
            rows = query_board_first_pages(conn, limit, request.convocatoria_id)
            counts = count_all_states(conn, request.convocatoria_id)

        return AggregateBoardResponse(
            columns=build_columns(rows, counts, limit),
            summary=build_summary(counts),
            limit=limit,
            convocatoria_id=request.convocatoria_id,
        ).model_dump(mode="json")

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in aggregate_board")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
