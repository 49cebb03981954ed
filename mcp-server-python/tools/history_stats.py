"""
MCP tool handler for history_stats.

Conversion statistics over the history ledger, optionally narrowed to one
requisition and a changed_at window.
"""

import logging
from collections import Counter, defaultdict
from typing import Any, Dict, List

from pydantic import ValidationError

from db.applications_reader import get_connection, query_history_for_stats
from models.errors import ToolError, create_internal_error
from models.pipeline_state import ChangeKind, PipelineState, is_archival
from schemas.history import HistoryStatsRequest, HistoryStatsResponse
from utils.pydantic_error_mapper import map_pydantic_validation_error

logger = logging.getLogger(__name__)

FORWARD_KINDS = {ChangeKind.APPROVAL.value, ChangeKind.MOVEMENT.value}


def compute_history_stats(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Aggregate ledger entries into conversion statistics.

    - ``by_change_kind`` lists every kind, zero-filled
    - ``average_days_in_state`` is keyed by the state that was left
    - ``conversion_rate_by_stage`` is, per active state, the share of exits
      that moved forward (approval or movement) rather than out to an
      archival bucket
    """
    by_change_kind = {kind.value: 0 for kind in ChangeKind}
    by_change_kind.update(Counter(entry["change_kind"] for entry in entries))

    by_target_state = dict(Counter(entry["state_after"] for entry in entries))

    days_by_state: Dict[str, List[int]] = defaultdict(list)
    exits: Counter = Counter()
    forward: Counter = Counter()
    for entry in entries:
        state_before = entry["state_before"]
        if entry["days_in_previous_state"] is not None:
            days_by_state[state_before].append(entry["days_in_previous_state"])
        if is_archival(PipelineState(state_before)):
            continue
        exits[state_before] += 1
        if entry["change_kind"] in FORWARD_KINDS:
            forward[state_before] += 1

    average_days_in_state = {
        state: round(sum(days) / len(days), 2) for state, days in days_by_state.items()
    }
    conversion_rate_by_stage = {
        state: {
            "exits": count,
            "forward": forward[state],
            "rate": round(forward[state] / count, 4),
        }
        for state, count in exits.items()
    }

    return {
        "total_movements": len(entries),
        "by_change_kind": by_change_kind,
        "by_target_state": by_target_state,
        "average_days_in_state": average_days_in_state,
        "conversion_rate_by_stage": conversion_rate_by_stage,
    }


def history_stats(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Compute conversion statistics from the history ledger.

    Args:
        args: Dictionary containing:
            - convocatoria_id (str, optional)
            - date_from (str, optional): ISO 8601, inclusive
            - date_to (str, optional): ISO 8601, inclusive
            - db_path (str, optional)

    Returns:
        Dictionary with total_movements, by_change_kind, by_target_state,
        average_days_in_state, conversion_rate_by_stage and the applied filters
    """
    try:
        request = HistoryStatsRequest.model_validate(args)

        with get_connection(request.db_path) as conn:
            entries = query_history_for_stats(
                conn, request.convocatoria_id, request.date_from, request.date_to
            )

        stats = compute_history_stats(entries)
        return HistoryStatsResponse(
            **stats,
            filters={
                "convocatoria_id": request.convocatoria_id,
                "date_from": request.date_from,
                "date_to": request.date_to,
            },
        ).model_dump(mode="json")

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in history_stats")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
