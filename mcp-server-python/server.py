#!/usr/bin/env python3
"""
MCP Server entry point for the recruitment Kanban pipeline.

Exposes the pipeline state machine (transitions, rejection, reactivation,
finalization), the history ledger and the Kanban column reads as MCP tools.

Usage:
    python server.py

The server runs in stdio mode, the standard transport for MCP servers that
are invoked by LLM agents.
"""

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from config import get_config
from tools.aggregate_board import aggregate_board
from tools.create_application import create_application
from tools.finalize_application import finalize_application
from tools.get_application import get_application
from tools.history_stats import history_stats
from tools.list_applications_by_state import list_applications_by_state
from tools.list_history import list_candidate_history, list_history, search_history
from tools.rank_possible_candidate import rank_possible_candidate
from tools.reactivate_application import reactivate_application
from tools.reject_application import reject_application
from tools.resolve_effective_state import resolve_effective_state
from tools.transition_application import transition_application

# Create FastMCP server instance
config = get_config()
mcp = FastMCP(
    name=config.server_name,
    instructions=(
        "This server tracks job applications through a fixed recruitment pipeline shown "
        "as a Kanban board."
        "\n\n"
        "STATE CHANGES:\n"
        "Every state change needs the state you last read as expected_current_state; "
        "a STALE_STATE error means the application moved meanwhile: re-read and resubmit. "
        "Use transition_application to approve/advance one step, to withdraw a candidate "
        "(REJECTED_BY_CANDIDATE with candidate_initiated=true) or to enter FINALIZED "
        "(requires call_confirmed and communication_confirmed). "
        "Use reject_application to reject; the archival bucket is computed for you. "
        "Use reactivate_application to bring an archived application back to where it was. "
        "Use finalize_application to create the employee for a FINALIZED application; "
        "it is safe to retry."
        "\n\n"
        "READS:\n"
        "Use aggregate_board for the whole board in one call and "
        "list_applications_by_state to page through one column. "
        "Use get_application for one application's full record. "
        "Use list_history / list_candidate_history for the audit ledger and search_history "
        "to filter it across applications, "
        "resolve_effective_state to see where an archived application would resume, "
        "and history_stats for conversion statistics."
    ),
)


def _build_args(**params: Any) -> dict:
    """Keep only explicitly provided parameters so tool handlers apply their own defaults."""
    return {key: value for key, value in params.items() if value is not None}


@mcp.tool(
    name="transition_application",
    description=(
        "Move an application to a new pipeline state. Validates the transition policy, "
        "compare-and-sets the state against expected_current_state and appends one history "
        "entry in a single transaction. Returns the new ledger entry."
    ),
)
def transition_application_tool(
    application_id: int,
    target_state: str,
    expected_current_state: str,
    actor_id: str,
    actor_name: str,
    reason: str | None = None,
    comment: str | None = None,
    candidate_initiated: bool = False,
    call_confirmed: bool = False,
    communication_confirmed: bool = False,
    timeout_seconds: float | None = None,
    db_path: str | None = None,
) -> dict:
    """
    Move an application to a new pipeline state.

    Args:
        application_id: Application to move
        target_state: Requested state (next state in sequence, an archival bucket,
            or the resume state of an archived application)
        expected_current_state: State the caller last read
        actor_id: Acting user id
        actor_name: Acting user display name
        reason: Required when rejecting
        comment: Free-text comment for the ledger
        candidate_initiated: Required for REJECTED_BY_CANDIDATE
        call_confirmed: Required (with communication_confirmed) to enter FINALIZED
        communication_confirmed: Required (with call_confirmed) to enter FINALIZED
        timeout_seconds: Lock wait deadline
        db_path: Optional database path override

    Returns:
        {"application_id", "previous_state", "state", "change_kind", "entry"}
        or {"error": {"code", "message", "retryable"}}
    """
    args = _build_args(
        application_id=application_id,
        target_state=target_state,
        expected_current_state=expected_current_state,
        actor_id=actor_id,
        actor_name=actor_name,
        reason=reason,
        comment=comment,
        candidate_initiated=candidate_initiated,
        call_confirmed=call_confirmed,
        communication_confirmed=communication_confirmed,
        timeout_seconds=timeout_seconds,
        db_path=db_path,
    )
    return transition_application(args)


@mcp.tool(
    name="reject_application",
    description=(
        "Reject an application. Applications at or past the rejection threshold stage "
        "(default REFERENCES) go to POSSIBLE_CANDIDATES, earlier ones to DISCARDED. "
        "A reason is required."
    ),
)
def reject_application_tool(
    application_id: int,
    expected_current_state: str,
    actor_id: str,
    actor_name: str,
    reason: str,
    comment: str | None = None,
    timeout_seconds: float | None = None,
    db_path: str | None = None,
) -> dict:
    args = _build_args(
        application_id=application_id,
        expected_current_state=expected_current_state,
        actor_id=actor_id,
        actor_name=actor_name,
        reason=reason,
        comment=comment,
        timeout_seconds=timeout_seconds,
        db_path=db_path,
    )
    return reject_application(args)


@mcp.tool(
    name="reactivate_application",
    description=(
        "Return an archived application (REJECTED_BY_CANDIDATE, DISCARDED, POSSIBLE_CANDIDATES) "
        "to the active state it held before archival, as resolved from its history."
    ),
)
def reactivate_application_tool(
    application_id: int,
    actor_id: str,
    actor_name: str,
    reason: str | None = None,
    comment: str | None = None,
    timeout_seconds: float | None = None,
    db_path: str | None = None,
) -> dict:
    args = _build_args(
        application_id=application_id,
        actor_id=actor_id,
        actor_name=actor_name,
        reason=reason,
        comment=comment,
        timeout_seconds=timeout_seconds,
        db_path=db_path,
    )
    return reactivate_application(args)


@mcp.tool(
    name="finalize_application",
    description=(
        "Create the employee record for a FINALIZED application and mark it fully finalized. "
        "Idempotent: a repeated call returns the same employee_id with created=false."
    ),
)
def finalize_application_tool(
    application_id: int,
    actor_id: str,
    timeout_seconds: float | None = None,
    db_path: str | None = None,
) -> dict:
    """
    Convert a FINALIZED application into an employee, at most once.

    Returns:
        {"application_id", "employee_id", "created"}
        or {"error": {...}}; DOWNSTREAM_FAILURE, TIMEOUT and
        FINALIZATION_IN_PROGRESS are retryable
    """
    args = _build_args(
        application_id=application_id,
        actor_id=actor_id,
        timeout_seconds=timeout_seconds,
        db_path=db_path,
    )
    return finalize_application(args)


@mcp.tool(
    name="list_history",
    description="List the history ledger entries of one application (newest first by default).",
)
def list_history_tool(application_id: int, order: str = "desc", db_path: str | None = None) -> dict:
    args = _build_args(application_id=application_id, order=order, db_path=db_path)
    return list_history(args)


@mcp.tool(
    name="list_candidate_history",
    description="List every history entry of a candidate across all of their applications.",
)
def list_candidate_history_tool(candidate_id: str, db_path: str | None = None) -> dict:
    args = _build_args(candidate_id=candidate_id, db_path=db_path)
    return list_candidate_history(args)


@mcp.tool(
    name="search_history",
    description=(
        "Page through the history ledger, newest first, filtered by any combination of "
        "candidate, application, actor, change kind, target state and changed_at window. "
        "A bare date as date_to covers that whole day."
    ),
)
def search_history_tool(
    candidate_id: str | None = None,
    application_id: int | None = None,
    actor_id: str | None = None,
    change_kind: str | None = None,
    state_after: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
    db_path: str | None = None,
) -> dict:
    args = _build_args(
        candidate_id=candidate_id,
        application_id=application_id,
        actor_id=actor_id,
        change_kind=change_kind,
        state_after=state_after,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
        db_path=db_path,
    )
    return search_history(args)


@mcp.tool(
    name="resolve_effective_state",
    description=(
        "Resolve the effective state of an application: its current state while active; "
        "for an archived application, the state it held before its latest history entry "
        "(its current state when it has no history). Also returns the resume state a "
        "reactivation would restore."
    ),
)
def resolve_effective_state_tool(application_id: int, db_path: str | None = None) -> dict:
    args = _build_args(application_id=application_id, db_path=db_path)
    return resolve_effective_state(args)


@mcp.tool(
    name="get_application",
    description=(
        "Read one application: candidate, requisition, state, priority rank, decoded form "
        "answers, finalization flag and employee id."
    ),
)
def get_application_tool(application_id: int, db_path: str | None = None) -> dict:
    args = _build_args(application_id=application_id, db_path=db_path)
    return get_application(args)


@mcp.tool(
    name="list_applications_by_state",
    description=(
        "Read one page of a Kanban column. POSSIBLE_CANDIDATES is ordered by priority rank; "
        "other columns by submission date, newest first. has_next_page is true when the "
        "page came back full."
    ),
)
def list_applications_by_state_tool(
    state: str,
    convocatoria_id: str | None = None,
    limit: int | None = None,
    offset: int = 0,
    db_path: str | None = None,
) -> dict:
    """
    Read one page of a Kanban column.

    Args:
        state: Column to read
        convocatoria_id: Optional requisition filter
        limit: Page size (1-200, default 20)
        offset: Rows to skip
        db_path: Optional database path override

    Returns:
        {"state", "items", "count", "offset", "limit", "has_next_page", "total_count"}
    """
    args = _build_args(
        state=state, convocatoria_id=convocatoria_id, limit=limit, offset=offset, db_path=db_path
    )
    return list_applications_by_state(args)


@mcp.tool(
    name="aggregate_board",
    description=(
        "Read the whole Kanban board in one call: the first page of every column, "
        "per-column totals and a summary (total, active, finalized, discarded, "
        "possible_candidates, rejected_by_candidate)."
    ),
)
def aggregate_board_tool(
    convocatoria_id: str | None = None,
    limit: int | None = None,
    db_path: str | None = None,
) -> dict:
    args = _build_args(convocatoria_id=convocatoria_id, limit=limit, db_path=db_path)
    return aggregate_board(args)


@mcp.tool(
    name="history_stats",
    description=(
        "Conversion statistics over the history ledger: movements by change kind and target "
        "state, average days per stage and forward conversion rate per stage."
    ),
)
def history_stats_tool(
    convocatoria_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    db_path: str | None = None,
) -> dict:
    args = _build_args(
        convocatoria_id=convocatoria_id, date_from=date_from, date_to=date_to, db_path=db_path
    )
    return history_stats(args)


@mcp.tool(
    name="create_application",
    description=(
        "Register a new application. form_answers is stored verbatim. initial_state defaults "
        "to CVS_RECEIVED and may be any state except FINALIZED."
    ),
)
def create_application_tool(
    candidate_id: str,
    convocatoria_id: str,
    candidate_name: str | None = None,
    form_answers: dict | None = None,
    priority_rank: int | None = None,
    initial_state: str | None = None,
    submitted_at: str | None = None,
    db_path: str | None = None,
) -> dict:
    args = _build_args(
        candidate_id=candidate_id,
        convocatoria_id=convocatoria_id,
        candidate_name=candidate_name,
        form_answers=form_answers,
        priority_rank=priority_rank,
        initial_state=initial_state,
        submitted_at=submitted_at,
        db_path=db_path,
    )
    return create_application(args)


@mcp.tool(
    name="rank_possible_candidate",
    description=(
        "Set the priority rank of an application in POSSIBLE_CANDIDATES (lower first); "
        "pass null to clear it. Not a state change."
    ),
)
def rank_possible_candidate_tool(
    application_id: int,
    priority_rank: int | None,
    db_path: str | None = None,
) -> dict:
    args = _build_args(application_id=application_id, db_path=db_path)
    # null is meaningful here: it clears the rank
    args["priority_rank"] = priority_rank
    return rank_possible_candidate(args)


def main():
    """
    Main entry point for the MCP server.

    Runs the server in stdio mode, which is the standard transport
    for MCP servers that are invoked by LLM agents.
    """
    config.setup_logging()

    logger = logging.getLogger(__name__)
    logger.info("Starting Kanban pipeline MCP Server")
    logger.info(f"Server name: {config.server_name}")
    logger.info(f"Database path: {config.db_path}")

    warnings = config.validate()
    for warning in warnings:
        logger.warning(warning)

    logger.info("Server starting in stdio mode")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
