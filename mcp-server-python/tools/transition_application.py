"""
Main MCP tool handler for transition_application.

The Transition Engine: validates a requested state change against the
transition policy and commits it together with exactly one history ledger
entry in a single write transaction.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from config import get_config
from db.applications_writer import ApplicationsWriter
from models.errors import (
    AlreadyFinalizedError,
    ToolError,
    create_internal_error,
    create_not_found_error,
    create_stale_state_error,
)
from models.history import to_history_entry_schema
from models.pipeline_state import PipelineState, is_archival, state_label
from schemas.transition import TransitionApplicationRequest, TransitionResponse
from utils.effective_state import resolve_effective_state
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.transition_policy import (
    DEFAULT_REJECTION_THRESHOLD,
    TransitionDecision,
    check_transition_or_raise,
    with_finalization_note,
)
from utils.validation import days_between, get_current_utc_timestamp

logger = logging.getLogger(__name__)


def get_rejection_threshold() -> PipelineState:
    """Configured rejection threshold, falling back to the default for bad values."""
    try:
        threshold = PipelineState(get_config().rejection_threshold_state)
    except ValueError:
        return DEFAULT_REJECTION_THRESHOLD
    if is_archival(threshold):
        return DEFAULT_REJECTION_THRESHOLD
    return threshold


def resolve_timeout(timeout_seconds: Optional[float]) -> float:
    if timeout_seconds is not None:
        return timeout_seconds
    return get_config().operation_timeout_seconds


def load_application_for_update(
    writer: ApplicationsWriter,
    application_id: int,
    expected_current_state: Optional[PipelineState] = None,
) -> Dict[str, Any]:
    """
    Read the application under the write lock and run the shared preconditions.

    Raises:
        ToolError: NOT_FOUND, ALREADY_FINALIZED, or STALE_STATE when
            ``expected_current_state`` no longer matches
    """
    application = writer.fetch_application(application_id)
    if application is None:
        raise create_not_found_error(application_id)

    if application["fully_finalized"]:
        raise AlreadyFinalizedError(
            f"Application {application_id} is fully finalized; no further transitions are accepted"
        )

    if expected_current_state is not None and application["state"] != expected_current_state.value:
        logger.warning(
            "Stale transition request for application %s: expected %s, found %s",
            application_id,
            expected_current_state.value,
            application["state"],
        )
        raise create_stale_state_error(
            application_id, expected_current_state.value, application["state"]
        )

    return application


def perform_transition(
    writer: ApplicationsWriter,
    application: Dict[str, Any],
    target_state: PipelineState,
    actor_id: str,
    actor_name: str,
    reason: Optional[str] = None,
    comment: Optional[str] = None,
    candidate_initiated: bool = False,
    call_confirmed: bool = False,
    communication_confirmed: bool = False,
) -> Tuple[TransitionDecision, Dict[str, Any]]:
    """
    Apply one state change inside an open write transaction.

    Checks the transition policy, compare-and-sets the application state and
    appends the ledger entry. The caller commits.

    Args:
        writer: Open writer holding the write lock
        application: Application row read under the same lock
        target_state: Requested state
        actor_id: Acting user id
        actor_name: Acting user display name
        reason: Rejection or reactivation reason
        comment: Free-text comment
        candidate_initiated: Candidate withdrew themselves
        call_confirmed: Entry call made (required to enter FINALIZED)
        communication_confirmed: Entry communicated (required to enter FINALIZED)

    Returns:
        Tuple of (decision, stored ledger entry row)

    Raises:
        ToolError: On any policy violation or stale state
    """
    application_id = application["id"]
    current_state = PipelineState(application["state"])
    latest_entry = writer.fetch_latest_history_entry(application_id)

    resume_state = None
    if is_archival(current_state):
        resume_state = resolve_effective_state(application, latest_entry).resume_state

    decision = check_transition_or_raise(
        current_state,
        target_state,
        fully_finalized=bool(application["fully_finalized"]),
        resume_state=resume_state,
        threshold=get_rejection_threshold(),
        reason=reason,
        candidate_initiated=candidate_initiated,
        call_confirmed=call_confirmed,
        communication_confirmed=communication_confirmed,
    )

    if target_state == PipelineState.FINALIZED:
        comment = with_finalization_note(comment)

    timestamp = get_current_utc_timestamp()
    if not writer.compare_and_set_state(
        application_id, current_state.value, target_state.value, timestamp
    ):
        actual = writer.fetch_application(application_id)
        raise create_stale_state_error(
            application_id, current_state.value, actual["state"] if actual else "missing"
        )

    entered_at = latest_entry["changed_at"] if latest_entry else application["submitted_at"]
    entry = writer.append_history_entry(
        application_id=application_id,
        candidate_id=application["candidate_id"],
        state_before=current_state.value,
        state_after=target_state.value,
        change_kind=decision.change_kind.value,
        actor_id=actor_id,
        actor_name=actor_name,
        changed_at=timestamp,
        reason=reason,
        comment=comment,
        days_in_previous_state=days_between(entered_at, timestamp),
        process_stage=state_label(current_state),
    )
    return decision, entry


def build_transition_response(
    application_id: int, decision: TransitionDecision, entry: Dict[str, Any]
) -> Dict[str, Any]:
    """Build the response for a committed state change."""
    return TransitionResponse(
        application_id=application_id,
        previous_state=entry["state_before"],
        state=entry["state_after"],
        change_kind=decision.change_kind.value,
        entry=to_history_entry_schema(entry),
    ).model_dump(mode="json")


def log_committed_transition(entry: Dict[str, Any]) -> None:
    logger.info(
        "Application %s: %s -> %s (%s) by %s",
        entry["application_id"],
        entry["state_before"],
        entry["state_after"],
        entry["change_kind"],
        entry["actor_id"],
    )


def transition_application(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Move an application to a new pipeline state.

    Args:
        args: Dictionary containing:
            - application_id (int): Application to move
            - target_state (str): Requested state
            - expected_current_state (str): State the caller believes is current
            - actor_id (str), actor_name (str): Acting user
            - reason (str, optional): Required when rejecting
            - comment (str, optional)
            - candidate_initiated (bool, optional): Required for REJECTED_BY_CANDIDATE
            - call_confirmed (bool, optional), communication_confirmed (bool, optional):
              Both required to enter FINALIZED
            - timeout_seconds (float, optional): Lock wait deadline
            - db_path (str, optional): Database path override

    Returns:
        Dictionary with structure:
        {
            "application_id": int,
            "previous_state": str,
            "state": str,
            "change_kind": str,
            "entry": {...}           # The new ledger entry
        }

        On error, returns:
        {
            "error": {
                "code": str,         # STALE_STATE, ILLEGAL_TRANSITION, ALREADY_FINALIZED, ...
                "message": str,
                "retryable": bool
            }
        }
    """
    try:
        request = TransitionApplicationRequest.model_validate(args)

        timeout = resolve_timeout(request.timeout_seconds)
        with ApplicationsWriter(request.db_path, timeout=timeout) as writer:
            application = load_application_for_update(
                writer, request.application_id, request.expected_current_state
            )
            decision, entry = perform_transition(
                writer,
                application,
                request.target_state,
                actor_id=request.actor_id,
                actor_name=request.actor_name,
                reason=request.reason,
                comment=request.comment,
                candidate_initiated=request.candidate_initiated,
                call_confirmed=request.call_confirmed,
                communication_confirmed=request.communication_confirmed,
            )
            writer.commit()

        log_committed_transition(entry)
        return build_transition_response(request.application_id, decision, entry)

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in transition_application")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
