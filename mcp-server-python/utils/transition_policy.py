"""
Transition policy for the recruitment pipeline state machine.

This module decides whether a requested state change is legal and how it is
classified in the history ledger:

- Approval path: the next state in the main sequence. Leaving one of the
  approval checkpoints is an APPROVAL, every other forward step a MOVEMENT.
- Rejection path: any active state may be rejected into the archival bucket
  chosen by the rejection threshold. REJECTED_BY_CANDIDATE is reserved for
  candidate-initiated withdrawals.
- Reactivation path: an archival application may only return to its
  resolved resume state.
- Everything else (skips, backward moves, same-state and archival-to-archival
  targets) is illegal. Illegal requests are never coerced into a no-op.
"""

from typing import Optional

from models.errors import (
    AlreadyFinalizedError,
    IllegalTransitionError,
    RequestValidationError,
    ToolError,
)
from models.pipeline_state import (
    APPROVAL_CHECKPOINTS,
    ChangeKind,
    PipelineState,
    is_archival,
    next_for_approval,
    ordered,
)

DEFAULT_REJECTION_THRESHOLD = PipelineState.REFERENCES

FINALIZATION_CONFIRMATION_NOTE = "Confirmed: candidate call made; entry communicated."


class TransitionDecision:
    """Result of a transition policy check."""

    def __init__(
        self,
        allowed: bool,
        change_kind: Optional[ChangeKind] = None,
        error: Optional[ToolError] = None,
    ):
        """
        Initialize a transition decision.

        Args:
            allowed: Whether the transition is allowed
            change_kind: Ledger classification when allowed
            error: The error to surface when the transition is blocked
        """
        self.allowed = allowed
        self.change_kind = change_kind
        self.error = error


def _blocked(error: ToolError) -> TransitionDecision:
    return TransitionDecision(allowed=False, error=error)


def rejection_target(
    current_state: PipelineState, threshold: PipelineState = DEFAULT_REJECTION_THRESHOLD
) -> PipelineState:
    """
    Archival bucket a rejection from ``current_state`` lands in.

    Candidates rejected at or after the threshold are kept as possible
    candidates; earlier rejections are discarded.

    Raises:
        ValueError: If ``current_state`` or ``threshold`` is archival
    """
    if ordered(current_state) >= ordered(threshold):
        return PipelineState.POSSIBLE_CANDIDATES
    return PipelineState.DISCARDED


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def classify_transition(
    current_state: PipelineState,
    target_state: PipelineState,
    fully_finalized: bool = False,
    resume_state: Optional[PipelineState] = None,
    threshold: PipelineState = DEFAULT_REJECTION_THRESHOLD,
    reason: Optional[str] = None,
    candidate_initiated: bool = False,
    call_confirmed: bool = False,
    communication_confirmed: bool = False,
) -> TransitionDecision:
    """
    Decide whether ``current_state -> target_state`` is legal and classify it.

    Args:
        current_state: State the application is in now
        target_state: Requested state
        fully_finalized: Whether the application already passed the Finalization Gate
        resume_state: Resolved resume state (only consulted for archival current states)
        threshold: Rejection bucket threshold
        reason: Rejection reason (required on the rejection path)
        candidate_initiated: Whether the candidate withdrew themselves
        call_confirmed: Entry call to the candidate was made
        communication_confirmed: Entry was communicated to the candidate

    Returns:
        TransitionDecision with the ledger ChangeKind, or the blocking error
    """
    current = PipelineState(current_state)
    target = PipelineState(target_state)

    if fully_finalized:
        return _blocked(
            AlreadyFinalizedError("Application is fully finalized; no further transitions are accepted")
        )

    if target == current:
        return _blocked(
            IllegalTransitionError(f"Application is already in state '{current.value}'")
        )

    # Reactivation path
    if is_archival(current):
        if is_archival(target):
            return _blocked(
                IllegalTransitionError(
                    f"Cannot move between archival states ('{current.value}' -> '{target.value}')"
                )
            )
        if resume_state is None or target != PipelineState(resume_state):
            expected = PipelineState(resume_state).value if resume_state is not None else "unknown"
            return _blocked(
                IllegalTransitionError(
                    f"Reactivation from '{current.value}' must return to '{expected}', "
                    f"not '{target.value}'"
                )
            )
        return TransitionDecision(allowed=True, change_kind=ChangeKind.REACTIVATION)

    # Rejection path
    if is_archival(target):
        if target == PipelineState.REJECTED_BY_CANDIDATE:
            if not candidate_initiated:
                return _blocked(
                    IllegalTransitionError(
                        "REJECTED_BY_CANDIDATE is only reachable through a candidate-initiated withdrawal"
                    )
                )
        else:
            bucket = rejection_target(current, threshold)
            if target != bucket:
                return _blocked(
                    IllegalTransitionError(
                        f"Rejection from '{current.value}' goes to '{bucket.value}', "
                        f"not '{target.value}'"
                    )
                )
        if _is_blank(reason):
            return _blocked(RequestValidationError("Invalid reason: a rejection requires a reason"))
        return TransitionDecision(allowed=True, change_kind=ChangeKind.REJECTION)

    # Approval path
    if target == next_for_approval(current):
        if target == PipelineState.FINALIZED and not (call_confirmed and communication_confirmed):
            return _blocked(
                RequestValidationError(
                    "Entering FINALIZED requires call_confirmed and communication_confirmed"
                )
            )
        if current in APPROVAL_CHECKPOINTS:
            return TransitionDecision(allowed=True, change_kind=ChangeKind.APPROVAL)
        return TransitionDecision(allowed=True, change_kind=ChangeKind.MOVEMENT)

    return _blocked(
        IllegalTransitionError(
            f"Transition from '{current.value}' to '{target.value}' is not allowed. "
            f"Allowed forward target: '{next_for_approval(current).value}'"
        )
    )


def check_transition_or_raise(
    current_state: PipelineState, target_state: PipelineState, **kwargs
) -> TransitionDecision:
    """
    Classify a transition and raise its ToolError if it is blocked.

    Accepts the same keyword arguments as ``classify_transition``.

    Returns:
        TransitionDecision for an allowed transition

    Raises:
        ToolError: AlreadyFinalizedError, IllegalTransitionError or
            RequestValidationError when the transition is blocked
    """
    decision = classify_transition(current_state, target_state, **kwargs)

    if not decision.allowed:
        raise decision.error

    return decision


def with_finalization_note(comment: Optional[str]) -> str:
    """Append the confirmation note recorded when entering FINALIZED."""
    if _is_blank(comment):
        return FINALIZATION_CONFIRMATION_NOTE
    return f"{comment.strip()}\n{FINALIZATION_CONFIRMATION_NOTE}"
