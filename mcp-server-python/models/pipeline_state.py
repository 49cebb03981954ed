"""
Centralized, type-safe pipeline state catalog for the recruitment Kanban board.

This module is the single source of truth for which states exist and what can
follow what. It defines:

- ``PipelineState``: every column of the board. The active states form a fixed,
  totally ordered main sequence; the archival states sit outside it.
- ``ChangeKind``: classification recorded on every history ledger entry.

Both Enums inherit from ``(str, Enum)`` so that members compare equal to plain
strings, bind directly as SQLite parameters and serialize naturally to JSON.
"""

from enum import Enum
from typing import Dict, FrozenSet, Tuple


class PipelineState(str, Enum):
    """States an application can occupy on the Kanban board.

    Main sequence:
        CVS_RECEIVED -> TO_CALL -> PRE_INTERVIEW -> SCHEDULE_1ST_INTERVIEW
        -> SCHEDULE_2ND_INTERVIEW -> REFERENCES -> ANTIBRIBERY_EVAL
        -> MANAGEMENT_APPROVAL -> CALL_COMMUNICATE_ENTRY -> FINALIZED

    Archival (reachable from any active state, left via reactivation):
        REJECTED_BY_CANDIDATE, DISCARDED, POSSIBLE_CANDIDATES
    """

    CVS_RECEIVED = "CVS_RECEIVED"
    TO_CALL = "TO_CALL"
    PRE_INTERVIEW = "PRE_INTERVIEW"
    SCHEDULE_1ST_INTERVIEW = "SCHEDULE_1ST_INTERVIEW"
    SCHEDULE_2ND_INTERVIEW = "SCHEDULE_2ND_INTERVIEW"
    REFERENCES = "REFERENCES"
    ANTIBRIBERY_EVAL = "ANTIBRIBERY_EVAL"
    MANAGEMENT_APPROVAL = "MANAGEMENT_APPROVAL"
    CALL_COMMUNICATE_ENTRY = "CALL_COMMUNICATE_ENTRY"
    FINALIZED = "FINALIZED"
    REJECTED_BY_CANDIDATE = "REJECTED_BY_CANDIDATE"
    DISCARDED = "DISCARDED"
    POSSIBLE_CANDIDATES = "POSSIBLE_CANDIDATES"


class ChangeKind(str, Enum):
    """Kind of state change recorded in the history ledger."""

    APPROVAL = "APPROVAL"
    REJECTION = "REJECTION"
    REACTIVATION = "REACTIVATION"
    MOVEMENT = "MOVEMENT"


ACTIVE_STATES: Tuple[PipelineState, ...] = (
    PipelineState.CVS_RECEIVED,
    PipelineState.TO_CALL,
    PipelineState.PRE_INTERVIEW,
    PipelineState.SCHEDULE_1ST_INTERVIEW,
    PipelineState.SCHEDULE_2ND_INTERVIEW,
    PipelineState.REFERENCES,
    PipelineState.ANTIBRIBERY_EVAL,
    PipelineState.MANAGEMENT_APPROVAL,
    PipelineState.CALL_COMMUNICATE_ENTRY,
    PipelineState.FINALIZED,
)

ARCHIVAL_STATES: FrozenSet[PipelineState] = frozenset(
    {
        PipelineState.REJECTED_BY_CANDIDATE,
        PipelineState.DISCARDED,
        PipelineState.POSSIBLE_CANDIDATES,
    }
)

# Board column order: main sequence first, then the archival buckets
BOARD_COLUMNS: Tuple[PipelineState, ...] = ACTIVE_STATES + (
    PipelineState.REJECTED_BY_CANDIDATE,
    PipelineState.DISCARDED,
    PipelineState.POSSIBLE_CANDIDATES,
)

# Leaving one of these states forward counts as an approval, not a movement
APPROVAL_CHECKPOINTS: FrozenSet[PipelineState] = frozenset(
    {PipelineState.PRE_INTERVIEW, PipelineState.MANAGEMENT_APPROVAL}
)

STATE_LABELS: Dict[PipelineState, str] = {
    PipelineState.CVS_RECEIVED: "CVs Received",
    PipelineState.TO_CALL: "To Call",
    PipelineState.PRE_INTERVIEW: "Pre-Interview",
    PipelineState.SCHEDULE_1ST_INTERVIEW: "Schedule 1st Interview",
    PipelineState.SCHEDULE_2ND_INTERVIEW: "Schedule 2nd Interview",
    PipelineState.REFERENCES: "References",
    PipelineState.ANTIBRIBERY_EVAL: "Anti-Bribery Evaluation",
    PipelineState.MANAGEMENT_APPROVAL: "Management Approval",
    PipelineState.CALL_COMMUNICATE_ENTRY: "Call - Communicate Entry",
    PipelineState.FINALIZED: "Finalized",
    PipelineState.REJECTED_BY_CANDIDATE: "Rejected by Candidate",
    PipelineState.DISCARDED: "Discarded",
    PipelineState.POSSIBLE_CANDIDATES: "Possible Candidates",
}

_POSITIONS: Dict[PipelineState, int] = {state: index for index, state in enumerate(ACTIVE_STATES)}


def is_archival(state: PipelineState) -> bool:
    """Return True if the state is an archival bucket outside the main sequence."""
    return PipelineState(state) in ARCHIVAL_STATES


def ordered(state: PipelineState) -> int:
    """
    Return the fixed position of a state in the main sequence.

    Args:
        state: An active pipeline state

    Returns:
        Zero-based position (CVS_RECEIVED is 0, FINALIZED is 9)

    Raises:
        ValueError: If the state is archival (archival states have no position)
    """
    state = PipelineState(state)
    if state in ARCHIVAL_STATES:
        raise ValueError(f"Archival state '{state.value}' has no position in the main sequence")
    return _POSITIONS[state]


def next_for_approval(state: PipelineState) -> PipelineState:
    """
    Return the state an approval advances to.

    FINALIZED is terminal and maps to itself; advancing past it is the
    Finalization Gate's job, not a state change.

    Raises:
        ValueError: If the state is archival
    """
    position = ordered(state)
    if position == len(ACTIVE_STATES) - 1:
        return ACTIVE_STATES[position]
    return ACTIVE_STATES[position + 1]


def earliest_active_state() -> PipelineState:
    """Deterministic resume point when no better one is known."""
    return ACTIVE_STATES[0]


def state_label(state: PipelineState) -> str:
    """Human-readable label for a state."""
    return STATE_LABELS[PipelineState(state)]
