"""
Effective-state resolution for applications parked in archival buckets.

An active application is effectively in its current state. An archival
application remembers where it was through the history ledger: its effective
state is the ``state_before`` of its most recent ledger entry. Archived
applications without any history fall back to their literal current state.
"""

from typing import Any, Dict, Optional

from models.pipeline_state import PipelineState, earliest_active_state, is_archival

SOURCE_HISTORY = "history"
SOURCE_CURRENT = "current"


class EffectiveState:
    """Resolved effective state of one application."""

    def __init__(
        self,
        application_id: int,
        current_state: PipelineState,
        effective_state: PipelineState,
        resume_state: PipelineState,
        source: str,
    ):
        self.application_id = application_id
        self.current_state = current_state
        self.effective_state = effective_state
        self.resume_state = resume_state
        self.source = source

    def to_dict(self) -> Dict[str, Any]:
        return {
            "application_id": self.application_id,
            "current_state": self.current_state.value,
            "effective_state": self.effective_state.value,
            "resume_state": self.resume_state.value,
            "source": self.source,
        }


def resolve_effective_state(
    application: Dict[str, Any], latest_entry: Optional[Dict[str, Any]]
) -> EffectiveState:
    """
    Resolve the effective and resume states of an application.

    Args:
        application: Application row (needs ``id`` and ``state``)
        latest_entry: Most recent ledger entry (changed_at DESC, id DESC), or None.
            Ignored while the application is active.

    Returns:
        EffectiveState. ``resume_state`` is the effective state when it is
        active, otherwise the earliest active state.
    """
    current_state = PipelineState(application["state"])

    if is_archival(current_state) and latest_entry is not None:
        effective = PipelineState(latest_entry["state_before"])
        source = SOURCE_HISTORY
    else:
        effective = current_state
        source = SOURCE_CURRENT

    resume = earliest_active_state() if is_archival(effective) else effective

    return EffectiveState(
        application_id=application["id"],
        current_state=current_state,
        effective_state=effective,
        resume_state=resume,
        source=source,
    )
