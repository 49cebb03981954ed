"""Pydantic schemas for the state-changing pipeline tools."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field, field_validator

from models.pipeline_state import PipelineState
from schemas.common import (
    ActorMixin,
    ApplicationIdMixin,
    DbPathMixin,
    StrictIgnoreRequest,
    StrictResponse,
    TimeoutMixin,
    parse_state_field,
    validate_non_empty_str,
)
from schemas.history import HistoryEntryRecord
from utils.validation import MAX_COMMENT_LENGTH, MAX_REASON_LENGTH


class _ReasonCommentMixin(StrictIgnoreRequest):
    reason: Optional[str] = None
    comment: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) > MAX_REASON_LENGTH:
            raise ValueError(f"Invalid reason: exceeds {MAX_REASON_LENGTH} characters")
        return value

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) > MAX_COMMENT_LENGTH:
            raise ValueError(f"Invalid comment: exceeds {MAX_COMMENT_LENGTH} characters")
        return value


class TransitionApplicationRequest(
    ApplicationIdMixin, ActorMixin, TimeoutMixin, DbPathMixin, _ReasonCommentMixin
):
    """Request schema for transition_application."""

    target_state: PipelineState = Field(strict=False)
    expected_current_state: PipelineState = Field(strict=False)
    candidate_initiated: bool = False
    call_confirmed: bool = False
    communication_confirmed: bool = False

    @field_validator("target_state", "expected_current_state", mode="before")
    @classmethod
    def normalize_states(cls, value: Any) -> Any:
        return parse_state_field(value)


class RejectApplicationRequest(
    ApplicationIdMixin, ActorMixin, TimeoutMixin, DbPathMixin, _ReasonCommentMixin
):
    """Request schema for reject_application. The bucket is computed, never chosen."""

    reason: str
    expected_current_state: PipelineState = Field(strict=False)

    @field_validator("reason")
    @classmethod
    def validate_reason_present(cls, value: str) -> str:
        return validate_non_empty_str(value, "reason")

    @field_validator("expected_current_state", mode="before")
    @classmethod
    def normalize_state(cls, value: Any) -> Any:
        return parse_state_field(value)


class ReactivateApplicationRequest(
    ApplicationIdMixin, ActorMixin, TimeoutMixin, DbPathMixin, _ReasonCommentMixin
):
    """Request schema for reactivate_application."""


class TransitionResponse(StrictResponse):
    """Committed state change and the ledger entry it produced."""

    application_id: int
    previous_state: str
    state: str
    change_kind: str
    entry: HistoryEntryRecord


class ResolveEffectiveStateRequest(ApplicationIdMixin, DbPathMixin, StrictIgnoreRequest):
    """Request schema for resolve_effective_state."""


class ResolveEffectiveStateResponse(StrictResponse):
    application_id: int
    current_state: str
    effective_state: str
    resume_state: str
    source: str
