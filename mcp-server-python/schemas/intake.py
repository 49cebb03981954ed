"""Pydantic schemas for create_application tool."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field, field_validator

from models.pipeline_state import PipelineState
from schemas.board import ApplicationRecord
from schemas.common import (
    DbPathMixin,
    StrictIgnoreRequest,
    StrictResponse,
    parse_state_field,
    validate_non_empty_str,
    validate_optional_non_empty_str,
)
from utils.validation import normalize_timestamp


class CreateApplicationRequest(DbPathMixin, StrictIgnoreRequest):
    """Request schema for create_application.

    ``form_answers`` is the opaque payload of the external form builder and
    is stored verbatim.
    """

    candidate_id: str
    candidate_name: Optional[str] = None
    convocatoria_id: str
    form_answers: dict[str, Any] = Field(default_factory=dict)
    priority_rank: Optional[int] = None
    initial_state: PipelineState = Field(default=PipelineState.CVS_RECEIVED, strict=False)
    submitted_at: Optional[str] = None

    @field_validator("candidate_id", "convocatoria_id")
    @classmethod
    def validate_ids(cls, value: str, info) -> str:
        return validate_non_empty_str(value, info.field_name)

    @field_validator("candidate_name")
    @classmethod
    def validate_candidate_name(cls, value: Optional[str]) -> Optional[str]:
        return validate_optional_non_empty_str(value, "candidate_name")

    @field_validator("priority_rank")
    @classmethod
    def validate_priority_rank(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError(f"Invalid priority_rank: {value} cannot be negative")
        return value

    @field_validator("initial_state", mode="before")
    @classmethod
    def normalize_state(cls, value: Any) -> Any:
        return parse_state_field(value)

    @field_validator("initial_state")
    @classmethod
    def reject_finalized(cls, value: PipelineState) -> PipelineState:
        if value == PipelineState.FINALIZED:
            raise ValueError("Invalid initial_state: applications cannot be created as FINALIZED")
        return value

    @field_validator("submitted_at")
    @classmethod
    def validate_submitted_at(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        try:
            return normalize_timestamp(value)
        except Exception as e:
            raise ValueError("Invalid submitted_at: expected an ISO 8601 timestamp") from e


class CreateApplicationResponse(StrictResponse):
    application: ApplicationRecord
