"""Pydantic schemas for the Kanban column reader tools."""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from models.pipeline_state import PipelineState
from schemas.common import (
    ApplicationIdMixin,
    ConvocatoriaFilterMixin,
    DbPathMixin,
    PageMixin,
    StrictIgnoreRequest,
    StrictResponse,
    parse_state_field,
    validate_page_limit,
)

class ApplicationRecord(StrictResponse):
    """Application card shown on the board.

    Accepts raw database rows: ``form_answers_json`` is decoded into
    ``form_answers`` and other extra columns are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    candidate_id: str
    candidate_name: Optional[str] = None
    convocatoria_id: str
    state: PipelineState
    fully_finalized: bool = False
    employee_id: Optional[str] = None
    priority_rank: Optional[int] = None
    form_answers: dict[str, Any] = Field(default_factory=dict)
    submitted_at: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def decode_form_answers(cls, data: Any) -> Any:
        """Decode the stored JSON payload; the answers themselves are never interpreted."""
        if isinstance(data, dict) and "form_answers_json" in data:
            data = dict(data)
            raw = data.pop("form_answers_json")
            data.setdefault("form_answers", json.loads(raw) if raw else {})
        return data


class ListApplicationsByStateRequest(
    PageMixin, ConvocatoriaFilterMixin, DbPathMixin, StrictIgnoreRequest
):
    """Request schema for list_applications_by_state."""

    state: PipelineState = Field(strict=False)

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, value: Any) -> Any:
        return parse_state_field(value)


class ListApplicationsByStateResponse(StrictResponse):
    state: str
    items: list[ApplicationRecord]
    count: int
    offset: int
    limit: int
    has_next_page: bool
    total_count: int


class AggregateBoardRequest(ConvocatoriaFilterMixin, DbPathMixin, StrictIgnoreRequest):
    """Request schema for aggregate_board."""

    limit: Optional[int] = None

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, value: Optional[int]) -> Optional[int]:
        return validate_page_limit(value)


class BoardColumn(StrictResponse):
    state: str
    label: str
    items: list[ApplicationRecord]
    count: int
    total_count: int
    has_next_page: bool


class BoardSummary(StrictResponse):
    total: int
    active: int
    finalized: int
    discarded: int
    possible_candidates: int
    rejected_by_candidate: int


class AggregateBoardResponse(StrictResponse):
    columns: list[BoardColumn]
    summary: BoardSummary
    limit: int
    convocatoria_id: Optional[str] = None


class RankPossibleCandidateRequest(ApplicationIdMixin, DbPathMixin, StrictIgnoreRequest):
    """Request schema for rank_possible_candidate. ``null`` clears the rank."""

    priority_rank: Optional[int]

    @field_validator("priority_rank")
    @classmethod
    def validate_priority_rank(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError(f"Invalid priority_rank: {value} cannot be negative")
        return value


class RankPossibleCandidateResponse(StrictResponse):
    application_id: int
    priority_rank: Optional[int] = None
    previous_priority_rank: Optional[int] = None


class GetApplicationRequest(ApplicationIdMixin, DbPathMixin, StrictIgnoreRequest):
    """Request schema for get_application."""


class GetApplicationResponse(StrictResponse):
    application: ApplicationRecord
