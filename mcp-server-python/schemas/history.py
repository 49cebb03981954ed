"""Pydantic schemas for the history ledger read tools."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.pipeline_state import ChangeKind, PipelineState
from schemas.common import (
    ApplicationIdMixin,
    ConvocatoriaFilterMixin,
    DbPathMixin,
    PageMixin,
    StrictIgnoreRequest,
    StrictResponse,
    parse_state_field,
    validate_non_empty_str,
    validate_optional_non_empty_str,
    validate_positive_id,
)
from utils.validation import normalize_timestamp, normalize_window_end


class HistoryEntryRecord(StrictResponse):
    """One immutable ledger entry.

    Accepts raw database rows; extra columns are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    application_id: int
    candidate_id: str
    state_before: PipelineState
    state_after: PipelineState
    change_kind: ChangeKind
    actor_id: str
    actor_name: str
    reason: Optional[str] = None
    comment: Optional[str] = None
    days_in_previous_state: Optional[int] = None
    process_stage: Optional[str] = None
    changed_at: str


class ListHistoryRequest(ApplicationIdMixin, DbPathMixin, StrictIgnoreRequest):
    """Request schema for list_history."""

    order: Literal["desc", "asc"] = "desc"


class ListHistoryResponse(StrictResponse):
    application_id: int
    order: str
    entries: list[HistoryEntryRecord]
    count: int


class ListCandidateHistoryRequest(DbPathMixin, StrictIgnoreRequest):
    """Request schema for list_candidate_history."""

    candidate_id: str

    @field_validator("candidate_id")
    @classmethod
    def validate_candidate_id(cls, value: str) -> str:
        return validate_non_empty_str(value, "candidate_id")


class ListCandidateHistoryResponse(StrictResponse):
    candidate_id: str
    entries: list[HistoryEntryRecord]
    count: int


class DateWindowMixin(BaseModel):
    """
    Inclusive ``changed_at`` window.

    A bare date as ``date_to`` covers that whole day.
    """

    date_from: Optional[str] = None
    date_to: Optional[str] = None

    @field_validator("date_from", "date_to")
    @classmethod
    def validate_dates(cls, value: Optional[str], info) -> Optional[str]:
        if value is None:
            return None
        normalize = normalize_window_end if info.field_name == "date_to" else normalize_timestamp
        try:
            return normalize(value)
        except Exception as e:
            raise ValueError(f"Invalid {info.field_name}: expected an ISO 8601 timestamp") from e

    @model_validator(mode="after")
    def check_window(self):
        if self.date_from is not None and self.date_to is not None and self.date_from > self.date_to:
            raise ValueError("Invalid date range: date_from is after date_to")
        return self


class HistoryStatsRequest(DateWindowMixin, ConvocatoriaFilterMixin, DbPathMixin, StrictIgnoreRequest):
    """Request schema for history_stats."""


class StageConversion(StrictResponse):
    exits: int
    forward: int
    rate: float


class HistoryStatsResponse(StrictResponse):
    total_movements: int
    by_change_kind: dict[str, int]
    by_target_state: dict[str, int]
    average_days_in_state: dict[str, float]
    conversion_rate_by_stage: dict[str, StageConversion]
    filters: dict[str, Optional[str]] = Field(default_factory=dict)


class SearchHistoryRequest(PageMixin, DateWindowMixin, DbPathMixin, StrictIgnoreRequest):
    """Request schema for search_history. Every filter is optional and they combine with AND."""

    candidate_id: Optional[str] = None
    application_id: Optional[int] = None
    actor_id: Optional[str] = None
    change_kind: Optional[ChangeKind] = Field(default=None, strict=False)
    state_after: Optional[PipelineState] = Field(default=None, strict=False)

    @field_validator("candidate_id", "actor_id")
    @classmethod
    def validate_text_filters(cls, value: Optional[str], info) -> Optional[str]:
        return validate_optional_non_empty_str(value, info.field_name)

    @field_validator("application_id")
    @classmethod
    def validate_application_id(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return None
        return validate_positive_id(value, "application_id")

    @field_validator("change_kind", "state_after", mode="before")
    @classmethod
    def normalize_enums(cls, value: Any) -> Any:
        return parse_state_field(value)

    def filters(self) -> dict[str, Any]:
        """Filter values as stored in the ledger, None meaning "any"."""
        return {
            "candidate_id": self.candidate_id,
            "application_id": self.application_id,
            "actor_id": self.actor_id,
            "change_kind": self.change_kind.value if self.change_kind else None,
            "state_after": self.state_after.value if self.state_after else None,
            "date_from": self.date_from,
            "date_to": self.date_to,
        }


class SearchHistoryResponse(StrictResponse):
    entries: list[HistoryEntryRecord]
    count: int
    offset: int
    limit: int
    has_next_page: bool
    total_count: int
    filters: dict[str, Any]
