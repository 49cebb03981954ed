"""Shared schema primitives for MCP tool request/response models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from models.pipeline_state import PipelineState
from utils.validation import MAX_LIMIT, MIN_LIMIT

MAX_TIMEOUT_SECONDS = 300.0


def validate_optional_non_empty_str(value: Optional[str], field_name: str) -> Optional[str]:
    """Validate optional string fields that cannot be empty/whitespace."""
    if value is None:
        return None
    if not value.strip():
        raise ValueError(f"Invalid {field_name}: cannot be empty")
    return value


def validate_non_empty_str(value: str, field_name: str) -> str:
    """Validate required string fields that cannot be empty/whitespace."""
    if not value.strip():
        raise ValueError(f"Invalid {field_name}: cannot be empty")
    return value.strip()


def validate_positive_id(value: int, field_name: str) -> int:
    if value < 1:
        raise ValueError(f"Invalid {field_name}: must be a positive integer")
    return value


def validate_page_limit(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    if value < MIN_LIMIT:
        raise ValueError(f"Invalid limit: {value} is below minimum of {MIN_LIMIT}")
    if value > MAX_LIMIT:
        raise ValueError(f"Invalid limit: {value} exceeds maximum of {MAX_LIMIT}")
    return value


class StrictIgnoreRequest(BaseModel):
    """Request base with strict typing and ignored unknown fields."""

    model_config = ConfigDict(extra="ignore", strict=True)


class StrictResponse(BaseModel):
    """Response/result base with strict typing and forbidden unknown fields."""

    model_config = ConfigDict(extra="forbid")


class DbPathMixin(BaseModel):
    """Reusable db_path field validation."""

    db_path: Optional[str] = None

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, value: Optional[str]) -> Optional[str]:
        return validate_optional_non_empty_str(value, "db_path")


class ApplicationIdMixin(BaseModel):
    """Reusable application_id field validation."""

    application_id: int

    @field_validator("application_id")
    @classmethod
    def validate_application_id(cls, value: int) -> int:
        return validate_positive_id(value, "application_id")


class ActorMixin(BaseModel):
    """Acting user recorded on ledger entries. Identity is opaque and not verified."""

    actor_id: str
    actor_name: str

    @field_validator("actor_id", "actor_name")
    @classmethod
    def validate_actor(cls, value: str, info) -> str:
        return validate_non_empty_str(value, info.field_name)


class TimeoutMixin(BaseModel):
    """Caller-supplied deadline for lock waits and downstream calls."""

    timeout_seconds: Optional[float] = None

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        if value <= 0:
            raise ValueError("Invalid timeout_seconds: must be greater than 0")
        if value > MAX_TIMEOUT_SECONDS:
            raise ValueError(
                f"Invalid timeout_seconds: {value} exceeds maximum of {MAX_TIMEOUT_SECONDS}"
            )
        return float(value)


class ConvocatoriaFilterMixin(BaseModel):
    """Optional requisition filter for board and statistics reads."""

    convocatoria_id: Optional[str] = None

    @field_validator("convocatoria_id")
    @classmethod
    def validate_convocatoria_id(cls, value: Optional[str]) -> Optional[str]:
        return validate_optional_non_empty_str(value, "convocatoria_id")


class PageMixin(BaseModel):
    """Offset pagination. ``limit=None`` lets the tool apply its configured page size."""

    limit: Optional[int] = None
    offset: int = 0

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, value: Optional[int]) -> Optional[int]:
        return validate_page_limit(value)

    @field_validator("offset")
    @classmethod
    def validate_offset(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"Invalid offset: {value} cannot be negative")
        return value


def parse_state_field(value: object) -> object:
    """Accept state names case-insensitively; other values pass through to enum validation."""
    if isinstance(value, str) and not isinstance(value, PipelineState):
        return value.strip().upper()
    return value
