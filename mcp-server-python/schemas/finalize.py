"""Pydantic schemas for finalize_application tool."""

from __future__ import annotations

from pydantic import field_validator

from schemas.common import (
    ApplicationIdMixin,
    DbPathMixin,
    StrictIgnoreRequest,
    StrictResponse,
    TimeoutMixin,
    validate_non_empty_str,
)


class FinalizeApplicationRequest(ApplicationIdMixin, TimeoutMixin, DbPathMixin, StrictIgnoreRequest):
    """Request schema for finalize_application."""

    actor_id: str

    @field_validator("actor_id")
    @classmethod
    def validate_actor_id(cls, value: str) -> str:
        return validate_non_empty_str(value, "actor_id")


class FinalizeApplicationResponse(StrictResponse):
    """Response schema for finalize_application.

    ``created`` is False when the application had already been finalized
    and the stored employee is returned unchanged.
    """

    application_id: int
    employee_id: str
    created: bool
