"""Pydantic schemas for limiter check requests and responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CheckRequest(BaseModel):
    """Identity to check against the configured window."""

    identity: str = Field(
        ...,
        min_length=1,
        description="Caller identity to rate limit (e.g., user id, IP address).",
    )


class CheckResponse(BaseModel):
    """Admission decision for one check."""

    allowed: bool = Field(..., description="Whether the action may proceed now.")
    wait_seconds: int = Field(
        ..., ge=0, description="Seconds to wait before retrying; 0 when allowed."
    )
    limit: int = Field(..., description="Maximum admitted actions per window.")
    in_window: int = Field(
        ..., description="Actions already recorded in the window before this check."
    )
    remaining: int = Field(..., description="Admissions left in the window after this check.")
