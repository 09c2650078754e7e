"""Pydantic schemas for the waitlist endpoint and admin surface."""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field


class SignupData(BaseModel):
    """Optional payload returned with an accepted signup."""

    model_config = ConfigDict(populate_by_name=True)

    referral_code: str | None = Field(
        default=None,
        alias="referralCode",
        description="Referral code generated for the new entry.",
    )
    position: int | None = Field(
        default=None,
        description="Best-effort waitlist position (omitted when unavailable).",
    )


class SignupResponse(BaseModel):
    """Body of every response served by the waitlist endpoint."""

    success: bool = Field(..., description="True for accepted (or absorbed) signups.")
    message: str = Field(..., description="Human-readable outcome.")
    data: SignupData | None = Field(default=None, description="Present on success only.")

    def to_content(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class StrictLimitRequest(BaseModel):
    address: str = Field(..., min_length=1, max_length=64, description="Client address to throttle.")


class RateLimitDecisionResponse(BaseModel):
    allowed: bool
    scope: str
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after_seconds: int | None = None
    degraded: bool = False


class BlockedRecord(BaseModel):
    reason: str
    timestamp_ms: int


class BlockedRequestsResponse(BaseModel):
    address: str
    records: List[BlockedRecord] = Field(default_factory=list)
    total_blocked: int = Field(..., description="Blocked requests across all addresses.")
