"""Pydantic schemas for bounty endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ClaimBountyRequest(BaseModel):
    claim_code: str = Field(..., min_length=1, max_length=128)


class PublicBountyResponse(BaseModel):
    id: str
    track_id: str
    public_code: str | None = None
    is_random: bool
    max_claim: int | None = None
    claim_count: int
    remaining: int | None = None  # None = unlimited


class PublicBountyListResponse(BaseModel):
    bounties: list[PublicBountyResponse]
    total: int


class ClaimResponse(BaseModel):
    id: str
    bounty_id: str
    nft_id: str | None = None
    claimed_at: datetime


class ClaimHistoryResponse(BaseModel):
    claims: list[ClaimResponse]
    total: int
