"""Pydantic schemas for NFT endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SendNftRequest(BaseModel):
    new_owner_id: str = Field(..., min_length=1, max_length=36)


class NftResponse(BaseModel):
    id: str
    number: int
    track_id: str
    owner_id: str | None = None


class NftListResponse(BaseModel):
    nfts: list[NftResponse]
    total: int
