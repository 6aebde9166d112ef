"""Bounty API endpoints — claim, public listing, claim history."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.auth.dependencies import Identity, get_current_user, get_identity
from nftdrop.database import get_session
from nftdrop.db.models import User
from nftdrop.nfts.router import build_nft_response
from nftdrop.nfts.schemas import NftResponse
from nftdrop.redemption.engine import claim_bounty
from nftdrop.redemption.schemas import (
    ClaimBountyRequest,
    ClaimHistoryResponse,
    ClaimResponse,
    PublicBountyListResponse,
    PublicBountyResponse,
)
from nftdrop.redemption.service import get_user_claims, list_public_bounties

router = APIRouter(prefix="/api/v1", tags=["Bounties"])


@router.post("/bounties/claim", response_model=NftResponse, status_code=201)
async def claim_bounty_endpoint(
    body: ClaimBountyRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
):
    """Redeem a claim code. Rejections are mapped by the global error handler."""
    nft = await claim_bounty(db, identity.user_id, body.claim_code, source_ip=identity.source_ip)
    return build_nft_response(nft)


@router.get("/bounties/public", response_model=PublicBountyListResponse)
async def public_bounties_endpoint(db: AsyncSession = Depends(get_session)):
    """Active public bounties with their claim codes (public, no auth)."""
    bounties = await list_public_bounties(db)
    items = [
        PublicBountyResponse(
            id=b.id,
            track_id=b.track_id,
            public_code=b.public_code,
            is_random=b.is_random,
            max_claim=b.max_claim,
            claim_count=b.claim_count,
            remaining=b.remaining,
        )
        for b in bounties
    ]
    return PublicBountyListResponse(bounties=items, total=len(items))


@router.get("/claims/me", response_model=ClaimHistoryResponse)
async def my_claims_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's claim history, newest first."""
    claims = await get_user_claims(db, user.id)
    items = [
        ClaimResponse(id=c.id, bounty_id=c.bounty_id, nft_id=c.nft_id, claimed_at=c.claimed_at)
        for c in claims
    ]
    return ClaimHistoryResponse(claims=items, total=len(items))
