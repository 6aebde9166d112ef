"""NFT API endpoints — ownership listing and transfer."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.auth.dependencies import Identity, get_current_user, get_identity
from nftdrop.database import get_session
from nftdrop.db.models import Nft, User
from nftdrop.nfts.schemas import NftListResponse, NftResponse, SendNftRequest
from nftdrop.nfts.service import list_owned_nfts
from nftdrop.nfts.transfer_service import send_nft

router = APIRouter(prefix="/api/v1/nfts", tags=["NFTs"])


def build_nft_response(nft: Nft) -> NftResponse:
    return NftResponse(id=nft.id, number=nft.number, track_id=nft.track_id, owner_id=nft.owner_id)


@router.get("/me", response_model=NftListResponse)
async def my_nfts_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List NFTs owned by the caller."""
    nfts = await list_owned_nfts(db, user.id)
    return NftListResponse(nfts=[build_nft_response(n) for n in nfts], total=len(nfts))


@router.post("/{nft_id}/send", response_model=NftResponse)
async def send_nft_endpoint(
    nft_id: str,
    body: SendNftRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
):
    """Transfer an owned NFT to another user."""
    nft = await send_nft(db, identity.user_id, nft_id, body.new_owner_id)
    return build_nft_response(nft)
