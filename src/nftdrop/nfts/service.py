"""Read-side NFT queries."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.db.models import Nft


async def list_owned_nfts(db: AsyncSession, user_id: str) -> list[Nft]:
    """NFTs currently owned by a user, grouped by track then number."""
    result = await db.execute(
        select(Nft)
        .where(Nft.owner_id == user_id)
        .order_by(Nft.track_id.asc(), Nft.number.asc())
    )
    return list(result.scalars().all())
