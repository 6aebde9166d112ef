"""Bounty and claim history queries."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.db.models import Bounty, Claim


async def list_public_bounties(db: AsyncSession) -> list[Bounty]:
    """Active public bounties, newest first."""
    result = await db.execute(
        select(Bounty)
        .where(Bounty.is_active.is_(True), Bounty.is_public.is_(True))
        .order_by(Bounty.created_at.desc())
    )
    return list(result.scalars().all())


async def get_user_claims(db: AsyncSession, user_id: str) -> list[Claim]:
    """A user's claim history, newest first."""
    result = await db.execute(
        select(Claim)
        .where(Claim.user_id == user_id)
        .order_by(Claim.claimed_at.desc())
    )
    return list(result.scalars().all())
