"""Quota gate: reserve one slot of a bounty's max_claim."""

from __future__ import annotations

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.db.models import Bounty
from nftdrop.errors import ClaimRejected, RejectionReason


async def reserve(db: AsyncSession, bounty: Bounty) -> None:
    """Increment claim_count if the bounty still has room.

    The bound is evaluated by the UPDATE itself, so two transactions that
    both read count == max - 1 cannot both increment.
    """
    result = await db.execute(
        update(Bounty)
        .where(
            Bounty.id == bounty.id,
            or_(Bounty.max_claim.is_(None), Bounty.claim_count < Bounty.max_claim),
        )
        .values(claim_count=Bounty.claim_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ClaimRejected(RejectionReason.QUOTA_EXCEEDED)
