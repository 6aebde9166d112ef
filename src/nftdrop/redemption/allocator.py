"""Allocator: hand one unowned NFT of the bounty's track to the claimant."""

from __future__ import annotations

import secrets
from collections.abc import Sequence
from typing import NamedTuple

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.db.models import Bounty, Nft, User
from nftdrop.errors import ClaimRejected, RejectionReason

logger = structlog.get_logger()

DEFAULT_ATTEMPTS = 3


class Candidate(NamedTuple):
    id: str
    number: int


def choose_nft(candidates: Sequence[Candidate], is_random: bool) -> Candidate:
    """Pick uniformly at random, or the lowest number for sequential bounties."""
    if not candidates:
        raise ValueError("No candidates to choose from")
    if is_random:
        return secrets.choice(list(candidates))
    return min(candidates, key=lambda c: c.number)


async def list_available(db: AsyncSession, track_id: str) -> list[Candidate]:
    """Unowned NFTs of a track, lowest number first."""
    result = await db.execute(
        select(Nft.id, Nft.number)
        .where(Nft.track_id == track_id, Nft.owner_id.is_(None))
        .order_by(Nft.number.asc())
    )
    return [Candidate(row.id, row.number) for row in result.all()]


async def try_assign(db: AsyncSession, nft_id: str, user_id: str) -> bool:
    """Set the owner only if the NFT is still unowned. Returns True on success."""
    result = await db.execute(
        update(Nft)
        .where(Nft.id == nft_id, Nft.owner_id.is_(None))
        .values(owner_id=user_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def allocate(
    db: AsyncSession,
    bounty: Bounty,
    user: User,
    attempts: int = DEFAULT_ATTEMPTS,
) -> Nft:
    """Assign one available NFT to ``user``.

    A candidate that was taken by a concurrent allocation is dropped and
    another one is picked, at most ``attempts`` times.
    """
    available = await list_available(db, bounty.track_id)
    for _ in range(max(1, attempts)):
        if not available:
            break
        candidate = choose_nft(available, bounty.is_random)
        if await try_assign(db, candidate.id, user.id):
            result = await db.execute(
                select(Nft)
                .where(Nft.id == candidate.id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one()
        logger.info("nft_allocation_lost_race", nft_id=candidate.id, bounty_id=bounty.id)
        available = [c for c in available if c.id != candidate.id]

    raise ClaimRejected(RejectionReason.NO_AVAILABLE_NFT)
