"""Demo data — tracks with numbered NFT pools and one bounty each.

Run with ``python -m nftdrop.seed``. Idempotent on track title.
"""

from __future__ import annotations

import asyncio
import logging
import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.db.models import Bounty, Nft, Track

logger = logging.getLogger(__name__)

DEMO_TRACKS: list[dict] = [
    {"title": "Midnight Static", "is_public": True, "is_random": False, "max_claim": 10},
    {"title": "Glass Harbor", "is_public": False, "is_random": True, "max_claim": 25},
    {"title": "Low Orbit Lullaby", "is_public": True, "is_random": True, "max_claim": None},
]


def generate_claim_code() -> str:
    """16 random hex characters."""
    return secrets.token_hex(8)


async def seed_demo_data(
    db: AsyncSession,
    tracks: list[dict] | None = None,
    nfts_per_track: int = 50,
) -> int:
    """Create missing demo tracks with NFTs 1..n and a bounty. Returns tracks created."""
    created = 0
    for entry in tracks if tracks is not None else DEMO_TRACKS:
        existing = await db.execute(select(Track).where(Track.title == entry["title"]))
        if existing.scalar_one_or_none() is not None:
            continue

        track = Track(title=entry["title"])
        db.add(track)
        await db.flush()

        db.add_all(Nft(number=n, track_id=track.id) for n in range(1, nfts_per_track + 1))
        db.add(
            Bounty(
                track_id=track.id,
                claim_code=generate_claim_code(),
                is_active=True,
                is_public=entry.get("is_public", False),
                is_random=entry.get("is_random", False),
                max_claim=entry.get("max_claim"),
            )
        )
        created += 1

    await db.commit()
    logger.info("Seeded %d demo tracks", created)
    return created


async def _main() -> None:
    from nftdrop.config import get_settings
    from nftdrop.database import close_db, get_session_factory, init_db

    settings = get_settings()
    await init_db(settings.database_url, isolation_level=settings.db_isolation_level)
    try:
        async with get_session_factory()() as db:
            await seed_demo_data(db)
    finally:
        await close_db()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_main())
