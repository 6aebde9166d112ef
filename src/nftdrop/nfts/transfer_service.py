"""Peer-to-peer NFT transfer between two known users."""

from __future__ import annotations

import asyncio
import random

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.config import get_settings
from nftdrop.db.models import Nft, User
from nftdrop.errors import ClaimRejected, ContentionError, RejectionReason
from nftdrop.redemption.engine import is_serialization_failure

logger = structlog.get_logger()


async def get_nft(db: AsyncSession, nft_id: str) -> Nft | None:
    """Fetch an NFT by ID."""
    result = await db.execute(
        select(Nft).where(Nft.id == nft_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _user_exists(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(select(User.id).where(User.id == user_id))
    return result.first() is not None


async def _transfer(db: AsyncSession, requester_id: str | None, nft_id: str, new_owner_id: str) -> Nft:
    if not requester_id or not await _user_exists(db, requester_id):
        raise ClaimRejected(RejectionReason.UNAUTHENTICATED)

    nft = await get_nft(db, nft_id)
    if nft is None:
        raise ClaimRejected(RejectionReason.NFT_NOT_FOUND)
    if nft.owner_id != requester_id:
        raise ClaimRejected(RejectionReason.NOT_OWNER)

    if not await _user_exists(db, new_owner_id):
        raise ClaimRejected(RejectionReason.RECIPIENT_NOT_FOUND)

    # Guarded on the current owner: a concurrent transfer of the same NFT wins or we do.
    result = await db.execute(
        update(Nft)
        .where(Nft.id == nft_id, Nft.owner_id == requester_id)
        .values(owner_id=new_owner_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ClaimRejected(RejectionReason.NOT_OWNER)

    refreshed = await db.execute(
        select(Nft).where(Nft.id == nft_id).execution_options(populate_existing=True)
    )
    return refreshed.scalar_one()


async def send_nft(
    db: AsyncSession,
    requester_id: str | None,
    nft_id: str,
    new_owner_id: str,
    *,
    retries: int | None = None,
    backoff_seconds: float | None = None,
) -> Nft:
    """Move ``nft_id`` from ``requester_id`` to ``new_owner_id`` and commit.

    Raises:
        ClaimRejected: Unauthenticated, NftNotFound, NotOwner or
            RecipientNotFound, after rolling back.
        ContentionError: serialization conflicts outlasted every retry.
    """
    settings = get_settings()
    attempts = max(1, settings.claim_tx_retries if retries is None else retries)
    if backoff_seconds is None:
        backoff_seconds = settings.claim_retry_backoff_ms / 1000

    for attempt in range(1, attempts + 1):
        try:
            nft = await _transfer(db, requester_id, nft_id, new_owner_id)
            await db.commit()
        except ClaimRejected as e:
            await db.rollback()
            logger.info("transfer_rejected", user_id=requester_id, nft_id=nft_id, reason=e.reason.value)
            raise
        except DBAPIError as e:
            await db.rollback()
            if not is_serialization_failure(e):
                raise
            logger.warning("transfer_conflict_retry", user_id=requester_id, nft_id=nft_id, attempt=attempt)
            if attempt < attempts:
                await asyncio.sleep(backoff_seconds * attempt * random.uniform(0.5, 1.5))
            continue

        logger.info("nft_transferred", nft_id=nft_id, from_user=requester_id, to_user=new_owner_id)
        return nft

    logger.warning("transfer_contention_exhausted", user_id=requester_id, nft_id=nft_id, attempts=attempts)
    raise ContentionError(attempts)
