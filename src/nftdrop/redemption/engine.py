"""Redemption engine — claim-code → NFT as one transaction.

State progression: validating -> reserving -> allocating -> recording -> committed
Any failure moves to rejected and rolls back the whole transaction, so the
quota increment, the ownership assignment and the claim row are committed
together or not at all.

Serialization conflicts raised by the store are retried from scratch a
bounded number of times, then surfaced as ContentionError.
"""

from __future__ import annotations

import asyncio
import enum
import random
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.config import get_settings
from nftdrop.db.models import Bounty, Claim, Nft, User
from nftdrop.errors import ClaimRejected, ContentionError, RejectionReason
from nftdrop.redemption import allocator, fraud_guard, quota_gate
from nftdrop.redemption.fraud_guard import FraudPolicy

logger = structlog.get_logger()

# Postgres serialization_failure / deadlock_detected
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


class ClaimState(str, enum.Enum):
    VALIDATING = "validating"
    RESERVING = "reserving"
    ALLOCATING = "allocating"
    RECORDING = "recording"
    COMMITTED = "committed"
    REJECTED = "rejected"


VALID_TRANSITIONS: dict[ClaimState, list[ClaimState]] = {
    ClaimState.VALIDATING: [ClaimState.RESERVING, ClaimState.REJECTED],
    ClaimState.RESERVING: [ClaimState.ALLOCATING, ClaimState.REJECTED],
    ClaimState.ALLOCATING: [ClaimState.RECORDING, ClaimState.REJECTED],
    ClaimState.RECORDING: [ClaimState.COMMITTED, ClaimState.REJECTED],
    ClaimState.COMMITTED: [],
    ClaimState.REJECTED: [],
}


def validate_transition(current: ClaimState, target: ClaimState) -> None:
    """Raise ValueError if ``current -> target`` is not allowed."""
    valid = VALID_TRANSITIONS.get(current, [])
    if target not in valid:
        raise ValueError(
            f"Invalid transition: {current.value} -> {target.value}. "
            f"Valid transitions: {[s.value for s in valid]}"
        )


@dataclass(frozen=True)
class ClaimOptions:
    policy: FraudPolicy
    tx_retries: int = 5
    backoff_seconds: float = 0.025
    allocation_attempts: int = allocator.DEFAULT_ATTEMPTS

    @classmethod
    def from_settings(cls) -> ClaimOptions:
        settings = get_settings()
        return cls(
            policy=FraudPolicy.from_settings(),
            tx_retries=settings.claim_tx_retries,
            backoff_seconds=settings.claim_retry_backoff_ms / 1000,
            allocation_attempts=settings.allocation_retries,
        )


class ClaimPipeline:
    """One attempt at redeeming a claim code inside the session's current transaction."""

    def __init__(
        self,
        db: AsyncSession,
        user_id: str,
        claim_code: str,
        now: datetime,
        options: ClaimOptions,
        source_ip: str | None = None,
    ) -> None:
        self.db = db
        self.user_id = user_id
        self.claim_code = claim_code
        self.source_ip = source_ip
        self.now = now
        self.options = options
        self.state = ClaimState.VALIDATING

    def transition(self, target: ClaimState) -> None:
        validate_transition(self.state, target)
        self.state = target

    async def run(self) -> Nft:
        user = await get_user(self.db, self.user_id)
        if user is None:
            raise ClaimRejected(RejectionReason.UNAUTHENTICATED)

        bounty = await get_active_bounty(self.db, self.claim_code)
        if bounty is None:
            raise ClaimRejected(RejectionReason.INVALID_OR_INACTIVE_BOUNTY)

        await fraud_guard.check(self.db, user, bounty, self.now, self.options.policy, source_ip=self.source_ip)

        self.transition(ClaimState.RESERVING)
        await quota_gate.reserve(self.db, bounty)

        self.transition(ClaimState.ALLOCATING)
        nft = await allocator.allocate(self.db, bounty, user, self.options.allocation_attempts)

        self.transition(ClaimState.RECORDING)
        self.db.add(Claim(claimed_at=self.now, user_id=user.id, bounty_id=bounty.id, nft_id=nft.id))
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise ClaimRejected(RejectionReason.ALREADY_CLAIMED) from e

        await self.db.commit()
        self.transition(ClaimState.COMMITTED)
        logger.info(
            "claim_committed",
            user_id=user.id,
            bounty_id=bounty.id,
            nft_id=nft.id,
            nft_number=nft.number,
        )
        return nft


async def get_user(db: AsyncSession, user_id: str) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_active_bounty(db: AsyncSession, claim_code: str) -> Bounty | None:
    """Active bounty whose claim code matches exactly."""
    result = await db.execute(
        select(Bounty)
        .where(Bounty.claim_code == claim_code, Bounty.is_active.is_(True))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def is_serialization_failure(exc: DBAPIError) -> bool:
    """True for store errors that mean "lost a concurrency race, try again"."""
    if isinstance(exc, IntegrityError) or exc.connection_invalidated:
        return False
    orig = exc.orig
    for err in (orig, getattr(orig, "__cause__", None)):
        code = getattr(err, "sqlstate", None) or getattr(err, "pgcode", None)
        if code in _RETRYABLE_SQLSTATES:
            return True
    return "database is locked" in str(orig).lower()


async def claim_bounty(
    db: AsyncSession,
    user_id: str | None,
    claim_code: str,
    *,
    source_ip: str | None = None,
    now: datetime | None = None,
    options: ClaimOptions | None = None,
) -> Nft:
    """Redeem ``claim_code`` for ``user_id`` and return the allocated NFT.

    ``source_ip`` stands in for the user's address when none is on record.

    Raises:
        ClaimRejected: a business rule refused the claim; nothing was written.
        ContentionError: serialization conflicts outlasted every retry.
    """
    if not user_id:
        raise ClaimRejected(RejectionReason.UNAUTHENTICATED)
    options = options or ClaimOptions.from_settings()
    attempts = max(1, options.tx_retries)

    for attempt in range(1, attempts + 1):
        pipeline = ClaimPipeline(db, user_id, claim_code, now or datetime.now(timezone.utc), options, source_ip)
        try:
            return await pipeline.run()
        except ClaimRejected as e:
            await db.rollback()
            logger.info(
                "claim_rejected",
                user_id=user_id,
                reason=e.reason.value,
                stage=pipeline.state.value,
            )
            pipeline.transition(ClaimState.REJECTED)
            raise
        except DBAPIError as e:
            await db.rollback()
            if not is_serialization_failure(e):
                raise
            logger.warning("claim_conflict_retry", user_id=user_id, attempt=attempt, stage=pipeline.state.value)
            if attempt < attempts:
                await asyncio.sleep(options.backoff_seconds * attempt * random.uniform(0.5, 1.5))

    logger.warning("claim_contention_exhausted", user_id=user_id, attempts=attempts)
    raise ContentionError(attempts)
