"""Fraud guard: per-user and per-IP redemption history checks.

Checks run in a fixed order and stop at the first failure:
1. cooldown since the user's most recent claim (any bounty)
2. duplicate claim of the same bounty
3. another account on the same IP already claimed the bounty

The IP is the user's most recent recorded address, or the request's source
address when nothing is on record.

Read-only. Must be called inside the claim transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.config import get_settings
from nftdrop.db.models import Bounty, Claim, IpAddress, User
from nftdrop.errors import ClaimRejected, RejectionReason


@dataclass(frozen=True)
class FraudPolicy:
    cooldown: timedelta
    ip_check_enabled: bool = True
    ip_check_require_record: bool = True

    @classmethod
    def from_settings(cls) -> FraudPolicy:
        settings = get_settings()
        return cls(
            cooldown=timedelta(hours=settings.claim_cooldown_hours),
            ip_check_enabled=settings.ip_check_enabled,
            ip_check_require_record=settings.ip_check_require_record,
        )


async def get_last_claim(db: AsyncSession, user_id: str) -> Claim | None:
    """Most recent claim by a user across all bounties."""
    result = await db.execute(
        select(Claim)
        .where(Claim.user_id == user_id)
        .order_by(Claim.claimed_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def has_claimed(db: AsyncSession, user_id: str, bounty_id: str) -> bool:
    result = await db.execute(
        select(Claim.id).where(Claim.user_id == user_id, Claim.bounty_id == bounty_id)
    )
    return result.first() is not None


async def get_user_ip(db: AsyncSession, user_id: str) -> IpAddress | None:
    """The user's most recently recorded IP address."""
    result = await db.execute(
        select(IpAddress)
        .where(IpAddress.user_id == user_id)
        .order_by(IpAddress.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def address_is_banned(db: AsyncSession, address: str) -> bool:
    result = await db.execute(
        select(IpAddress.id).where(IpAddress.address == address, IpAddress.is_banned.is_(True)).limit(1)
    )
    return result.first() is not None


async def ip_has_claimed(db: AsyncSession, address: str, bounty_id: str) -> bool:
    """True if any account seen on ``address`` holds a claim on the bounty."""
    linked_users = select(IpAddress.user_id).where(IpAddress.address == address)
    result = await db.execute(
        select(Claim.id)
        .where(Claim.bounty_id == bounty_id, Claim.user_id.in_(linked_users))
        .limit(1)
    )
    return result.first() is not None


async def check(
    db: AsyncSession,
    user: User,
    bounty: Bounty,
    now: datetime,
    policy: FraudPolicy | None = None,
    source_ip: str | None = None,
) -> None:
    """Raise ClaimRejected if the user may not claim the bounty right now."""
    policy = policy or FraudPolicy.from_settings()

    last_claim = await get_last_claim(db, user.id)
    if last_claim is not None and now - last_claim.claimed_at < policy.cooldown:
        raise ClaimRejected(RejectionReason.COOLDOWN_ACTIVE)

    if await has_claimed(db, user.id, bounty.id):
        raise ClaimRejected(RejectionReason.ALREADY_CLAIMED)

    if not policy.ip_check_enabled:
        return

    ip = await get_user_ip(db, user.id)
    if ip is not None:
        address, banned = ip.address, ip.is_banned
    elif source_ip:
        address, banned = source_ip, await address_is_banned(db, source_ip)
    else:
        if policy.ip_check_require_record:
            raise ClaimRejected(RejectionReason.NO_IP_ON_RECORD)
        return

    if banned:
        raise ClaimRejected(RejectionReason.IP_BANNED)

    if await ip_has_claimed(db, address, bounty.id):
        raise ClaimRejected(RejectionReason.IP_ALREADY_CLAIMED)
