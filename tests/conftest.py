"""Shared test fixtures.

Every test gets a fresh SQLite ledger (aiosqlite) with the schema built from
the ORM metadata. The app's module-level engine is pointed at it so API tests
and direct service tests share the same store.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import AsyncGenerator
from datetime import datetime

os.environ.setdefault("NFTDROP_LOG_FORMAT", "console")
os.environ.setdefault("NFTDROP_ENVIRONMENT", "test")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nftdrop.config import get_settings
from nftdrop.database import close_db, get_engine, get_session_factory, init_db
from nftdrop.db.base import Base
from nftdrop.db.models import Bounty, Claim, IpAddress, Nft, Track, User

_ip_counter = itertools.count(1)


@pytest_asyncio.fixture
async def ledger(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Initialize a throwaway database and return its session factory."""
    get_settings.cache_clear()
    url = f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"
    os.environ["NFTDROP_DATABASE_URL"] = url
    await init_db(url, isolation_level="SERIALIZABLE")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield get_session_factory()
    await close_db()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_session(ledger: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for arranging data and asserting on it."""
    async with ledger() as session:
        yield session


@pytest_asyncio.fixture
async def client(ledger: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app. Redis is left uninitialized, so rate limiting is off."""
    from nftdrop.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


async def make_user(db: AsyncSession, username: str, ip: str | None = "auto", banned: bool = False) -> User:
    """Create a user, by default with its own unique IP address on record."""
    user = User(username=username)
    db.add(user)
    await db.flush()
    if ip == "auto":
        ip = f"198.51.100.{next(_ip_counter)}"
    if ip is not None:
        db.add(IpAddress(address=ip, user_id=user.id, is_banned=banned))
    await db.commit()
    return user


async def make_track(db: AsyncSession, numbers: list[int], title: str = "Test Track") -> Track:
    """Create a track whose NFTs carry ``numbers``, inserted in the given order."""
    track = Track(title=title)
    db.add(track)
    await db.flush()
    for n in numbers:
        db.add(Nft(number=n, track_id=track.id))
    await db.commit()
    return track


async def make_bounty(
    db: AsyncSession,
    track: Track,
    claim_code: str,
    *,
    max_claim: int | None = None,
    is_random: bool = False,
    is_active: bool = True,
    is_public: bool = False,
) -> Bounty:
    bounty = Bounty(
        track_id=track.id,
        claim_code=claim_code,
        max_claim=max_claim,
        is_random=is_random,
        is_active=is_active,
        is_public=is_public,
    )
    db.add(bounty)
    await db.commit()
    return bounty


async def make_claim(db: AsyncSession, user: User, bounty: Bounty, claimed_at: datetime) -> Claim:
    """Insert a historical claim row directly."""
    claim = Claim(user_id=user.id, bounty_id=bounty.id, claimed_at=claimed_at)
    db.add(claim)
    await db.commit()
    return claim
