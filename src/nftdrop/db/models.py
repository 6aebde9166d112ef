"""ORM models for the redemption ledger.

Six tables: users, ip_addresses, tracks, nfts, bounties, claims.
Users, tracks and IP associations are written by other services; the
redemption core only mutates ``bounties.claim_count``, ``nfts.owner_id``
and appends to ``claims``.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nftdrop.db.base import Base, UTCDateTime, new_id, utcnow


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    ip_addresses: Mapped[list[IpAddress]] = relationship("IpAddress", back_populates="user")
    nfts: Mapped[list[Nft]] = relationship("Nft", back_populates="owner", passive_deletes="all")


class IpAddress(Base):
    """An address a user was seen from at sign-up or login. Many users may share one."""

    __tablename__ = "ip_addresses"
    __table_args__ = (Index("idx_ip_addresses_address", "address"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    address: Mapped[str] = mapped_column(String(45), nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    user: Mapped[User] = relationship("User", back_populates="ip_addresses")


# ---------------------------------------------------------------------------
# Tracks & NFTs
# ---------------------------------------------------------------------------


class Track(Base):
    """A media track. Read-only for this service."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    nfts: Mapped[list[Nft]] = relationship("Nft", back_populates="track")
    bounties: Mapped[list[Bounty]] = relationship("Bounty", back_populates="track")


class Nft(Base):
    """One numbered collectible of a track's pool. ``owner_id`` NULL means unowned."""

    __tablename__ = "nfts"
    __table_args__ = (
        UniqueConstraint("track_id", "number", name="uq_nfts_track_number"),
        Index("idx_nfts_track_owner", "track_id", "owner_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    track_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    track: Mapped[Track] = relationship("Track", back_populates="nfts")
    owner: Mapped[User | None] = relationship("User", back_populates="nfts")


# ---------------------------------------------------------------------------
# Bounties & Claims
# ---------------------------------------------------------------------------


class Bounty(Base):
    """A redeemable offer of one NFT from a track's pool."""

    __tablename__ = "bounties"
    __table_args__ = (
        CheckConstraint("max_claim IS NULL OR claim_count <= max_claim", name="ck_bounties_claim_count"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    track_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    claim_code: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_random: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    max_claim: Mapped[int | None] = mapped_column(Integer, nullable=True)
    claim_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    track: Mapped[Track] = relationship("Track", back_populates="bounties")

    @property
    def public_code(self) -> str | None:
        """The claim code, exposed only for public bounties."""
        return self.claim_code if self.is_public else None

    @property
    def remaining(self) -> int | None:
        if self.max_claim is None:
            return None
        return max(0, self.max_claim - self.claim_count)


class Claim(Base):
    """Append-only record of one successful redemption."""

    __tablename__ = "claims"
    __table_args__ = (
        UniqueConstraint("user_id", "bounty_id", name="uq_claims_user_bounty"),
        Index("idx_claims_user_time", "user_id", "claimed_at"),
        Index("idx_claims_bounty", "bounty_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    claimed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    bounty_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bounties.id", ondelete="CASCADE"), nullable=False
    )
    nft_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("nfts.id", ondelete="SET NULL"), nullable=True
    )
