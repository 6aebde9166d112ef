"""Redemption core — users, ip_addresses, tracks, nfts, bounties, claims.

users, ip_addresses and tracks are owned by other services; they are
created here IF NOT EXISTS so a standalone deployment has them.

Revision ID: 001_redemption_core
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_redemption_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Collaborator tables ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id VARCHAR(36) PRIMARY KEY,
            username VARCHAR(64) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS ip_addresses (
            id VARCHAR(36) PRIMARY KEY,
            address VARCHAR(45) NOT NULL,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            is_banned BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_ip_addresses_address ON ip_addresses(address)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_ip_addresses_user_id ON ip_addresses(user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS tracks (
            id VARCHAR(36) PRIMARY KEY,
            title VARCHAR(256) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- NFT pool ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS nfts (
            id VARCHAR(36) PRIMARY KEY,
            number INTEGER NOT NULL,
            track_id VARCHAR(36) NOT NULL REFERENCES tracks(id) ON DELETE CASCADE,
            owner_id VARCHAR(36) REFERENCES users(id) ON DELETE RESTRICT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_nfts_track_number UNIQUE (track_id, number)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_nfts_track_owner ON nfts(track_id, owner_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_nfts_owner_id ON nfts(owner_id)")

    # --- Bounties ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS bounties (
            id VARCHAR(36) PRIMARY KEY,
            track_id VARCHAR(36) NOT NULL REFERENCES tracks(id) ON DELETE CASCADE,
            claim_code VARCHAR(128) UNIQUE NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            is_public BOOLEAN NOT NULL DEFAULT false,
            is_random BOOLEAN NOT NULL DEFAULT false,
            max_claim INTEGER,
            claim_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_bounties_claim_count CHECK (max_claim IS NULL OR claim_count <= max_claim)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_bounties_track_id ON bounties(track_id)")

    # --- Claims (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS claims (
            id VARCHAR(36) PRIMARY KEY,
            claimed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            bounty_id VARCHAR(36) NOT NULL REFERENCES bounties(id) ON DELETE CASCADE,
            nft_id VARCHAR(36) REFERENCES nfts(id) ON DELETE SET NULL,
            CONSTRAINT uq_claims_user_bounty UNIQUE (user_id, bounty_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_claims_user_time ON claims(user_id, claimed_at DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_claims_bounty ON claims(bounty_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS claims CASCADE")
    op.execute("DROP TABLE IF EXISTS bounties CASCADE")
    op.execute("DROP TABLE IF EXISTS nfts CASCADE")
    # users, ip_addresses and tracks belong to other services
