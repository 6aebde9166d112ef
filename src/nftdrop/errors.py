"""Typed rejections for the redemption and transfer flows."""

from __future__ import annotations

import enum


class RejectionReason(str, enum.Enum):
    """Why a claim or transfer was refused. Values are returned to clients as-is."""

    UNAUTHENTICATED = "Unauthenticated"
    COOLDOWN_ACTIVE = "CooldownActive"
    INVALID_OR_INACTIVE_BOUNTY = "InvalidOrInactiveBounty"
    QUOTA_EXCEEDED = "QuotaExceeded"
    ALREADY_CLAIMED = "AlreadyClaimed"
    IP_ALREADY_CLAIMED = "IpAlreadyClaimed"
    NO_IP_ON_RECORD = "NoIpOnRecord"
    IP_BANNED = "IpBanned"
    NO_AVAILABLE_NFT = "NoAvailableNft"
    NFT_NOT_FOUND = "NftNotFound"
    NOT_OWNER = "NotOwner"
    RECIPIENT_NOT_FOUND = "RecipientNotFound"


_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.UNAUTHENTICATED: "User not found",
    RejectionReason.COOLDOWN_ACTIVE: "A bounty was already claimed during the last 24 hours",
    RejectionReason.INVALID_OR_INACTIVE_BOUNTY: "Invalid claim code or inactive bounty",
    RejectionReason.QUOTA_EXCEEDED: "Maximum claims for this bounty reached",
    RejectionReason.ALREADY_CLAIMED: "User has already claimed this bounty",
    RejectionReason.IP_ALREADY_CLAIMED: "Bounty already claimed from this IP address",
    RejectionReason.NO_IP_ON_RECORD: "No IP address associated with the user",
    RejectionReason.IP_BANNED: "IP address is banned",
    RejectionReason.NO_AVAILABLE_NFT: "No available NFTs for claiming",
    RejectionReason.NFT_NOT_FOUND: "NFT not found",
    RejectionReason.NOT_OWNER: "NFT is not owned by the user",
    RejectionReason.RECIPIENT_NOT_FOUND: "New owner not found",
}

# HTTP status per reason; anything missing maps to 409.
STATUS_CODES: dict[RejectionReason, int] = {
    RejectionReason.UNAUTHENTICATED: 401,
    RejectionReason.INVALID_OR_INACTIVE_BOUNTY: 404,
    RejectionReason.NFT_NOT_FOUND: 404,
    RejectionReason.RECIPIENT_NOT_FOUND: 404,
    RejectionReason.NOT_OWNER: 403,
}


class ClaimRejected(ValueError):
    """A business-rule rejection. The enclosing transaction is always rolled back."""

    def __init__(self, reason: RejectionReason, message: str | None = None) -> None:
        self.reason = reason
        self.message = message or _MESSAGES[reason]
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_CODES.get(self.reason, 409)


class ContentionError(RuntimeError):
    """Raised when serialization conflicts persist after all retries."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Too much contention, gave up after {attempts} attempts")
