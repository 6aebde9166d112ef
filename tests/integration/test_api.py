"""HTTP surface: status codes, rejection bodies, and the read-only listings."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.auth.jwt import create_access_token
from nftdrop.nfts import transfer_service
from tests.conftest import make_bounty, make_track, make_user


def _auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_readiness_degraded_without_redis(client: AsyncClient) -> None:
    """The ledger is reachable but Redis was never initialized."""
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["database"] == "ok"


@pytest.mark.asyncio
async def test_version(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    assert response.json()["environment"] == "test"


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "claim-req-42"})
    assert response.headers["x-request-id"] == "claim-req-42"


class TestClaimEndpoint:
    @pytest.mark.asyncio
    async def test_claim_returns_nft(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user_id = (await make_user(db_session, "alice")).id
        track = await make_track(db_session, [2, 1, 3])
        track_id = track.id
        await make_bounty(db_session, track, "HELLO")

        response = await client.post("/api/v1/bounties/claim", json={"claim_code": "HELLO"}, headers=_auth(user_id))

        assert response.status_code == 201
        body = response.json()
        assert body["number"] == 1
        assert body["owner_id"] == user_id
        assert body["track_id"] == track_id

    @pytest.mark.asyncio
    async def test_second_claim_hits_cooldown(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user_id = (await make_user(db_session, "bob")).id
        await make_bounty(db_session, await make_track(db_session, [1], title="A"), "FIRST")
        await make_bounty(db_session, await make_track(db_session, [1], title="B"), "SECOND")

        first = await client.post("/api/v1/bounties/claim", json={"claim_code": "FIRST"}, headers=_auth(user_id))
        second = await client.post("/api/v1/bounties/claim", json={"claim_code": "SECOND"}, headers=_auth(user_id))

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["reason"] == "CooldownActive"

    @pytest.mark.asyncio
    async def test_request_address_used_without_recorded_ip(
        self, client: AsyncClient, db_session: AsyncSession
    ) -> None:
        user_id = (await make_user(db_session, "nora", ip=None)).id
        await make_bounty(db_session, await make_track(db_session, [1]), "WALKIN")

        response = await client.post("/api/v1/bounties/claim", json={"claim_code": "WALKIN"}, headers=_auth(user_id))

        assert response.status_code == 201
        assert response.json()["owner_id"] == user_id

    @pytest.mark.asyncio
    async def test_unknown_code_is_404(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user_id = (await make_user(db_session, "carol")).id
        response = await client.post("/api/v1/bounties/claim", json={"claim_code": "NOPE"}, headers=_auth(user_id))
        assert response.status_code == 404
        assert response.json() == {
            "detail": "Invalid claim code or inactive bounty",
            "reason": "InvalidOrInactiveBounty",
        }

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/bounties/claim", json={"claim_code": "HELLO"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token_is_401(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/bounties/claim",
            json={"claim_code": "HELLO"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/bounties/claim", json={"claim_code": "HELLO"}, headers=_auth("ghost"))
        assert response.status_code == 401
        assert response.json()["reason"] == "Unauthenticated"

    @pytest.mark.asyncio
    async def test_empty_code_is_422(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user_id = (await make_user(db_session, "dan")).id
        response = await client.post("/api/v1/bounties/claim", json={"claim_code": ""}, headers=_auth(user_id))
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"


class TestNftEndpoints:
    @pytest.mark.asyncio
    async def test_claim_send_and_list(self, client: AsyncClient, db_session: AsyncSession) -> None:
        sender_id = (await make_user(db_session, "erin")).id
        recipient_id = (await make_user(db_session, "finn")).id
        await make_bounty(db_session, await make_track(db_session, [1, 2]), "GIFT")

        claimed = await client.post("/api/v1/bounties/claim", json={"claim_code": "GIFT"}, headers=_auth(sender_id))
        nft_id = claimed.json()["id"]

        sent = await client.post(
            f"/api/v1/nfts/{nft_id}/send",
            json={"new_owner_id": recipient_id},
            headers=_auth(sender_id),
        )
        assert sent.status_code == 200
        assert sent.json()["owner_id"] == recipient_id

        mine = (await client.get("/api/v1/nfts/me", headers=_auth(recipient_id))).json()
        assert mine["total"] == 1
        assert mine["nfts"][0]["id"] == nft_id
        assert (await client.get("/api/v1/nfts/me", headers=_auth(sender_id))).json()["total"] == 0

        again = await client.post(
            f"/api/v1/nfts/{nft_id}/send",
            json={"new_owner_id": recipient_id},
            headers=_auth(sender_id),
        )
        assert again.status_code == 403
        assert again.json()["reason"] == "NotOwner"

    @pytest.mark.asyncio
    async def test_send_unknown_nft_is_404(self, client: AsyncClient, db_session: AsyncSession) -> None:
        sender_id = (await make_user(db_session, "gus")).id
        recipient_id = (await make_user(db_session, "hal")).id
        response = await client.post(
            "/api/v1/nfts/missing/send",
            json={"new_owner_id": recipient_id},
            headers=_auth(sender_id),
        )
        assert response.status_code == 404
        assert response.json()["reason"] == "NftNotFound"

    @pytest.mark.asyncio
    async def test_send_under_contention_is_503(
        self, client: AsyncClient, db_session: AsyncSession, monkeypatch
    ) -> None:
        sender_id = (await make_user(db_session, "ike")).id
        recipient_id = (await make_user(db_session, "jan")).id

        async def _always_locked(db, user_id):
            raise OperationalError("SELECT users", {}, Exception("database is locked"))

        monkeypatch.setattr(transfer_service, "_user_exists", _always_locked)
        response = await client.post(
            "/api/v1/nfts/any/send",
            json={"new_owner_id": recipient_id},
            headers=_auth(sender_id),
        )

        assert response.status_code == 503
        assert response.headers["retry-after"] == "1"
        assert response.json()["reason"] == "Contention"


class TestListings:
    @pytest.mark.asyncio
    async def test_public_bounties_only(self, client: AsyncClient, db_session: AsyncSession) -> None:
        open_track = await make_track(db_session, [1], title="Open")
        await make_bounty(db_session, open_track, "OPEN", is_public=True, max_claim=4)
        await make_bounty(db_session, await make_track(db_session, [1], title="Hidden"), "HIDDEN")
        await make_bounty(
            db_session, await make_track(db_session, [1], title="Closed"), "CLOSED", is_public=True, is_active=False
        )

        response = await client.get("/api/v1/bounties/public")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        bounty = data["bounties"][0]
        assert bounty["public_code"] == "OPEN"
        assert bounty["remaining"] == 4

    @pytest.mark.asyncio
    async def test_claim_history(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user_id = (await make_user(db_session, "ivy")).id
        bounty = await make_bounty(db_session, await make_track(db_session, [1]), "MINE")
        bounty_id = bounty.id

        assert (await client.get("/api/v1/claims/me", headers=_auth(user_id))).json()["total"] == 0
        claimed = await client.post("/api/v1/bounties/claim", json={"claim_code": "MINE"}, headers=_auth(user_id))

        history = (await client.get("/api/v1/claims/me", headers=_auth(user_id))).json()
        assert history["total"] == 1
        assert history["claims"][0]["bounty_id"] == bounty_id
        assert history["claims"][0]["nft_id"] == claimed.json()["id"]

    @pytest.mark.asyncio
    async def test_claim_history_requires_known_user(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/claims/me", headers=_auth("ghost"))
        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"
