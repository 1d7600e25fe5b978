"""
End-to-end tests for the account endpoints and the request authenticator.

Covers:
- Register / login / verify-email envelopes
- Bearer token handling in the authenticator middleware
- Guarded endpoints (authenticated, environment)
- Profile updates through the API
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from main import app
from models import UserRole, Verification
from services.user_directory import UserDirectory


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def _register(client: AsyncClient, email="alice@test.com", password="secret1", role="CLIENT"):
    return await client.post(
        "/api/users/register",
        json={"email": email, "password": password, "role": role},
    )


async def _login(client: AsyncClient, email="alice@test.com", password="secret1"):
    return await client.post(
        "/api/users/login",
        json={"email": email, "password": password},
    )


class TestAccountScenario:
    @pytest.mark.asyncio
    async def test_register_login_verify_walkthrough(self, async_client: AsyncClient):
        """Register, duplicate, bad login, good login, fabricated code."""
        first = await _register(async_client)
        assert first.status_code == 200
        assert first.json() == {"ok": True, "error": None}

        duplicate = await _register(async_client)
        assert duplicate.json()["ok"] is False
        assert "already registered" in duplicate.json()["error"]

        bad_login = await _login(async_client, password="wrongpass")
        assert bad_login.json()["ok"] is False
        assert bad_login.json()["token"] is None

        good_login = await _login(async_client)
        assert good_login.json()["ok"] is True
        assert good_login.json()["token"]

        fabricated = await async_client.post(
            "/api/users/verify-email", json={"code": "made-up-code"}
        )
        assert fabricated.json()["ok"] is False
        assert fabricated.json()["error"]


class TestRegisterEndpoint:
    @pytest.mark.asyncio
    async def test_invalid_role_rejected(self, async_client: AsyncClient):
        response = await _register(async_client, role="ADMIN")
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation failed"

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, async_client: AsyncClient):
        response = await _register(async_client, password="abc")
        assert response.status_code == 422
        fields = [e["field"] for e in response.json()["errors"]]
        assert "password" in fields

    @pytest.mark.asyncio
    async def test_invalid_token_does_not_block_registration(self, async_client: AsyncClient):
        """Exempt operations ignore whatever credential is attached."""
        response = await async_client.post(
            "/api/users/register",
            json={"email": "alice@test.com", "password": "secret1", "role": "OWNER"},
            headers=_auth("garbage"),
        )
        assert response.status_code == 200
        assert response.json()["ok"] is True


class TestLoginEndpoint:
    @pytest.mark.asyncio
    async def test_unknown_email_same_message_as_wrong_password(self, async_client: AsyncClient):
        await _register(async_client)

        wrong_password = (await _login(async_client, password="wrongpass")).json()
        unknown_email = (await _login(async_client, email="nobody@test.com")).json()

        assert wrong_password == unknown_email
        assert wrong_password["error"] == "Invalid email/password"

    @pytest.mark.asyncio
    async def test_token_identifies_user(self, async_client: AsyncClient):
        await _register(async_client)
        token = (await _login(async_client)).json()["token"]

        me = await async_client.get("/api/users/me", headers=_auth(token))

        assert me.status_code == 200
        assert me.json()["email"] == "alice@test.com"
        assert "password" not in me.json()


class TestVerifyEmailEndpoint:
    @pytest.mark.asyncio
    async def test_verify_then_reuse(self, async_client: AsyncClient, db):
        await _register(async_client)
        code = (await db.execute(select(Verification.code))).scalar_one()

        first = await async_client.post("/api/users/verify-email", json={"code": code})
        second = await async_client.post("/api/users/verify-email", json={"code": code})

        assert first.json() == {"ok": True, "error": None}
        assert second.json()["ok"] is False

        token = (await _login(async_client)).json()["token"]
        me = await async_client.get("/api/users/me", headers=_auth(token))
        assert me.json()["verified"] is True


class TestRequestAuthenticator:
    @pytest.mark.asyncio
    async def test_anonymous_reaches_public_operation(self, async_client: AsyncClient):
        response = await async_client.get("/api/restaurants")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_anonymous_refused_by_guard(self, async_client: AsyncClient):
        response = await async_client.get("/api/users/me")
        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden"

    @pytest.mark.asyncio
    async def test_invalid_token_rejected_before_routing(self, async_client: AsyncClient):
        response = await async_client.get("/api/restaurants", headers=_auth("invalid_token_xyz"))
        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_token_for_deleted_user_rejected(self, async_client: AsyncClient):
        token = app.state.tokens.sign({"id": 4242})
        response = await async_client.get("/api/users/me", headers=_auth(token))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_without_id_rejected(self, async_client: AsyncClient):
        token = app.state.tokens.sign({"sub": "someone"})
        response = await async_client.get("/api/restaurants", headers=_auth(token))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_signed_with_other_secret_rejected(self, async_client: AsyncClient, make_user):
        from auth.jwt_service import TokenService

        user, _ = await make_user()
        forged = TokenService("not-the-server-secret").sign({"id": user.id})
        response = await async_client.get("/api/users/me", headers=_auth(forged))
        assert response.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["Basic abc123", "Bearer", "Bearer a b", "token-only"])
    async def test_malformed_header_rejected(self, async_client: AsyncClient, header):
        response = await async_client.get("/api/restaurants", headers={"Authorization": header})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_lowercase_scheme_accepted(self, async_client: AsyncClient, make_user):
        user, token = await make_user()
        response = await async_client.get(
            "/api/users/me", headers={"Authorization": f"bearer {token}"}
        )
        assert response.status_code == 200
        assert response.json()["id"] == user.id

    @pytest.mark.asyncio
    async def test_schema_discovery_is_exempt(self, async_client: AsyncClient):
        response = await async_client.get("/openapi.json", headers=_auth("garbage"))
        assert response.status_code == 200
        assert "/api/users/login" in response.json()["paths"]

    @pytest.mark.asyncio
    async def test_request_id_header(self, async_client: AsyncClient):
        response = await async_client.get("/api/restaurants")
        assert "X-Request-ID" in response.headers


class TestProtectedUserEndpoints:
    @pytest.mark.asyncio
    async def test_update_profile_uses_token_identity(self, async_client: AsyncClient, make_user):
        await make_user(email="bob@test.com")
        alice, token = await make_user(email="alice@test.com")

        response = await async_client.patch(
            "/api/users/me", json={"password": "newpass1"}, headers=_auth(token)
        )

        assert response.json() == {"ok": True, "error": None}
        assert (await _login(async_client, password="newpass1")).json()["ok"] is True
        assert (await _login(async_client, email="bob@test.com")).json()["ok"] is True

    @pytest.mark.asyncio
    async def test_update_profile_duplicate_email(self, async_client: AsyncClient, make_user):
        await make_user(email="bob@test.com")
        _, token = await make_user(email="alice@test.com")

        response = await async_client.patch(
            "/api/users/me", json={"email": "bob@test.com"}, headers=_auth(token)
        )

        assert response.json()["ok"] is False
        assert response.json()["error"] == "Email already registered"

    @pytest.mark.asyncio
    async def test_update_profile_requires_authentication(self, async_client: AsyncClient):
        response = await async_client.patch("/api/users/me", json={"role": "OWNER"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_list_users_in_test_environment(self, async_client: AsyncClient, make_user):
        _, token = await make_user(email="alice@test.com")
        await make_user(email="bob@test.com", role=UserRole.OWNER)

        response = await async_client.get("/api/users", headers=_auth(token))

        assert response.status_code == 200
        assert [u["email"] for u in response.json()] == ["alice@test.com", "bob@test.com"]

    @pytest.mark.asyncio
    async def test_list_users_refused_in_production(self, async_client: AsyncClient, make_user):
        _, token = await make_user()
        original = app.state.settings
        app.state.settings = original.model_copy(update={"ENVIRONMENT": "production"})
        try:
            response = await async_client.get("/api/users", headers=_auth(token))
        finally:
            app.state.settings = original

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_list_users_storage_fault_is_clean_503(
        self, async_client: AsyncClient, make_user, monkeypatch
    ):
        _, token = await make_user()
        real_find_many = UserDirectory.find_many

        async def find_many_on_broken_session(self, criteria=None):
            async def failing_execute(*args, **kwargs):
                raise OperationalError("SELECT", {}, Exception("database is locked"))

            monkeypatch.setattr(self.session, "execute", failing_execute)
            return await real_find_many(self, criteria)

        monkeypatch.setattr(UserDirectory, "find_many", find_many_on_broken_session)
        response = await async_client.get("/api/users", headers=_auth(token))

        assert response.status_code == 503
        assert "locked" not in response.json()["detail"]
