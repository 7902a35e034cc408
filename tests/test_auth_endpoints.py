import pytest

from identity_service.features.auth.services.token_issuer import TokenIssuer
from identity_service.features.auth.utils.oauth import ExternalIdentity

from conftest import DEFAULT_PASSWORD

SIGNUP = {
    "email": "alice@example.com",
    "password": DEFAULT_PASSWORD,
    "first_name": "Alice",
    "last_name": "Liddell",
}


async def register_and_verify(client, notifier, payload=SIGNUP):
    response = await client.post("/api/v1/auth/signup", json=payload)
    assert response.status_code == 201, response.text
    token = notifier.verifications[-1][1]
    response = await client.post("/api/v1/auth/verify-email", json={"token": token})
    assert response.status_code == 200, response.text


async def login(client, email="alice@example.com", password=DEFAULT_PASSWORD):
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def bearer(access_token):
    return {"Authorization": f"Bearer {access_token}"}


class TestSignupEndpoint:
    @pytest.mark.asyncio
    async def test_signup_envelope(self, client, notifier):
        response = await client.post("/api/v1/auth/signup", json=SIGNUP)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "success"
        assert body["status_code"] == 201
        assert body["data"]["email"] == "alice@example.com"
        assert body["data"]["is_email_verified"] is False
        assert "password_hash" not in body["data"]
        assert "verification_token" not in body["data"]
        assert len(notifier.verifications) == 1

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client):
        await client.post("/api/v1/auth/signup", json=SIGNUP)
        response = await client.post("/api/v1/auth/signup", json=SIGNUP)

        assert response.status_code == 409
        assert response.json()["status"] == "error"
        assert response.json()["data"]["error_code"] == "EMAIL_ALREADY_EXISTS"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
    async def test_weak_password_is_rejected(self, client, password):
        response = await client.post("/api/v1/auth/signup", json={**SIGNUP, "password": password})

        assert response.status_code == 422
        assert response.json()["message"] == "Validation failed"


class TestLoginFlow:
    @pytest.mark.asyncio
    async def test_login_before_verification(self, client):
        await client.post("/api/v1/auth/signup", json=SIGNUP)

        response = await client.post(
            "/api/v1/auth/login", json={"email": "alice@example.com", "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 403
        assert response.json()["data"]["error_code"] == "EMAIL_NOT_VERIFIED"

    @pytest.mark.asyncio
    async def test_bad_credentials_are_indistinguishable(self, client, notifier):
        await register_and_verify(client, notifier)

        unknown = await client.post(
            "/api/v1/auth/login", json={"email": "ghost@example.com", "password": DEFAULT_PASSWORD}
        )
        wrong = await client.post(
            "/api/v1/auth/login", json={"email": "alice@example.com", "password": "Wr0ngPassword"}
        )

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()
        assert unknown.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_refresh_rotates_and_old_token_dies(self, client, notifier):
        await register_and_verify(client, notifier)
        tokens = await login(client)

        assert tokens["token_type"] == "bearer"
        assert tokens["user"]["email"] == "alice@example.com"

        first = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        replay = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert first.status_code == 200
        assert first.json()["data"]["refresh_token"] != tokens["refresh_token"]
        assert replay.status_code == 401
        assert replay.json()["data"]["error_code"] == "INVALID_REFRESH_TOKEN"

    @pytest.mark.asyncio
    async def test_logout_is_idempotent(self, client, notifier):
        await register_and_verify(client, notifier)
        tokens = await login(client)

        for _ in range(2):
            response = await client.post("/api/v1/auth/logout", json={"refresh_token": tokens["refresh_token"]})
            assert response.status_code == 200

        unknown = await client.post("/api/v1/auth/logout", json={"refresh_token": "never-issued"})
        assert unknown.status_code == 200

        refresh = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refresh.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_all(self, client, notifier):
        await register_and_verify(client, notifier)
        first = await login(client)
        second = await login(client)

        response = await client.post("/api/v1/auth/logout-all", headers=bearer(second["access_token"]))

        assert response.status_code == 200
        assert response.json()["data"]["revoked_sessions"] == 2
        for tokens in (first, second):
            refresh = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
            assert refresh.status_code == 401


class TestProtectedEndpoints:
    @pytest.mark.asyncio
    async def test_me_requires_token(self, client):
        response = await client.get("/api/v1/users/me")

        assert response.status_code == 401
        assert response.json()["data"]["error_code"] == "INVALID_ACCESS_TOKEN"

    @pytest.mark.asyncio
    async def test_me_rejects_garbage_token(self, client):
        response = await client.get("/api/v1/users/me", headers=bearer("garbage"))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, client, notifier):
        await register_and_verify(client, notifier)
        tokens = await login(client)

        response = await client.get("/api/v1/users/me", headers=bearer(tokens["access_token"]))

        assert response.status_code == 200
        assert response.json()["data"]["id"] == tokens["user"]["id"]

    @pytest.mark.asyncio
    async def test_change_password(self, client, notifier):
        await register_and_verify(client, notifier)
        tokens = await login(client)
        user_id = tokens["user"]["id"]

        response = await client.put(
            f"/api/v1/users/{user_id}/password",
            json={"current_password": DEFAULT_PASSWORD, "new_password": "N3wPassword"},
            headers=bearer(tokens["access_token"]),
        )

        assert response.status_code == 200
        refresh = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refresh.status_code == 401
        await login(client, password="N3wPassword")

    @pytest.mark.asyncio
    async def test_change_someone_elses_password(self, client, notifier):
        await register_and_verify(client, notifier)
        await register_and_verify(client, notifier, {**SIGNUP, "email": "eve@example.com", "first_name": "Eve"})
        alice = await login(client)
        eve = await login(client, email="eve@example.com")

        response = await client.put(
            f"/api/v1/users/{alice['user']['id']}/password",
            json={"current_password": DEFAULT_PASSWORD, "new_password": "N3wPassword"},
            headers=bearer(eve["access_token"]),
        )

        assert response.status_code == 403
        assert response.json()["data"]["error_code"] == "FORBIDDEN"


class TestPasswordRecoveryEndpoints:
    @pytest.mark.asyncio
    async def test_forgot_password_does_not_reveal_accounts(self, client, notifier):
        await register_and_verify(client, notifier)

        known = await client.post("/api/v1/auth/forgot-password", json={"email": "alice@example.com"})
        unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert len(notifier.recovery_codes) == 1

    @pytest.mark.asyncio
    async def test_reset_password(self, client, notifier):
        await register_and_verify(client, notifier)
        tokens = await login(client)
        await client.post("/api/v1/auth/forgot-password", json={"email": "alice@example.com"})
        code = notifier.recovery_codes[-1][1]

        response = await client.post(
            "/api/v1/auth/reset-password",
            json={"email": "alice@example.com", "code": code, "new_password": "N3wPassword"},
        )

        assert response.status_code == 200
        refresh = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refresh.status_code == 401
        await login(client, password="N3wPassword")

    @pytest.mark.asyncio
    async def test_reset_with_wrong_code(self, client, notifier):
        await register_and_verify(client, notifier)
        await client.post("/api/v1/auth/forgot-password", json={"email": "alice@example.com"})
        code = notifier.recovery_codes[-1][1]
        wrong = "000000" if code != "000000" else "111111"

        response = await client.post(
            "/api/v1/auth/reset-password",
            json={"email": "alice@example.com", "code": wrong, "new_password": "N3wPassword"},
        )

        assert response.status_code == 400
        assert response.json()["data"]["error_code"] == "INVALID_PASSWORD_RESET_TOKEN"


class TestGoogleEndpoint:
    @pytest.mark.asyncio
    async def test_google_login_provisions_account(self, client, identity_verifier):
        identity_verifier.identity = ExternalIdentity(
            subject_id="google-sub-1", email="gina@example.com", display_name="Gina Lopez", email_verified=True
        )

        response = await client.post("/api/v1/auth/oauth/google", json={"id_token": "google-token"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["is_email_verified"] is True
        assert data["user"]["allows_federated_login"] is True
        assert data["access_token"] and data["refresh_token"]

    @pytest.mark.asyncio
    async def test_invalid_google_token(self, client, identity_verifier):
        identity_verifier.identity = None

        response = await client.post("/api/v1/auth/oauth/google", json={"id_token": "forged"})

        assert response.status_code == 401
        assert response.json()["data"]["error_code"] == "INVALID_EXTERNAL_TOKEN"


class TestAccountEndpoints:
    @pytest.mark.asyncio
    async def test_update_profile(self, client, notifier):
        await register_and_verify(client, notifier)
        tokens = await login(client)

        response = await client.put(
            f"/api/v1/users/{tokens['user']['id']}",
            json={"last_name": "Pleasance", "profile_picture_url": "https://example.com/alice.png"},
            headers=bearer(tokens["access_token"]),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert (data["first_name"], data["last_name"]) == ("Alice", "Pleasance")
        assert data["profile_picture_url"] == "https://example.com/alice.png"

    @pytest.mark.asyncio
    async def test_first_name_cannot_be_cleared(self, client, notifier):
        await register_and_verify(client, notifier)
        tokens = await login(client)

        response = await client.put(
            f"/api/v1/users/{tokens['user']['id']}",
            json={"first_name": None},
            headers=bearer(tokens["access_token"]),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_deactivate_account(self, client, notifier):
        await register_and_verify(client, notifier)
        tokens = await login(client)

        response = await client.delete(
            f"/api/v1/users/{tokens['user']['id']}", headers=bearer(tokens["access_token"])
        )

        assert response.status_code == 200
        me = await client.get("/api/v1/users/me", headers=bearer(tokens["access_token"]))
        assert me.status_code == 401
        refresh = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refresh.status_code == 401
        relogin = await client.post(
            "/api/v1/auth/login", json={"email": "alice@example.com", "password": DEFAULT_PASSWORD}
        )
        assert relogin.status_code == 403
        assert relogin.json()["data"]["error_code"] == "ACCOUNT_INACTIVE"

    @pytest.mark.asyncio
    async def test_cannot_deactivate_someone_else(self, client, notifier):
        await register_and_verify(client, notifier)
        await register_and_verify(client, notifier, {**SIGNUP, "email": "eve@example.com", "first_name": "Eve"})
        alice = await login(client)
        eve = await login(client, email="eve@example.com")

        response = await client.delete(f"/api/v1/users/{alice['user']['id']}", headers=bearer(eve["access_token"]))

        assert response.status_code == 403
        await login(client)

    @pytest.mark.asyncio
    async def test_creator_profile_round_trip(self, client, notifier):
        await register_and_verify(client, notifier)
        tokens = await login(client)
        issuer = TokenIssuer.from_settings()

        created = await client.post(
            "/api/v1/users/me/creator-profile",
            json={"display_name": "Alice Sings", "biography": "Songs from the looking glass"},
            headers=bearer(tokens["access_token"]),
        )

        assert created.status_code == 201
        data = created.json()["data"]
        assert data["user"]["account_type"] == "creator"
        assert issuer.decode(data["access_token"]).creator_profile_id

        again = await client.post(
            "/api/v1/users/me/creator-profile",
            json={"display_name": "Alice Again"},
            headers=bearer(data["access_token"]),
        )
        assert again.status_code == 409
        assert again.json()["data"]["error_code"] == "ALREADY_CREATOR"

        removed = await client.delete("/api/v1/users/me/creator-profile", headers=bearer(data["access_token"]))

        assert removed.status_code == 200
        data = removed.json()["data"]
        assert data["user"]["account_type"] == "standard"
        assert issuer.decode(data["access_token"]).creator_profile_id is None
