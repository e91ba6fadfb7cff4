"""
Tests for the authentication endpoints.
"""
from backend.app.core.config import settings
from backend.app.core.exceptions import GENERIC_AUTH_FAILURE
from tests.conftest import API, bearer, make_proof

PROOF = make_proof("alice@example.com")


class TestRegister:
    """POST /auth/register"""

    def test_register_returns_bundle(self, client):
        response = client.post(
            f"{API}/auth/register",
            json={"email": "Alice@Example.com", "authProof": PROOF, "displayName": "Alice"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["tokenType"] == "bearer"
        assert data["accessToken"]
        assert data["refreshToken"]
        assert data["expiresAt"]
        assert data["profile"]["email"] == "alice@example.com"
        assert data["profile"]["displayName"] == "Alice"
        assert data["profile"]["roles"] == ["User"]
        assert "authProofHash" not in data["profile"]

    def test_snake_case_accepted(self, client):
        response = client.post(
            f"{API}/auth/register",
            json={"email": "bob@example.com", "auth_proof": PROOF, "security_level": "fast"},
        )

        assert response.status_code == 201
        assert response.json()["profile"]["securityLevel"] == "fast"

    def test_duplicate_email(self, client, register_user):
        register_user()

        response = client.post(
            f"{API}/auth/register", json={"email": "alice@example.com", "authProof": PROOF}
        )

        assert response.status_code == 409

    def test_invalid_security_level(self, client):
        response = client.post(
            f"{API}/auth/register",
            json={"email": "alice@example.com", "authProof": PROOF, "securityLevel": "turbo"},
        )

        assert response.status_code == 422


class TestLogin:
    """POST /auth/login"""

    def test_login(self, client, register_user):
        register_user()

        response = client.post(f"{API}/auth/login", json={"email": "alice@example.com", "authProof": PROOF})

        assert response.status_code == 200
        assert response.json()["accessToken"]

    def test_wrong_proof_and_unknown_email_look_the_same(self, client, register_user):
        register_user()

        wrong = client.post(
            f"{API}/auth/login", json={"email": "alice@example.com", "authProof": make_proof("x")}
        )
        unknown = client.post(f"{API}/auth/login", json={"email": "nobody@example.com", "authProof": PROOF})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json()["detail"] == unknown.json()["detail"] == GENERIC_AUTH_FAILURE

    def test_lockout_on_sixth_attempt(self, client, register_user):
        register_user()
        for _ in range(settings.MAX_FAILED_LOGIN_ATTEMPTS):
            response = client.post(
                f"{API}/auth/login", json={"email": "alice@example.com", "authProof": make_proof("x")}
            )
            assert response.status_code == 401

        response = client.post(f"{API}/auth/login", json={"email": "alice@example.com", "authProof": PROOF})

        assert response.status_code == 423
        assert "locked" in response.json()["detail"].lower()


class TestRefresh:
    """POST /auth/refresh"""

    def test_rotation(self, client, register_user):
        tokens = register_user()

        first = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        replay = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]})

        assert first.status_code == 200
        assert first.json()["refreshToken"] != tokens["refreshToken"]
        assert replay.status_code == 400
        assert replay.json()["detail"] == "Invalid token"

    def test_unknown_token(self, client):
        response = client.post(f"{API}/auth/refresh", json={"refreshToken": "nope"})

        assert response.status_code == 400

    def test_empty_or_missing_token(self, client):
        for body in ({"refreshToken": ""}, {"refreshToken": None}, {}):
            response = client.post(f"{API}/auth/refresh", json=body)

            assert response.status_code == 400, body
            assert response.json()["detail"] == "Invalid token"


class TestLogout:
    """POST /auth/logout"""

    def test_logout_revokes_bearer(self, client, register_user):
        tokens = register_user()
        headers = bearer(tokens["accessToken"])

        response = client.post(f"{API}/auth/logout", json={"refreshToken": tokens["refreshToken"]}, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert client.get(f"{API}/auth/me", headers=headers).status_code == 401
        assert client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).status_code == 400

    def test_logout_always_succeeds(self, client):
        response = client.post(f"{API}/auth/logout", json={"refreshToken": "already-gone"})

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_logout_with_revoked_bearer(self, client, register_user):
        tokens = register_user()
        headers = bearer(tokens["accessToken"])
        client.post(f"{API}/auth/logout", json={"refreshToken": tokens["refreshToken"]}, headers=headers)

        response = client.post(f"{API}/auth/logout", json={"refreshToken": tokens["refreshToken"]}, headers=headers)

        assert response.status_code == 200


class TestAccount:
    """Bearer-protected account endpoints."""

    def test_me(self, client, register_user):
        tokens = register_user()

        response = client.get(f"{API}/auth/me", headers=bearer(tokens["accessToken"]))

        assert response.status_code == 200
        assert response.json()["email"] == "alice@example.com"

    def test_me_without_bearer(self, client):
        response = client.get(f"{API}/auth/me")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_me_with_garbage_bearer(self, client):
        assert client.get(f"{API}/auth/me", headers=bearer("not.a.jwt")).status_code == 401

    def test_change_password_ends_all_sessions(self, client, register_user):
        tokens = register_user()
        other = client.post(f"{API}/auth/login", json={"email": "alice@example.com", "authProof": PROOF}).json()
        new_proof = make_proof("alice-new")

        response = client.post(
            f"{API}/auth/change-password",
            json={"oldProof": PROOF, "newProof": new_proof},
            headers=bearer(tokens["accessToken"]),
        )

        assert response.status_code == 200
        assert client.get(f"{API}/auth/me", headers=bearer(tokens["accessToken"])).status_code == 401
        for refresh_token in (tokens["refreshToken"], other["refreshToken"]):
            assert client.post(f"{API}/auth/refresh", json={"refreshToken": refresh_token}).status_code == 400
        old = client.post(f"{API}/auth/login", json={"email": "alice@example.com", "authProof": PROOF})
        new = client.post(f"{API}/auth/login", json={"email": "alice@example.com", "authProof": new_proof})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_change_password_wrong_old_proof(self, client, register_user):
        tokens = register_user()

        response = client.post(
            f"{API}/auth/change-password",
            json={"oldProof": make_proof("x"), "newProof": make_proof("y")},
            headers=bearer(tokens["accessToken"]),
        )

        assert response.status_code == 401
        assert client.get(f"{API}/auth/me", headers=bearer(tokens["accessToken"])).status_code == 200

    def test_security_level(self, client, register_user):
        tokens = register_user()
        assert client.get(f"{API}/auth/security-level/alice@example.com").json()["securityLevel"] == "balanced"

        new_proof = make_proof("alice-max")
        response = client.post(
            f"{API}/auth/security-level",
            json={"oldProof": PROOF, "newProof": new_proof, "securityLevel": "maximum"},
            headers=bearer(tokens["accessToken"]),
        )

        assert response.status_code == 200
        level = client.get(f"{API}/auth/security-level/ALICE@example.com").json()
        assert level == {"email": "alice@example.com", "securityLevel": "maximum"}

    def test_security_level_unknown_email(self, client):
        response = client.get(f"{API}/auth/security-level/ghost@example.com")

        assert response.status_code == 200
        assert response.json()["securityLevel"] == settings.DEFAULT_SECURITY_LEVEL

    def test_revoke_all(self, client, register_user):
        tokens = register_user()
        client.post(f"{API}/auth/login", json={"email": "alice@example.com", "authProof": PROOF})

        response = client.post(f"{API}/auth/revoke-all", headers=bearer(tokens["accessToken"]))

        assert response.status_code == 200
        assert response.json() == {"success": True, "revoked": 2}
        assert client.get(f"{API}/auth/me", headers=bearer(tokens["accessToken"])).status_code == 401


class TestVault:
    """The opaque envelope store behind the bearer guard."""

    def test_requires_bearer(self, client):
        assert client.get(f"{API}/vault/items").status_code == 401

    def test_store_and_filter(self, client, register_user):
        headers = bearer(register_user()["accessToken"])
        client.post(f"{API}/vault/items", json={"itemType": "login", "ciphertext": "AAAA"}, headers=headers)
        client.post(f"{API}/vault/items", json={"itemType": "note", "ciphertext": "BBBB"}, headers=headers)

        everything = client.get(f"{API}/vault/items", headers=headers).json()
        notes = client.get(f"{API}/vault/items", params={"itemType": "note"}, headers=headers).json()

        assert [i["ciphertext"] for i in everything] == ["AAAA", "BBBB"]
        assert [i["itemType"] for i in notes] == ["note"]

    def test_items_are_per_account(self, client, register_user):
        alice = bearer(register_user("alice@example.com")["accessToken"])
        bob = bearer(register_user("bob@example.com")["accessToken"])
        client.post(f"{API}/vault/items", json={"itemType": "login", "ciphertext": "AAAA"}, headers=alice)

        assert client.get(f"{API}/vault/items", headers=bob).json() == []
