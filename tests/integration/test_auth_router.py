"""Integration tests for the auth router: login, 2FA, rotation cookie, password reset."""

from sqlalchemy import select

from erp_backoffice.auth import totp


ADMIN_PASSWORD = "admin-pass-1"


class TestLogin:
    async def test_login_sets_rotation_cookie(self, client, seeded):
        resp = await client.post(
            "/api/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == 200
        assert body["data"]["access_token"]
        cookie = resp.headers["set-cookie"]
        assert cookie.startswith("refresh_token=")
        assert "HttpOnly" in cookie
        assert "samesite=strict" in cookie.lower()

    async def test_wrong_password(self, client, seeded):
        resp = await client.post("/api/auth/login", json={"username": "admin", "password": "x"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_CREDENTIALS"

    async def test_unknown_user(self, client, seeded):
        resp = await client.post("/api/auth/login", json={"username": "ghost", "password": "x"})
        assert resp.status_code == 404

    async def test_missing_fields_is_bad_request(self, client):
        resp = await client.post("/api/auth/login", json={"username": "admin"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_INPUT"

    async def test_user_info(self, client, admin_headers):
        resp = await client.get("/api/auth/user-info", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["username"] == "admin"
        assert "password_hash" not in data
        assert "otp_key" not in data
        assert "refresh_token" not in data

    async def test_user_info_requires_token(self, client):
        resp = await client.get("/api/auth/user-info")
        assert resp.status_code == 401
        assert resp.json()["code"] == "UNAUTHENTICATED"

    async def test_user_info_rejects_garbage_token(self, client):
        resp = await client.get(
            "/api/auth/user-info", headers={"Authorization": "Bearer not-a-token"}
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_TOKEN"

    async def test_failed_login_is_logged(self, client, admin_headers):
        await client.post("/api/auth/login", json={"username": "admin", "password": "bad"})
        resp = await client.get(
            "/api/admin/activity-log",
            params={"action": "login", "is_success": "false"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        items = resp.json()["data"]["items"]
        assert len(items) == 1
        assert items[0]["message"] == "Invalid password"


class TestTwoFactor:
    async def test_two_factor_flow(self, client, admin_headers, create_user):
        user_id = await create_user("carol", "pw-carol")
        resp = await client.put(f"/api/auth/{user_id}/two-fa", headers=admin_headers)
        assert resp.status_code == 200
        secret = resp.json()["data"]["otp_key"]

        resp = await client.post("/api/auth/login", json={"username": "carol", "password": "pw-carol"})
        assert resp.status_code == 403
        assert resp.json()["message"] == "two-factor authentication is required"
        assert "set-cookie" not in resp.headers

        resp = await client.post(
            "/api/auth/two-fa", json={"username": "carol", "otp_key": totp.current_code(secret)}
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["access_token"]
        assert "refresh_token=" in resp.headers["set-cookie"]

    async def test_wrong_otp(self, client, admin_headers, create_user):
        user_id = await create_user("dave", "pw-dave")
        resp = await client.put(f"/api/auth/{user_id}/two-fa", headers=admin_headers)
        secret = resp.json()["data"]["otp_key"]
        wrong = f"{(int(totp.current_code(secret)) + 500_000) % 1_000_000:06d}"
        resp = await client.post("/api/auth/two-fa", json={"username": "dave", "otp_key": wrong})
        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_OTP"


class TestRotation:
    async def test_refresh_and_logout(self, client, seeded):
        resp = await client.post(
            "/api/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD}
        )
        assert resp.status_code == 200

        resp = await client.get("/api/auth/token")
        assert resp.status_code == 200
        access = resp.json()["data"]["access_token"]
        resp = await client.get("/api/auth/user-info", headers={"Authorization": f"Bearer {access}"})
        assert resp.status_code == 200

        old_cookie = client.cookies.get("refresh_token")
        resp = await client.delete("/api/auth/logout")
        assert resp.status_code == 200

        client.cookies.set("refresh_token", old_cookie)
        resp = await client.get("/api/auth/token")
        assert resp.status_code == 401

    async def test_refresh_without_cookie(self, client):
        resp = await client.get("/api/auth/token")
        assert resp.status_code == 401


class TestPasswords:
    async def test_change_password(self, client, admin_headers, create_user, login):
        await create_user("erin", "pw-erin")
        headers = await login("erin", "pw-erin")
        resp = await client.put(
            "/api/auth/change-password",
            json={"current_password": "pw-erin", "new_password": "pw-erin-2"},
            headers=headers,
        )
        assert resp.status_code == 200
        await login("erin", "pw-erin-2")

    async def test_reset_flow(self, client, admin_headers, create_user, login):
        from erp_backoffice.auth.models import PasswordResetModel
        from erp_backoffice.deps import get_db

        user_id = await create_user("frank", "pw-frank", email="frank@example.com")
        resp = await client.post(
            "/api/auth/send-password-reset", json={"id": user_id}, headers=admin_headers
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["user_id"] == user_id
        assert data["emailed"] is False

        async with get_db().get_session() as session:
            token = (
                await session.execute(
                    select(PasswordResetModel.token).where(PasswordResetModel.id == data["id"])
                )
            ).scalar_one()

        resp = await client.post(
            "/api/auth/password-reset",
            params={"token": token},
            json={"password": "pw-new", "confirm_password": "pw-new"},
        )
        assert resp.status_code == 200
        await login("frank", "pw-new")

        resp = await client.post(
            "/api/auth/password-reset",
            params={"token": token},
            json={"password": "pw-x", "confirm": "pw-x"},
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "USED_TOKEN"

    async def test_reset_unknown_token(self, client):
        resp = await client.post(
            "/api/auth/password-reset",
            params={"token": "nope"},
            json={"password": "a", "confirm": "a"},
        )
        assert resp.status_code == 404

    async def test_send_reset_requires_permission(self, client, admin_headers, create_user, login):
        user_id = await create_user("gina", "pw-gina", email="gina@example.com")
        headers = await login("gina", "pw-gina")
        resp = await client.post(
            "/api/auth/send-password-reset", json={"id": user_id}, headers=headers
        )
        assert resp.status_code == 403
