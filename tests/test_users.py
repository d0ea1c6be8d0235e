from __future__ import annotations


def _register(client, first_name: str, phone: str) -> str:
    response = client.post(
        "/v1/auth/register",
        json={
            "first_name": first_name,
            "last_name": "Durand",
            "phone": phone,
            "password": "password123",
            "account_type": "individual",
        },
    )
    assert response.status_code == 201
    return response.json()["data"]["tokens"]["access_token"]


def _auth_headers(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


def test_me_returns_private_profile(client):
    token = _register(client, "Claire", "+33 7 00 00 00 01")

    response = client.get("/v1/users/me", headers=_auth_headers(token))

    assert response.status_code == 200
    profile = response.json()["data"]
    assert profile["first_name"] == "Claire"
    assert profile["phone"] == "+33 7 00 00 00 01"
    assert profile["bio"] == ""
    assert profile["last_login_at"] is not None


def test_me_requires_authentication(client):
    response = client.get("/v1/users/me")

    assert response.status_code == 401
    assert "error" in response.json()


def test_deactivated_account_cannot_use_its_token_or_log_in(client):
    token = _register(client, "Claire", "+33 7 00 00 00 02")

    deactivate = client.delete("/v1/users/me", headers=_auth_headers(token))
    assert deactivate.status_code == 200
    assert deactivate.json()["data"] == {"ok": True}

    after = client.get("/v1/users/me", headers=_auth_headers(token))
    assert after.status_code == 401
    assert after.json()["error"]["code"] == "account_disabled"

    login = client.post("/v1/auth/login", json={"phone": "+33 7 00 00 00 02", "password": "password123"})
    assert login.status_code == 401
    assert login.json()["error"]["code"] == "account_disabled"
