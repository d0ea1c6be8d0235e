from __future__ import annotations


def _register(client, first_name: str, phone: str, account_type: str = "individual") -> str:
    response = client.post(
        "/v1/auth/register",
        json={
            "first_name": first_name,
            "last_name": "Petit",
            "phone": phone,
            "password": "password123",
            "account_type": account_type,
        },
    )
    assert response.status_code == 201
    return response.json()["data"]["tokens"]["access_token"]


def _auth_headers(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


def _listing_payload(**overrides) -> dict[str, object]:
    payload: dict[str, object] = {
        "title": "Kitchen tap repair",
        "description": "Leaks, replacement cartridges, new mixers",
        "category": "Plumbing",
        "price": "35.00",
        "price_type": "hour",
        "location": "Lyon",
    }
    payload.update(overrides)
    return payload


def test_provider_can_publish_and_browse(client):
    provider = _register(client, "Paul", "+33 6 10 00 00 01", "provider")

    created = client.post("/v1/listings", json=_listing_payload(), headers=_auth_headers(provider))
    assert created.status_code == 201
    listing = created.json()["data"]
    assert listing["category"] == "Plumbing"
    assert listing["is_active"] is True

    client.post(
        "/v1/listings",
        json=_listing_payload(title="Hedge trimming", description="Garden work", category="Gardening"),
        headers=_auth_headers(provider),
    )

    plumbing = client.get("/v1/listings", params={"category": "Plumbing"})
    assert [row["id"] for row in plumbing.json()["data"]] == [listing["id"]]

    by_text = client.get("/v1/listings", params={"q": "HEDGE"})
    assert [row["title"] for row in by_text.json()["data"]] == ["Hedge trimming"]

    detail = client.get(f"/v1/listings/{listing['id']}")
    assert detail.status_code == 200
    assert detail.json()["data"]["title"] == "Kitchen tap repair"


def test_individual_cannot_publish(client):
    individual = _register(client, "Ines", "+33 6 10 00 00 02")

    response = client.post("/v1/listings", json=_listing_payload(), headers=_auth_headers(individual))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "provider_required"


def test_unknown_category_is_rejected(client):
    provider = _register(client, "Paul", "+33 6 10 00 00 03", "provider")

    response = client.post(
        "/v1/listings",
        json=_listing_payload(category="Astrology"),
        headers=_auth_headers(provider),
    )

    assert response.status_code == 422
    assert response.json()["error"]["details"][0]["field"] == "category"


def test_only_owner_can_deactivate(client):
    owner = _register(client, "Paul", "+33 6 10 00 00 04", "provider")
    rival = _register(client, "Remi", "+33 6 10 00 00 05", "provider")
    listing_id = client.post("/v1/listings", json=_listing_payload(), headers=_auth_headers(owner)).json()["data"]["id"]

    forbidden = client.delete(f"/v1/listings/{listing_id}", headers=_auth_headers(rival))
    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["code"] == "not_listing_owner"

    removed = client.delete(f"/v1/listings/{listing_id}", headers=_auth_headers(owner))
    assert removed.status_code == 200
    assert removed.json()["data"]["is_active"] is False

    gone = client.get(f"/v1/listings/{listing_id}")
    assert gone.status_code == 404
    assert gone.json()["error"]["code"] == "listing_not_found"
    assert client.get("/v1/listings").json()["data"] == []
