import pytest

from tests.helpers import auth_header, create_event, register


@pytest.mark.asyncio
async def test_get_profile(client, alice):
    response = await client.get("/api/users/profile", headers=auth_header(alice["token"]))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["username"] == "alice"
    assert data["location"] is None
    assert data["preferred_categories"] == []


@pytest.mark.asyncio
async def test_update_profile_partial(client, alice):
    headers = auth_header(alice["token"])

    response = await client.put("/api/users/profile", headers=headers, json={
        "fullName": "Alice A",
        "latitude": 48.8566,
        "longitude": 2.3522,
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["full_name"] == "Alice A"
    assert data["location"] == {"latitude": 48.8566, "longitude": 2.3522}
    assert data["email"] == "alice@eventmail.org"

    response = await client.put("/api/users/profile", headers=headers, json={"latitude": None, "longitude": None})
    assert response.status_code == 200
    assert response.json()["data"]["location"] is None


@pytest.mark.asyncio
async def test_update_profile_username_taken(client, alice, bob):
    response = await client.put(
        "/api/users/profile", headers=auth_header(alice["token"]), json={"username": "bob"}
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_update_profile_keeps_own_username(client, alice):
    response = await client.put(
        "/api/users/profile", headers=auth_header(alice["token"]), json={"username": "alice"}
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_preferred_categories_replaced(client, alice):
    headers = auth_header(alice["token"])
    ids = []
    for name in ("Music", "Art", "Food"):
        response = await client.post("/api/categories", headers=headers, json={"name": name})
        ids.append(response.json()["data"]["id"])

    response = await client.put("/api/users/categories", headers=headers, json={"categories": ids[:2]})
    assert response.status_code == 200
    assert [c["name"] for c in response.json()["data"]] == ["Art", "Music"]

    response = await client.put("/api/users/categories", headers=headers, json={"categories": [ids[2]]})
    assert [c["name"] for c in response.json()["data"]] == ["Food"]

    profile = (await client.get("/api/users/profile", headers=headers)).json()["data"]
    assert [c["name"] for c in profile["preferred_categories"]] == ["Food"]


@pytest.mark.asyncio
async def test_preferred_categories_unknown_id(client, alice):
    response = await client.put(
        "/api/users/categories", headers=auth_header(alice["token"]), json={"categories": [12345]}
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Unknown category ids: 12345"


@pytest.mark.asyncio
async def test_favorites_flow(client, alice, bob):
    event = await create_event(client, bob["token"], title="Food Fair")
    headers = auth_header(alice["token"])

    response = await client.post(f"/api/users/favorites/{event['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["created"] is True

    # Favoriting again is a no-op
    response = await client.post(f"/api/users/favorites/{event['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["created"] is False

    response = await client.get("/api/users/favorites", headers=headers)
    data = response.json()["data"]
    assert [e["title"] for e in data["events"]] == ["Food Fair"]
    assert data["events"][0]["favorited_at"]
    assert data["pagination"] == {"total": 1, "page": 1, "limit": 10, "pages": 1}

    response = await client.delete(f"/api/users/favorites/{event['id']}", headers=headers)
    assert response.status_code == 200

    response = await client.delete(f"/api/users/favorites/{event['id']}", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_favorite_missing_event(client, alice):
    response = await client.post("/api/users/favorites/999", headers=auth_header(alice["token"]))
    assert response.status_code == 404
    assert response.json()["message"] == "Resource not found"


@pytest.mark.asyncio
async def test_registration_with_categories(client, alice):
    headers = auth_header(alice["token"])
    music = (await client.post("/api/categories", headers=headers, json={"name": "Music"})).json()["data"]

    data = await register(client, "gina", categories=[music["id"]])
    assert [c["name"] for c in data["user"]["preferred_categories"]] == ["Music"]


@pytest.mark.asyncio
async def test_delete_account(client, alice):
    headers = auth_header(alice["token"])
    event = await create_event(client, alice["token"], title="Orphaned")
    await client.post(f"/api/users/favorites/{event['id']}", headers=headers)

    response = await client.delete("/api/users/profile", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Account deleted successfully"}

    response = await client.get("/api/users/profile", headers=headers)
    assert response.status_code == 401

    response = await client.get(f"/api/events/{event['id']}")
    assert response.status_code == 200
    assert response.json()["data"]["event"]["creator_id"] is None

    response = await client.post("/api/auth/login", json={"usernameOrEmail": "alice", "password": "secret123"})
    assert response.status_code == 401
