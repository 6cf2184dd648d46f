from datetime import timedelta

import pytest

from app.services.event_store import EventStore
from tests.helpers import auth_header, create_event, future


async def make_category(client, token, name):
    response = await client.post("/api/categories", headers=auth_header(token), json={"name": name})
    assert response.status_code == 201
    return response.json()["data"]


@pytest.mark.asyncio
async def test_create_event_flow(client, alice, notifier):
    """Create → fetch → notification hooks fired"""
    music = await make_category(client, alice["token"], "Music")
    start = future(days=5)

    response = await client.post("/api/events", headers=auth_header(alice["token"]), json={
        "title": "  Jazz Night  ",
        "description": "Live quartet",
        "latitude": 37.7749,
        "longitude": -122.4194,
        "address": "1 Market St",
        "startTime": start.isoformat(),
        "endTime": (start + timedelta(hours=3)).isoformat(),
        "categories": [music["id"]],
    })

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Event created successfully"
    event = body["data"]
    assert event["title"] == "Jazz Night"
    assert event["creator_id"] == alice["user"]["id"]
    assert event["location"] == {"latitude": 37.7749, "longitude": -122.4194}
    assert [c["name"] for c in event["categories"]] == ["Music"]

    assert notifier.created == [event["id"]]
    assert notifier.reminders[0][0] == event["id"]

    response = await client.get(f"/api/events/{event['id']}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["event"]["title"] == "Jazz Night"
    assert data["rating"] == {"average_rating": None, "review_count": 0}
    assert data["is_favorited"] is False


@pytest.mark.asyncio
async def test_create_event_requires_auth(client):
    response = await client.post("/api/events", json={
        "title": "Anonymous",
        "latitude": 0,
        "longitude": 0,
        "startTime": future().isoformat(),
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_event_validation(client, alice):
    start = future()
    response = await client.post("/api/events", headers=auth_header(alice["token"]), json={
        "title": "Backwards",
        "latitude": 95,
        "longitude": 0,
        "startTime": start.isoformat(),
        "endTime": (start - timedelta(hours=1)).isoformat(),
    })

    assert response.status_code == 400
    assert response.json()["errors"]


@pytest.mark.asyncio
async def test_create_event_unknown_category(client, alice):
    response = await client.post("/api/events", headers=auth_header(alice["token"]), json={
        "title": "Tagged",
        "latitude": 0,
        "longitude": 0,
        "startTime": future().isoformat(),
        "categories": [4242],
    })
    assert response.status_code == 400

    response = await client.get("/api/events")
    assert response.json()["data"]["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_get_event_shows_favorite_state(client, alice):
    event = await create_event(client, alice["token"])
    headers = auth_header(alice["token"])
    await client.post(f"/api/users/favorites/{event['id']}", headers=headers)

    response = await client.get(f"/api/events/{event['id']}", headers=headers)
    assert response.json()["data"]["is_favorited"] is True

    # Optional auth: a bad token is ignored
    response = await client.get(f"/api/events/{event['id']}", headers=auth_header("garbage"))
    assert response.status_code == 200
    assert response.json()["data"]["is_favorited"] is False


@pytest.mark.asyncio
async def test_get_missing_event_localized(client):
    response = await client.get("/api/events/999?lang=fr")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Ressource introuvable"}


@pytest.mark.asyncio
async def test_update_event_partial(client, alice):
    food = await make_category(client, alice["token"], "Food")
    event = await create_event(client, alice["token"], description="Original")

    response = await client.put(f"/api/events/{event['id']}", headers=auth_header(alice["token"]), json={
        "title": "Renamed",
        "categories": [food["id"]],
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "Renamed"
    assert data["description"] == "Original"
    assert [c["name"] for c in data["categories"]] == ["Food"]


@pytest.mark.asyncio
async def test_update_end_time_before_stored_start(client, alice):
    start = future(days=3)
    event = await create_event(client, alice["token"], start_time=start.isoformat())

    response = await client.put(f"/api/events/{event['id']}", headers=auth_header(alice["token"]), json={
        "endTime": (start - timedelta(hours=2)).isoformat(),
    })

    assert response.status_code == 400
    assert response.json()["message"] == "End must be after start"


@pytest.mark.asyncio
async def test_only_creator_may_modify(client, alice, bob):
    event = await create_event(client, alice["token"])
    headers = auth_header(bob["token"])

    response = await client.put(f"/api/events/{event['id']}", headers=headers, json={"title": "Hijacked"})
    assert response.status_code == 403

    response = await client.delete(f"/api/events/{event['id']}", headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_event(client, alice, bob):
    event = await create_event(client, alice["token"])
    await client.post(f"/api/users/favorites/{event['id']}", headers=auth_header(bob["token"]))
    await client.post(
        f"/api/events/{event['id']}/reviews", headers=auth_header(bob["token"]), json={"rating": 5}
    )

    response = await client.delete(f"/api/events/{event['id']}", headers=auth_header(alice["token"]))
    assert response.status_code == 200
    assert response.json()["message"] == "Event deleted successfully"

    response = await client.get(f"/api/events/{event['id']}")
    assert response.status_code == 404

    response = await client.get("/api/users/favorites", headers=auth_header(bob["token"]))
    assert response.json()["data"]["events"] == []


@pytest.mark.asyncio
async def test_list_events_filters(client, alice, bob):
    music = await make_category(client, alice["token"], "Music")
    art = await make_category(client, alice["token"], "Art")

    await create_event(client, alice["token"], title="Late", start_time=future(days=9).isoformat(),
                       categories=[music["id"]])
    await create_event(client, alice["token"], title="Early", start_time=future(days=2).isoformat(),
                       categories=[art["id"]])
    await create_event(client, bob["token"], title="Untagged", start_time=future(days=4).isoformat())

    response = await client.get("/api/events")
    assert [e["title"] for e in response.json()["data"]["events"]] == ["Early", "Untagged", "Late"]

    response = await client.get("/api/events", params={"categories": f"{music['id']},{art['id']}"})
    assert [e["title"] for e in response.json()["data"]["events"]] == ["Early", "Late"]

    response = await client.get("/api/events", params={"creatorId": bob["user"]["id"]})
    assert [e["title"] for e in response.json()["data"]["events"]] == ["Untagged"]

    response = await client.get("/api/events", params={"limit": 2, "page": 2})
    data = response.json()["data"]
    assert [e["title"] for e in data["events"]] == ["Late"]
    assert data["pagination"] == {"total": 3, "page": 2, "limit": 2, "pages": 2}


@pytest.mark.asyncio
async def test_reviews_flow(client, alice, bob):
    event = await create_event(client, alice["token"])
    url = f"/api/events/{event['id']}/reviews"

    response = await client.post(url, headers=auth_header(bob["token"]), json={"rating": 3, "review": "Okay"})
    assert response.status_code == 201
    assert response.json()["data"]["reviewer_name"] == "bob"

    response = await client.post(url, headers=auth_header(bob["token"]), json={"rating": 5, "review": "Grew on me"})
    assert response.status_code == 201

    await client.post(url, headers=auth_header(alice["token"]), json={"rating": 4})

    response = await client.get(url)
    data = response.json()["data"]
    assert data["pagination"]["total"] == 2
    assert data["rating"] == {"average_rating": 4.5, "review_count": 2}
    assert {r["username"]: r["rating"] for r in data["reviews"]} == {"bob": 5, "alice": 4}


@pytest.mark.asyncio
async def test_review_after_losing_insert_race(client, alice, bob, monkeypatch):
    """The unique-constraint fallback updates the winner's row"""
    event = await create_event(client, alice["token"])
    url = f"/api/events/{event['id']}/reviews"

    response = await client.post(url, headers=auth_header(bob["token"]), json={"rating": 2})
    assert response.status_code == 201

    real_find = EventStore._find_review
    misses = []

    async def find_review(self, event_id, user_id):
        # First lookup behaves as if the other request had not committed yet
        if not misses:
            misses.append(event_id)
            return None
        return await real_find(self, event_id, user_id)

    monkeypatch.setattr(EventStore, "_find_review", find_review)

    response = await client.post(url, headers=auth_header(bob["token"]), json={"rating": 4, "review": "Second look"})
    assert response.status_code == 201
    data = response.json()["data"]
    assert (data["username"], data["reviewer_name"]) == ("bob", "bob")
    assert (data["rating"], data["review"]) == (4, "Second look")

    response = await client.get(url)
    assert response.json()["data"]["rating"] == {"average_rating": 4.0, "review_count": 1}


@pytest.mark.asyncio
async def test_review_rating_out_of_range(client, alice):
    event = await create_event(client, alice["token"])
    response = await client.post(
        f"/api/events/{event['id']}/reviews", headers=auth_header(alice["token"]), json={"rating": 6}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_review_missing_event(client, alice):
    response = await client.post("/api/events/999/reviews", headers=auth_header(alice["token"]), json={"rating": 4})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_category_rename_and_delete(client, alice):
    headers = auth_header(alice["token"])
    music = await make_category(client, alice["token"], "Music")
    await make_category(client, alice["token"], "Art")
    event = await create_event(client, alice["token"], categories=[music["id"]])

    response = await client.put(f"/api/categories/{music['id']}", headers=headers, json={"name": "art"})
    assert response.status_code == 409

    response = await client.put(f"/api/categories/{music['id']}", headers=headers, json={"name": " Live Music "})
    assert response.status_code == 200
    assert response.json()["data"] == {"id": music["id"], "name": "Live Music"}
    assert response.json()["message"] == "Category renamed successfully"

    response = await client.delete(f"/api/categories/{music['id']}", headers=headers)
    assert response.status_code == 200

    response = await client.delete(f"/api/categories/{music['id']}", headers=headers)
    assert response.status_code == 404

    response = await client.get(f"/api/events/{event['id']}")
    assert response.json()["data"]["event"]["categories"] == []

    response = await client.get("/api/categories")
    assert [c["name"] for c in response.json()["data"]] == ["Art"]


@pytest.mark.asyncio
async def test_category_changes_require_auth(client, alice):
    music = await make_category(client, alice["token"], "Music")

    assert (await client.put(f"/api/categories/{music['id']}", json={"name": "Jazz"})).status_code == 401
    assert (await client.delete(f"/api/categories/{music['id']}")).status_code == 401
    assert (await client.put("/api/categories/999", headers=auth_header(alice["token"]), json={"name": "Jazz"})).status_code == 404
