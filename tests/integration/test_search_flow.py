import pytest
import pytest_asyncio

from tests.helpers import ANTIPODAL_A, ANTIPODAL_B, SF_LAT, SF_LON, auth_header, create_event, north_of, register


@pytest_asyncio.fixture
async def sf_events(client, alice):
    near = await create_event(client, alice["token"], title="Near", latitude=north_of(SF_LAT, 1.2))
    mid = await create_event(client, alice["token"], title="Mid", latitude=north_of(SF_LAT, 2.5))
    far = await create_event(client, alice["token"], title="Far", latitude=north_of(SF_LAT, 12))
    return near, mid, far


@pytest.mark.asyncio
async def test_location_search_san_francisco(client, sf_events):
    response = await client.get("/api/search/location", params={
        "latitude": SF_LAT,
        "longitude": SF_LON,
        "radius": 5,
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert [e["title"] for e in data["events"]] == ["Near", "Mid"]
    assert [e["distance_km"] for e in data["events"]] == ["1.20", "2.50"]
    assert data["pagination"] == {"total": 2, "page": 1, "limit": 10, "pages": 1}
    assert data["search_parameters"]["origin"] == "query"
    assert data["search_parameters"]["radius"] == 5


@pytest.mark.asyncio
async def test_location_search_whole_globe_radius(client, alice):
    lat, lon = ANTIPODAL_A
    await create_event(client, alice["token"], title="Antipode", latitude=ANTIPODAL_B[0], longitude=ANTIPODAL_B[1])
    await create_event(client, alice["token"], title="Over the pole", latitude=-60.0, longitude=ANTIPODAL_B[1])
    await create_event(client, alice["token"], title="Close", latitude=60.0, longitude=lon)

    response = await client.get("/api/search/location", params={"latitude": lat, "longitude": lon, "radius": 20000})

    assert response.status_code == 200
    data = response.json()["data"]
    # Half the circumference is about 20015 km
    assert [e["title"] for e in data["events"]] == ["Close", "Over the pole"]
    assert data["pagination"]["total"] == 2


@pytest.mark.asyncio
async def test_location_search_default_radius(client, sf_events):
    response = await client.get("/api/search/location", params={"latitude": SF_LAT, "longitude": SF_LON})
    data = response.json()["data"]
    assert data["search_parameters"]["radius"] == 10
    assert [e["title"] for e in data["events"]] == ["Near", "Mid"]


@pytest.mark.asyncio
async def test_location_search_without_coordinates_uses_default(client, sf_events):
    response = await client.get("/api/search/location", params={"radius": 5})
    data = response.json()["data"]
    assert data["search_parameters"]["origin"] == "default"
    assert data["search_parameters"]["latitude"] == SF_LAT
    assert data["pagination"]["total"] == 2


@pytest.mark.asyncio
async def test_location_search_uses_caller_location(client, sf_events):
    far_lat = north_of(SF_LAT, 12)
    user = await register(client, "henry", latitude=far_lat, longitude=SF_LON)

    response = await client.get(
        "/api/search/location", params={"radius": 1}, headers=auth_header(user["token"])
    )
    data = response.json()["data"]
    assert data["search_parameters"]["origin"] == "user"
    assert [e["title"] for e in data["events"]] == ["Far"]


@pytest.mark.asyncio
async def test_location_search_category_filter(client, alice, sf_events):
    headers = auth_header(alice["token"])
    music = (await client.post("/api/categories", headers=headers, json={"name": "Music"})).json()["data"]
    await client.put(f"/api/events/{sf_events[1]['id']}", headers=headers, json={"categories": [music["id"]]})

    response = await client.get("/api/search/location", params={
        "latitude": SF_LAT,
        "longitude": SF_LON,
        "radius": 5,
        "categories": str(music["id"]),
    })
    data = response.json()["data"]
    assert [e["title"] for e in data["events"]] == ["Mid"]
    assert data["search_parameters"]["category_ids"] == [music["id"]]


@pytest.mark.asyncio
async def test_location_search_invalid_categories(client, sf_events):
    response = await client.get("/api/search/location", params={"categories": "1,music"})
    assert response.status_code == 400
    assert response.json()["message"] == "Categories must be valid integers: music"


@pytest.mark.asyncio
async def test_location_search_end_before_start(client):
    response = await client.get("/api/search/location", params={
        "startDate": "2030-05-02T00:00:00Z",
        "endDate": "2030-05-01T00:00:00Z",
    })
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_location_search_non_numeric_latitude(client):
    response = await client.get("/api/search/location", params={"latitude": "north", "longitude": 0})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_location_search_pagination(client, sf_events):
    response = await client.get("/api/search/location", params={
        "latitude": SF_LAT,
        "longitude": SF_LON,
        "radius": 20,
        "limit": 2,
        "page": 2,
    })
    data = response.json()["data"]
    assert [e["title"] for e in data["events"]] == ["Far"]
    assert data["pagination"] == {"total": 3, "page": 2, "limit": 2, "pages": 2}


@pytest.mark.asyncio
async def test_nearby(client, sf_events):
    response = await client.get("/api/search/nearby", params={
        "latitude": SF_LAT,
        "longitude": SF_LON,
        "radius": 3,
        "limit": 1,
    })
    data = response.json()["data"]
    assert [e["title"] for e in data["events"]] == ["Near"]
    assert data["pagination"]["total"] == 2


@pytest.mark.asyncio
async def test_search_categories(client, alice):
    headers = auth_header(alice["token"])
    for name in ("Sports", "Art", "art "):
        await client.post("/api/categories", headers=headers, json={"name": name})

    response = await client.get("/api/search/categories")
    assert [c["name"] for c in response.json()["data"]] == ["Art", "Sports"]

    response = await client.get("/api/categories")
    assert len(response.json()["data"]) == 2
