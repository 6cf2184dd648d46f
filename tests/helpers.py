from datetime import datetime, timedelta, timezone

from app.services.notifications import Notifier

# San Francisco
SF_LAT = 37.7749
SF_LON = -122.4194

# Kilometers per degree of latitude on a 6371 km sphere
KM_PER_DEG_LAT = 111.19492664455873


def north_of(lat: float, km: float) -> float:
    return lat + km / KM_PER_DEG_LAT


def future(days: int = 7, hours: int = 0) -> datetime:
    return (datetime.now(timezone.utc) + timedelta(days=days, hours=hours)).replace(microsecond=0)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.created = []
        self.reminders = []
        self.closed = False

    async def on_event_created(self, event_id):
        self.created.append(event_id)

    async def schedule_reminder(self, event_id, when_utc):
        self.reminders.append((event_id, when_utc))

    async def close(self):
        self.closed = True


async def register(client, username="alice", email=None, password="secret123", **extra):
    payload = {
        "username": username,
        "email": email or f"{username}@eventmail.org",
        "password": password,
        **extra,
    }
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def create_event(client, token, **overrides):
    payload = {
        "title": "Jazz Night",
        "latitude": 37.7749,
        "longitude": -122.4194,
        "start_time": future().isoformat(),
        **overrides,
    }
    response = await client.post("/api/events", json=payload, headers=auth_header(token))
    assert response.status_code == 201, response.text
    return response.json()["data"]


# A pair of exactly antipodal points, where haversine rounding tips past 1
ANTIPODAL_A = (69.51232454868148, 86.5812282599507)
ANTIPODAL_B = (-69.51232454868148, -93.4187717400493)
