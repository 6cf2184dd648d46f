"""
CSV Import Script for Events

Usage:
    python scripts/import_events.py <path-to-csv> [--creator USERNAME]

CSV Format:
    title,description,latitude,longitude,address,start_time,end_time,categories

    categories holds ';'-separated names; missing ones are created.
"""

import argparse
import asyncio
import csv
import sys
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError as SchemaValidationError

from app.core.config import settings
from app.core.database import Database
from app.core.errors import AppError
from app.core.security import build_password_context
from app.schemas.event import EventCreate
from app.services.category_store import CategoryStore
from app.services.event_store import EventStore
from app.services.geo import format_coordinates
from app.services.user_store import UserStore

REQUIRED_HEADERS = {'title', 'latitude', 'longitude', 'start_time'}


def parse_row(row: dict, category_ids: list[int]) -> EventCreate:
    return EventCreate(
        title=row['title'],
        description=(row.get('description') or None),
        latitude=float(row['latitude']),
        longitude=float(row['longitude']),
        address=(row.get('address') or None),
        start_time=row['start_time'].replace('Z', '+00:00'),
        end_time=(row.get('end_time') or '').replace('Z', '+00:00') or None,
        categories=category_ids,
    )


async def import_csv(file_path: str, creator: str | None = None) -> dict:
    """
    Import events from CSV file

    Args:
        file_path: Path to CSV file
        creator: Username or email recorded as the creator of every event
    """
    file_path = Path(file_path)

    if not file_path.exists():
        print(f"Error: File not found: {file_path}")
        sys.exit(1)

    print(f"Starting import from: {file_path}")

    database = Database(settings.database_url, statement_timeout_ms=settings.statement_timeout_ms)
    pwd_context = build_password_context(settings.bcrypt_rounds)

    imported = 0
    failed = 0

    try:
        async with database.sessionmaker() as session:
            events = EventStore(session)
            categories = CategoryStore(session)

            creator_id = None
            if creator:
                user = await UserStore(session, pwd_context).find_by_username_or_email(creator)
                if user is None:
                    print(f"Error: Unknown creator: {creator}")
                    sys.exit(1)
                creator_id = user.id

            with open(file_path, 'r', encoding='utf-8') as f:
                reader = csv.DictReader(f)

                # Validate headers
                if not REQUIRED_HEADERS.issubset(reader.fieldnames or []):
                    print(f"Error: CSV must have headers: {REQUIRED_HEADERS}")
                    print(f"Found headers: {reader.fieldnames}")
                    sys.exit(1)

                for i, row in enumerate(reader, 1):
                    try:
                        names = [n.strip() for n in (row.get('categories') or '').split(';') if n.strip()]
                        category_ids = [(await categories.create(name)).id for name in names]

                        event = await events.create(parse_row(row, category_ids), creator_id=creator_id)
                        imported += 1
                        print(
                            f"Imported row {i}: event {event.id} ({event.title}) "
                            f"at {format_coordinates(event.latitude, event.longitude)}"
                        )

                    except (AppError, SchemaValidationError, ValueError, KeyError) as e:
                        failed += 1
                        print(f"Error on row {i}: {e}")
                        print(f"Row data: {row}")
                        continue
    finally:
        await database.dispose()

    print("\n" + "=" * 50)
    print("Import completed!")
    print(f"Total imported: {imported}")
    print(f"Total failed: {failed}")
    print("=" * 50)

    return {"imported": imported, "failed": failed}


def main():
    parser = argparse.ArgumentParser(description="Import events from a CSV file")
    parser.add_argument("file_path", help="Path to CSV file")
    parser.add_argument("--creator", help="Username or email of the event creator")
    args = parser.parse_args()

    asyncio.run(import_csv(args.file_path, args.creator))


if __name__ == "__main__":
    main()
