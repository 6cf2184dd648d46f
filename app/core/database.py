# DB connections

import math
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.models.base import Base
from app.models import category, event as event_models, user  # noqa: F401  (registers tables)


# Math functions used by the distance expression, missing from most SQLite builds
SQLITE_MATH_FUNCTIONS = {
    "radians": (1, math.radians),
    "sin": (1, math.sin),
    "cos": (1, math.cos),
    "power": (2, math.pow),
    "sqrt": (1, math.sqrt),
    "asin": (1, math.asin),
}


def _configure_sqlite_connection(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

    for name, (num_args, function) in SQLITE_MATH_FUNCTIONS.items():
        dbapi_connection.create_function(name, num_args, function)


class Database:
    """Async engine and session factory, built once per process"""

    def __init__(self, url: str, echo: bool = False, statement_timeout_ms: int | None = None):
        self.url = url
        self.is_sqlite = url.startswith("sqlite")

        if self.is_sqlite:
            # One shared connection so in-memory databases survive across sessions
            self.engine = create_async_engine(
                url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False}
            )
            event.listen(self.engine.sync_engine, "connect", _configure_sqlite_connection)
        else:
            connect_args = {}
            if statement_timeout_ms:
                connect_args["options"] = f"-c statement_timeout={statement_timeout_ms}"
            self.engine = create_async_engine(
                url,
                echo=echo,
                pool_size=20,
                max_overflow=0,
                pool_pre_ping=True,
                connect_args=connect_args
            )

        self.sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    async def create_all(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency for getting async database session"""
    async with request.app.state.database.sessionmaker() as session:
        try:
            yield session
        finally:
            await session.close()


def dialect_insert(session: AsyncSession, table):
    """INSERT construct supporting ON CONFLICT for the session's backend"""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(table)
    return sqlite_insert(table)
