from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.database import get_db
from app.core.errors import UnauthorizedError
from app.core.i18n import Localizer, resolve_language
from app.core.security import decode_access_token
from app.models.user import User
from app.services.category_store import CategoryStore
from app.services.event_store import EventStore
from app.services.notifications import Notifier
from app.services.search import SearchService
from app.services.user_store import UserStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_localizer(request: Request) -> Localizer:
    settings = request.app.state.settings
    language = resolve_language(
        request.query_params.get("lang"),
        request.headers.get("accept-language"),
        settings.supported_languages,
        settings.default_language
    )
    return Localizer(language, settings.default_language)


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_pwd_context(request: Request) -> CryptContext:
    return request.app.state.pwd_context


def get_event_store(db: AsyncSession = Depends(get_db)) -> EventStore:
    return EventStore(db)


def get_category_store(db: AsyncSession = Depends(get_db)) -> CategoryStore:
    return CategoryStore(db)


def get_user_store(
        db: AsyncSession = Depends(get_db),
        pwd_context: CryptContext = Depends(get_pwd_context)
) -> UserStore:
    return UserStore(db, pwd_context)


def get_search_service(
        event_store: EventStore = Depends(get_event_store),
        settings: Settings = Depends(get_settings)
) -> SearchService:
    return SearchService(event_store, settings)


async def get_optional_user(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
        users: UserStore = Depends(get_user_store),
        settings: Settings = Depends(get_settings)
) -> User | None:
    """The caller when a valid token is present, otherwise None"""
    if credentials is None:
        return None
    user_id = decode_access_token(credentials.credentials, settings)
    if user_id is None:
        return None
    return await users.get_by_id(user_id)


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise UnauthorizedError()
    return user
