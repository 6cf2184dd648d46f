from typing import Any

from passlib.context import CryptContext
from sqlalchemy import select, delete, update, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.core.errors import ConflictError, ValidationError, field_error, translate_integrity_error
from app.models.base import utcnow
from app.models.category import Category
from app.models.event import Event, Review, Favorite
from app.models.user import User, user_preferred_categories
from app.schemas.user import UserRegister
from app.services.category_store import CategoryStore

logger = structlog.get_logger()


class UserStore:
    """Accounts, credentials and preferences"""

    def __init__(self, db: AsyncSession, pwd_context: CryptContext):
        self.db = db
        self.pwd_context = pwd_context
        self.categories = CategoryStore(db)

    async def create(self, registration: UserRegister) -> User:
        """Register a user; username and email must both be free"""
        await self._ensure_unique(registration.username, registration.email)
        categories = await self.categories.get_many(registration.categories or [])

        try:
            user = User(
                username=registration.username,
                email=registration.email.lower(),
                password=self.pwd_context.hash(registration.password),
                full_name=registration.full_name,
                latitude=registration.latitude,
                longitude=registration.longitude,
                preferred_language=registration.preferred_language,
            )
            user.preferred_categories = categories
            self.db.add(user)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise translate_integrity_error(e) from e

        logger.info("user_registered", user_id=user.id, username=user.username)
        return await self.get_by_id(user.id)

    async def get_by_id(self, user_id: int) -> User | None:
        stmt = (
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def find_by_username_or_email(self, value: str) -> User | None:
        value = value.strip()
        stmt = select(User).where(
            or_(User.username == value, func.lower(User.email) == value.lower())
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def _ensure_unique(self, username: str | None, email: str | None, exclude_id: int | None = None):
        if username is not None:
            stmt = select(User.id).where(User.username == username)
            if exclude_id is not None:
                stmt = stmt.where(User.id != exclude_id)
            if await self.db.scalar(stmt) is not None:
                raise ConflictError(
                    "usernameExists",
                    errors=[field_error("username", "Username is already taken")]
                )

        if email is not None:
            stmt = select(User.id).where(func.lower(User.email) == email.lower())
            if exclude_id is not None:
                stmt = stmt.where(User.id != exclude_id)
            if await self.db.scalar(stmt) is not None:
                raise ConflictError(
                    "emailExists",
                    errors=[field_error("email", "Email is already registered")]
                )

    async def update(self, user_id: int, changes: dict[str, Any]) -> User | None:
        """Partial profile update; a null latitude/longitude pair clears the location"""
        user = await self.get_by_id(user_id)
        if user is None:
            return None

        changes = dict(changes)
        if "email" in changes:
            changes["email"] = changes["email"].lower()

        await self._ensure_unique(changes.get("username"), changes.get("email"), exclude_id=user_id)

        try:
            for field, value in changes.items():
                setattr(user, field, value)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise translate_integrity_error(e) from e

        logger.info("user_updated", user_id=user_id, fields=sorted(changes))
        return await self.get_by_id(user_id)

    async def set_preferred_categories(self, user_id: int, category_ids: list[int]) -> list[Category]:
        """Replace the whole preference set"""
        user = await self.get_by_id(user_id)
        if user is None:
            return []

        categories = await self.categories.get_many(category_ids)

        try:
            user.preferred_categories = categories
            user.updated_at = utcnow()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise translate_integrity_error(e) from e

        logger.info("preferred_categories_updated", user_id=user_id, categories=list(category_ids))
        return await self.get_preferred_categories(user_id)

    async def get_preferred_categories(self, user_id: int) -> list[Category]:
        stmt = (
            select(Category)
            .join(user_preferred_categories, user_preferred_categories.c.category_id == Category.id)
            .where(user_preferred_categories.c.user_id == user_id)
            .order_by(Category.name, Category.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    def verify_password(self, user: User, plain_password: str) -> bool:
        return self.pwd_context.verify(plain_password, user.password)

    async def authenticate(self, username_or_email: str, password: str) -> User | None:
        user = await self.find_by_username_or_email(username_or_email)
        if user is None:
            # Same hashing cost whether or not the account exists
            self.pwd_context.dummy_verify()
            return None
        if not self.verify_password(user, password):
            return None
        return user

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not self.verify_password(user, current_password):
            raise ValidationError(
                "incorrectPassword",
                errors=[field_error("current_password", "Current password is incorrect")]
            )

        user.password = self.pwd_context.hash(new_password)
        await self.db.commit()
        logger.info("password_changed", user_id=user.id)

    async def delete(self, user_id: int) -> bool:
        """Remove the account; events it created stay, without a creator"""
        exists = await self.db.scalar(select(User.id).where(User.id == user_id))
        if exists is None:
            return False

        try:
            await self.db.execute(delete(Favorite).where(Favorite.user_id == user_id))
            await self.db.execute(delete(Review).where(Review.user_id == user_id))
            await self.db.execute(
                delete(user_preferred_categories).where(user_preferred_categories.c.user_id == user_id)
            )
            await self.db.execute(
                update(Event).where(Event.creator_id == user_id).values(creator_id=None)
            )
            result = await self.db.execute(delete(User).where(User.id == user_id))
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise translate_integrity_error(e) from e
        except Exception:
            await self.db.rollback()
            raise

        logger.info("user_deleted", user_id=user_id)
        return result.rowcount > 0
