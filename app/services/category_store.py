from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.core.errors import ConflictError, ValidationError, translate_integrity_error
from app.models.category import Category

logger = structlog.get_logger()


class CategoryStore:
    """Lookup table of named tags"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all(self) -> list[Category]:
        result = await self.db.execute(select(Category).order_by(Category.name, Category.id))
        return list(result.scalars().all())

    async def get_by_id(self, category_id: int) -> Category | None:
        return await self.db.get(Category, category_id)

    async def get_by_name(self, name: str) -> Category | None:
        stmt = select(Category).where(func.lower(Category.name) == name.strip().lower())
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_many(self, category_ids: list[int]) -> list[Category]:
        """Categories for the given ids; raises Validation when any id is unknown"""
        ids = list(dict.fromkeys(category_ids))
        if not ids:
            return []

        result = await self.db.execute(select(Category).where(Category.id.in_(ids)))
        found = {category.id: category for category in result.scalars().all()}

        missing = [category_id for category_id in ids if category_id not in found]
        if missing:
            raise ValidationError(
                "unknownCategories",
                errors=[{"field": "categories", "message": f"Unknown category ids: {missing}"}],
                values=", ".join(str(m) for m in missing)
            )
        return [found[category_id] for category_id in ids]

    async def create(self, name: str) -> Category:
        """Get-or-create keyed by case-insensitive name"""
        name = name.strip()
        existing = await self.get_by_name(name)
        if existing:
            return existing

        category = Category(name=name)
        self.db.add(category)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent create of the same name
            await self.db.rollback()
            existing = await self.get_by_name(name)
            if existing:
                return existing
            raise

        logger.info("category_created", category_id=category.id, name=name)
        return category

    async def update(self, category_id: int, name: str) -> Category | None:
        category = await self.get_by_id(category_id)
        if category is None:
            return None

        name = name.strip()
        clash = await self.get_by_name(name)
        if clash and clash.id != category_id:
            raise ConflictError()

        category.name = name
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise translate_integrity_error(e) from e
        return category

    async def delete(self, category_id: int) -> bool:
        result = await self.db.execute(delete(Category).where(Category.id == category_id))
        await self.db.commit()
        return result.rowcount > 0
