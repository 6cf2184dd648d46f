# SQLAlchemy models

from sqlalchemy import Column, Integer, String, DateTime, Index, func

from app.models.base import Base, utcnow


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        # Case-insensitive uniqueness of tag names
        Index("uq_categories_name_lower", func.lower(name), unique=True),
    )

    def __repr__(self):
        return f"<Category id={self.id} name={self.name!r}>"
