# SQLAlchemy models

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey, Table, CheckConstraint
)
from sqlalchemy.orm import relationship

from app.models.base import Base, utcnow

user_preferred_categories = Table(
    "user_preferred_categories",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    preferred_language = Column(String(5), nullable=False, default="en")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    preferred_categories = relationship(
        "Category",
        secondary=user_preferred_categories,
        lazy="selectin",
        order_by="Category.name",
    )

    __table_args__ = (
        # Location is all or nothing
        CheckConstraint(
            "(latitude IS NULL AND longitude IS NULL) OR "
            "(latitude IS NOT NULL AND longitude IS NOT NULL)",
            name="ck_users_location_pair",
        ),
    )

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __repr__(self):
        return f"<User id={self.id} username={self.username!r}>"
