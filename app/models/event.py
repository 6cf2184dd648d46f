# SQLAlchemy models

from sqlalchemy import (
    Column, Integer, String, Float, Text, DateTime, ForeignKey, Table,
    CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship

from app.models.base import Base, utcnow

event_categories = Table(
    "event_categories",
    Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    address = Column(String(255), nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    creator_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    categories = relationship(
        "Category",
        secondary=event_categories,
        lazy="selectin",
        order_by="Category.name",
    )

    __table_args__ = (
        CheckConstraint("end_time IS NULL OR end_time > start_time", name="ck_events_end_after_start"),
        # Bounding-box prefilter for location search
        Index("idx_events_lat_lon", "latitude", "longitude"),
    )

    def __repr__(self):
        return f"<Event id={self.id} title={self.title!r}>"


class Review(Base):
    __tablename__ = "event_reviews"

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_reviews_event_user"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_event_reviews_rating"),
    )


class Favorite(Base):
    __tablename__ = "user_favorite_events"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
