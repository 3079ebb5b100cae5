import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

TAG_CATEGORIES = ("positive", "neutral", "negative")


def now_utc():
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class Driver(Base):
    __tablename__ = "drivers"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    driver_handle: Mapped[str] = mapped_column(String(29), unique=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String(80), nullable=True)
    city: Mapped[str | None] = mapped_column(String(80), nullable=True)
    state: Mapped[str | None] = mapped_column(String(2), nullable=True)
    car_color: Mapped[str | None] = mapped_column(String(40), nullable=True)
    car_make: Mapped[str | None] = mapped_column(String(40), nullable=True)
    car_model: Mapped[str | None] = mapped_column(String(60), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

    reviews: Mapped[list["Review"]] = relationship(back_populates="driver")


class Review(Base):
    __tablename__ = "reviews"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    driver_id: Mapped[str] = mapped_column(ForeignKey("drivers.id"), index=True)
    stars: Mapped[int] = mapped_column(Integer)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

    driver: Mapped[Driver] = relationship(back_populates="reviews")
    review_tags: Mapped[list["ReviewTag"]] = relationship(back_populates="review")


class Tag(Base):
    __tablename__ = "tags"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    label: Mapped[str] = mapped_column(String(60))
    slug: Mapped[str] = mapped_column(String(60), unique=True)
    category: Mapped[str] = mapped_column(String(20))  # positive / neutral / negative
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class ReviewTag(Base):
    __tablename__ = "review_tags"
    review_id: Mapped[str] = mapped_column(ForeignKey("reviews.id"), primary_key=True)
    tag_id: Mapped[str] = mapped_column(ForeignKey("tags.id"), primary_key=True)

    review: Mapped[Review] = relationship(back_populates="review_tags")
    tag: Mapped[Tag] = relationship()


class ReviewRateLimit(Base):
    """One row per (driver, hashed IP); the unique constraint is the dedup gate."""
    __tablename__ = "review_rate_limits"
    __table_args__ = (UniqueConstraint("driver_id", "ip_hash", name="uq_review_rate_limits_driver_ip"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    driver_id: Mapped[str] = mapped_column(String(36), index=True)
    ip_hash: Mapped[str] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
