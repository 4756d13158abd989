from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Uuid, func
from motoverse.db import Base, utcnow
from motoverse.models.user import User
from motoverse.models.catalog import CarGeneration

class Car(Base):
    """A user's garage entry, optionally linked to a catalog generation."""
    __tablename__ = "cars"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    generation_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("car_generations.id", ondelete="SET NULL"), index=True)
    year: Mapped[int | None] = mapped_column(Integer)
    nickname: Mapped[str | None] = mapped_column(String(120))
    image: Mapped[str | None] = mapped_column(Text())
    thumbnail: Mapped[str | None] = mapped_column(Text())
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True, nullable=False)

    owner: Mapped[User] = relationship()
    generation: Mapped[CarGeneration | None] = relationship()

class CarFollow(Base):
    __tablename__ = "car_follows"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    follower_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    car_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("cars.id", ondelete="CASCADE"), index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("follower_id", "car_id", name="uq_car_follow_pair"),
    )

class CarRating(Base):
    __tablename__ = "car_ratings"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    car_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("cars.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True, nullable=False)

    user: Mapped[User] = relationship()
    car: Mapped[Car] = relationship()

    __table_args__ = (
        UniqueConstraint("car_id", "user_id", name="uq_car_rating_once"),
        CheckConstraint("rating BETWEEN 1 AND 10", name="ck_car_rating_range"),
    )

class CarComment(Base):
    __tablename__ = "car_comments"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    car_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("cars.id", ondelete="CASCADE"), index=True, nullable=False)
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    content: Mapped[str] = mapped_column(Text(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True, nullable=False)

    author: Mapped[User] = relationship()
    car: Mapped[Car] = relationship()

class CarPhoto(Base):
    __tablename__ = "car_photos"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    car_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("cars.id", ondelete="CASCADE"), index=True, nullable=False)
    uploader_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    url: Mapped[str] = mapped_column(Text(), nullable=False)
    thumbnail: Mapped[str | None] = mapped_column(Text())
    caption: Mapped[str | None] = mapped_column(Text())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True, nullable=False)

    uploader: Mapped[User] = relationship()
    car: Mapped[Car] = relationship()

class PhotoRating(Base):
    __tablename__ = "photo_ratings"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    photo_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("car_photos.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("photo_id", "user_id", name="uq_photo_rating_once"),
        CheckConstraint("rating BETWEEN 1 AND 10", name="ck_photo_rating_range"),
    )

class PhotoComment(Base):
    __tablename__ = "photo_comments"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    photo_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("car_photos.id", ondelete="CASCADE"), index=True, nullable=False)
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    content: Mapped[str] = mapped_column(Text(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
