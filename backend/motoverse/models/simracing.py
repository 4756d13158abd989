from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Uuid, func
from motoverse.db import Base, utcnow
from motoverse.models.user import User

class SimGame(Base):
    __tablename__ = "sim_games"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    short_name: Mapped[str | None] = mapped_column(String(16))

class SimTrack(Base):
    __tablename__ = "sim_tracks"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    game_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("sim_games.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    slug: Mapped[str] = mapped_column(String(160), nullable=False)
    configuration: Mapped[str | None] = mapped_column(String(80))
    country: Mapped[str | None] = mapped_column(String(80))
    length_meters: Mapped[int | None] = mapped_column(Integer)

    __table_args__ = (
        UniqueConstraint("game_id", "slug", name="uq_sim_track_game_slug"),
    )

class SimCar(Base):
    __tablename__ = "sim_cars"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    game_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("sim_games.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    car_class: Mapped[str | None] = mapped_column("class", String(32), index=True)  # GT3|GT4|LMP2|GTP|...

class SimLapTime(Base):
    __tablename__ = "sim_lap_times"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    game_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("sim_games.id", ondelete="CASCADE"), index=True, nullable=False)
    track_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("sim_tracks.id", ondelete="CASCADE"), index=True, nullable=False)
    car_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("sim_cars.id", ondelete="CASCADE"), index=True, nullable=False)

    time_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    weather: Mapped[str | None] = mapped_column(String(16))   # Dry|Wet|Mixed
    assists: Mapped[str | None] = mapped_column(String(16))   # None|TC Only|ABS Only|TC + ABS|Full
    proof_url: Mapped[str | None] = mapped_column(Text())
    proof_type: Mapped[str | None] = mapped_column(String(16))  # video|screenshot
    setup_notes: Mapped[str | None] = mapped_column(Text())

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending|verified|rejected
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    user: Mapped[User] = relationship()
    game: Mapped[SimGame] = relationship()
    track: Mapped[SimTrack] = relationship()
    car: Mapped[SimCar] = relationship()

    __table_args__ = (
        CheckConstraint("time_ms > 0", name="ck_sim_lap_time_positive"),
    )

    @property
    def verified(self) -> bool:
        return self.status == "verified"
