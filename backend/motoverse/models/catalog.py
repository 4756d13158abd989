from __future__ import annotations
import uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, ForeignKey, UniqueConstraint, Uuid
from motoverse.db import Base

# Reference catalog: make -> model -> generation -> engine config

class CarMake(Base):
    __tablename__ = "car_makes"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    slug: Mapped[str] = mapped_column(String(80), unique=True, index=True, nullable=False)

class CarModel(Base):
    __tablename__ = "car_models"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    make_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("car_makes.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    slug: Mapped[str] = mapped_column(String(160), nullable=False)

    make: Mapped[CarMake] = relationship()
    generations: Mapped[list["CarGeneration"]] = relationship(back_populates="model", passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("make_id", "slug", name="uq_car_model_make_slug"),
    )

class CarGeneration(Base):
    __tablename__ = "car_generations"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    model_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("car_models.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255))
    start_year: Mapped[int | None] = mapped_column(Integer)
    end_year: Mapped[int | None] = mapped_column(Integer)

    model: Mapped[CarModel] = relationship(back_populates="generations")

    __table_args__ = (
        UniqueConstraint("model_id", "name", name="uq_car_generation_model_name"),
    )

class EngineConfig(Base):
    __tablename__ = "engine_configs"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    generation_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("car_generations.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    displacement_cc: Mapped[int | None] = mapped_column(Integer)
    fuel_type: Mapped[str | None] = mapped_column(String(32))  # petrol|diesel|hybrid|electric
    horsepower: Mapped[int | None] = mapped_column(Integer)
    torque_nm: Mapped[int | None] = mapped_column(Integer)
