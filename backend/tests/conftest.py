from __future__ import annotations
import uuid
from datetime import datetime, timedelta, timezone
import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from motoverse.config import Settings
from motoverse.main import create_app
from motoverse.security import hash_password, make_access_token
from motoverse.models.user import User, Follow
from motoverse.models.catalog import CarMake, CarModel, CarGeneration
from motoverse.models.car import Car, CarFollow
from motoverse.models.simracing import SimGame, SimTrack, SimCar, SimLapTime

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
PASSWORD_HASH = hash_password("supersecret")

def at(minutes: int) -> datetime:
    """Fixed test clock: T0 plus `minutes`."""
    return T0 + timedelta(minutes=minutes)

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        jwt_secret="test-secret",
    )

@pytest_asyncio.fixture
async def app(settings):
    # ASGITransport does not run the lifespan; manage the schema here
    app = create_app(settings)
    await app.state.db.create_all()
    yield app
    await app.state.db.dispose()

@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

@pytest_asyncio.fixture
async def session(app):
    async with app.state.db.session() as s:
        yield s

class Seed:
    """Writes fixtures straight through the ORM."""

    def __init__(self, session, settings: Settings):
        self.session = session
        self.settings = settings

    async def add(self, *objs):
        self.session.add_all(objs)
        await self.session.commit()
        return objs[0] if len(objs) == 1 else objs

    async def user(self, username: str | None = None, role: str = "user") -> User:
        username = username or f"user_{uuid.uuid4().hex[:8]}"
        return await self.add(User(
            email=f"{username}@example.com",
            username=username,
            name=username.title(),
            password_hash=PASSWORD_HASH,
            role=role,
        ))

    def auth(self, user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_access_token(str(user.id), self.settings)}"}

    async def generation(self, make: str = "BMW", model: str = "3 Series", name: str = "E46") -> CarGeneration:
        slug = make.lower().replace(" ", "-")
        mk = await self.session.scalar(select(CarMake).where(CarMake.slug == slug))
        if mk is None:
            mk = await self.add(CarMake(name=make, slug=slug))
        m = await self.add(CarModel(make_id=mk.id, name=model, slug=f"{model.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}"))
        return await self.add(CarGeneration(model_id=m.id, name=name, display_name=f"{make} {model} {name}"))

    async def car(self, owner: User, generation: CarGeneration | None = None, year: int | None = 2003,
                  nickname: str | None = None, is_public: bool = True, created_at: datetime | None = None) -> Car:
        return await self.add(Car(
            owner_id=owner.id,
            generation_id=generation.id if generation else None,
            year=year,
            nickname=nickname,
            is_public=is_public,
            created_at=created_at or T0,
        ))

    async def follow(self, follower: User, target: User) -> Follow:
        return await self.add(Follow(follower_id=follower.id, following_id=target.id))

    async def follow_car(self, follower: User, car: Car) -> CarFollow:
        return await self.add(CarFollow(follower_id=follower.id, car_id=car.id))

    async def sim_world(self, car_classes: tuple[str, ...] = ("GT3",)):
        game = await self.add(SimGame(name="Assetto Corsa Competizione", slug="acc", short_name="ACC"))
        track = await self.add(SimTrack(game_id=game.id, name="Monza", slug="monza", country="Italy", length_meters=5793))
        cars = [
            await self.add(SimCar(game_id=game.id, name=f"{cls} Car", car_class=cls))
            for cls in car_classes
        ]
        return game, track, cars

    async def lap(self, user: User, game: SimGame, track: SimTrack, car: SimCar, time_ms: int,
                  status: str = "verified", created_at: datetime | None = None) -> SimLapTime:
        return await self.add(SimLapTime(
            user_id=user.id, game_id=game.id, track_id=track.id, car_id=car.id,
            time_ms=time_ms, status=status, created_at=created_at or T0,
        ))

@pytest_asyncio.fixture
async def seed(session, settings) -> Seed:
    return Seed(session, settings)
