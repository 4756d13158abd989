from __future__ import annotations
from uuid import UUID
from motoverse.schemas.base import CamelModel

class UserRef(CamelModel):
    id: UUID
    username: str

class UserSummary(UserRef):
    name: str | None = None
    avatar: str | None = None

class CarSummary(CamelModel):
    id: UUID
    nickname: str | None = None
    year: int | None = None
    image: str | None = None
    thumbnail: str | None = None
    make: str | None = None
    model: str | None = None
    generation: str | None = None
    owner: UserRef | None = None

class FollowResult(CamelModel):
    success: bool = True
    is_following: bool
    follower_count: int
