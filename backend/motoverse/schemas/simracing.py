from __future__ import annotations
from datetime import datetime
from typing import Literal
from uuid import UUID
from pydantic import Field
from motoverse.schemas.base import CamelModel
from motoverse.schemas.common import UserSummary

Weather = Literal["Dry", "Wet", "Mixed"]
Assists = Literal["None", "TC Only", "ABS Only", "TC + ABS", "Full"]
LapStatus = Literal["pending", "verified", "rejected"]

class GamePublic(CamelModel):
    id: UUID
    name: str
    slug: str
    short_name: str | None = None

class GameWithCounts(GamePublic):
    track_count: int = 0
    car_count: int = 0
    lap_time_count: int = 0

class TrackPublic(CamelModel):
    id: UUID
    name: str
    slug: str
    configuration: str | None = None
    country: str | None = None
    length_meters: int | None = None

class TrackWithCount(TrackPublic):
    lap_time_count: int = 0

class SimCarPublic(CamelModel):
    id: UUID
    name: str
    car_class: str | None = Field(default=None, alias="class")

class LapTimeCreate(CamelModel):
    game_id: str = ""
    track_id: str = ""
    car_id: str = ""
    # One of: time_ms, time ("1:35.320"), or minutes/seconds/milliseconds
    time_ms: int | None = None
    time: str | None = None
    minutes: int | None = None
    seconds: int | None = None
    milliseconds: int | None = None
    weather: Weather | None = None
    assists: Assists | None = None
    proof_url: str | None = Field(default=None, max_length=2000)
    proof_type: Literal["video", "screenshot"] | None = None
    setup_notes: str | None = Field(default=None, max_length=4000)

class LapTimePublic(CamelModel):
    id: UUID
    time_ms: int
    time_formatted: str
    status: LapStatus
    verified: bool
    weather: str | None = None
    assists: str | None = None
    proof_url: str | None = None
    proof_type: str | None = None
    setup_notes: str | None = None
    created_at: datetime
    reviewed_at: datetime | None = None
    game: GamePublic
    track: TrackPublic
    car: SimCarPublic
    user: UserSummary

class LapTimeCreated(CamelModel):
    lap_time: LapTimePublic

class LapTimeList(CamelModel):
    lap_times: list[LapTimePublic]
    total: int
    has_more: bool

class LapTimeReview(CamelModel):
    status: LapStatus

class LeaderboardRow(CamelModel):
    position: int
    lap_time_id: UUID
    time_ms: int
    time_formatted: str
    gap: str | None = None  # null for the leader
    gap_ms: int | None = None
    verified: bool
    weather: str | None = None
    assists: str | None = None
    created_at: datetime
    user: UserSummary
    car: SimCarPublic

class LeaderboardOut(CamelModel):
    game: GamePublic
    track: TrackPublic
    leaderboard: list[LeaderboardRow]
    track_record: LeaderboardRow | None = None
    available_classes: list[str]
    total_entries: int
