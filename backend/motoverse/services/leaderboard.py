from __future__ import annotations
import uuid
from dataclasses import dataclass
from typing import Any, Iterable
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from motoverse.db import as_utc
from motoverse.models.simracing import SimGame, SimTrack, SimCar, SimLapTime
from motoverse.services.laptime import format_lap_time, format_gap


@dataclass(frozen=True)
class RankedEntry:
    position: int
    entry: Any  # SimLapTime, or anything with id/user_id/time_ms/created_at
    gap_ms: int | None

    @property
    def time_formatted(self) -> str:
        return format_lap_time(self.entry.time_ms)

    @property
    def gap(self) -> str | None:
        return None if self.gap_ms is None else format_gap(self.gap_ms)


@dataclass(frozen=True)
class Leaderboard:
    game: SimGame
    track: SimTrack
    rows: list[RankedEntry]
    track_record: RankedEntry | None
    available_classes: list[str]
    total_entries: int


def _order_key(e) -> tuple:
    # equal times fall back to submission order, then id for full determinism
    return (e.time_ms, as_utc(e.created_at), str(e.id))


def best_per_user(entries: Iterable) -> list:
    best: dict = {}
    for e in entries:
        cur = best.get(e.user_id)
        if cur is None or _order_key(e) < _order_key(cur):
            best[e.user_id] = e
    return list(best.values())


def rank_entries(entries: Iterable, limit: int | None = None, one_per_user: bool = True) -> list[RankedEntry]:
    """Sort ascending by time and annotate position and gap to the leader."""
    pool = best_per_user(entries) if one_per_user else list(entries)
    ordered = sorted(pool, key=_order_key)
    if limit is not None:
        ordered = ordered[:limit]
    if not ordered:
        return []
    leader_ms = ordered[0].time_ms
    return [
        RankedEntry(position=i + 1, entry=e, gap_ms=None if i == 0 else e.time_ms - leader_ms)
        for i, e in enumerate(ordered)
    ]


def _with_relations(q):
    return q.options(selectinload(SimLapTime.user), selectinload(SimLapTime.car))


async def track_record(session: AsyncSession, game: SimGame, track: SimTrack) -> SimLapTime | None:
    """Fastest verified lap on the track, regardless of class or car."""
    return await session.scalar(
        _with_relations(select(SimLapTime))
        .where(SimLapTime.game_id == game.id, SimLapTime.track_id == track.id, SimLapTime.status == "verified")
        .order_by(SimLapTime.time_ms.asc(), SimLapTime.created_at.asc(), SimLapTime.id.asc())
        .limit(1)
    )


async def available_classes(session: AsyncSession, game: SimGame, track: SimTrack) -> list[str]:
    rows = await session.scalars(
        select(SimCar.car_class)
        .join(SimLapTime, SimLapTime.car_id == SimCar.id)
        .where(SimLapTime.game_id == game.id, SimLapTime.track_id == track.id)
        .where(SimLapTime.status == "verified")
        .where(SimCar.car_class.is_not(None))
        .distinct()
    )
    return sorted(c for c in rows.all() if c)


async def build_leaderboard(
    session: AsyncSession,
    game: SimGame,
    track: SimTrack,
    car_class: str | None = None,
    car_id: uuid.UUID | None = None,
    limit: int = 20,
) -> Leaderboard:
    q = (
        _with_relations(select(SimLapTime))
        .where(SimLapTime.game_id == game.id, SimLapTime.track_id == track.id)
        .where(SimLapTime.status == "verified")
    )
    if car_id:
        q = q.where(SimLapTime.car_id == car_id)
    if car_class:
        q = q.join(SimCar, SimCar.id == SimLapTime.car_id).where(SimCar.car_class == car_class)
    entries = (await session.scalars(q.order_by(SimLapTime.time_ms.asc()))).all()

    per_user = best_per_user(entries)
    rows = rank_entries(per_user, limit=limit, one_per_user=False)

    record = await track_record(session, game, track)
    return Leaderboard(
        game=game,
        track=track,
        rows=rows,
        track_record=RankedEntry(position=1, entry=record, gap_ms=None) if record else None,
        available_classes=await available_classes(session, game, track),
        total_entries=len(per_user),
    )
