from __future__ import annotations
import uuid
from typing import Sequence
import structlog
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from motoverse.db import utcnow
from motoverse.models.user import User
from motoverse.models.simracing import SimGame, SimTrack, SimCar, SimLapTime
from motoverse.services.laptime import InvalidLapTime, parse_lap_time, lap_time_from_components

log = structlog.get_logger()

LAP_STATUSES = ("pending", "verified", "rejected")
# time_ms is a 32-bit INTEGER column
MAX_LAP_TIME_MS = 2_147_483_647


def as_uuid(ref) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(ref))
    except ValueError:
        return None


async def resolve_game(session: AsyncSession, ref: str) -> SimGame | None:
    """Look a game up by slug or id."""
    conds = [SimGame.slug == ref]
    gid = as_uuid(ref)
    if gid:
        conds.append(SimGame.id == gid)
    return await session.scalar(select(SimGame).where(or_(*conds)).limit(1))


async def resolve_track(session: AsyncSession, game: SimGame, ref: str) -> SimTrack | None:
    conds = [SimTrack.slug == ref]
    tid = as_uuid(ref)
    if tid:
        conds.append(SimTrack.id == tid)
    return await session.scalar(select(SimTrack).where(SimTrack.game_id == game.id, or_(*conds)).limit(1))


async def resolve_car(session: AsyncSession, game: SimGame, ref: str) -> SimCar | None:
    cid = as_uuid(ref)
    if not cid:
        return None
    return await session.scalar(select(SimCar).where(SimCar.game_id == game.id, SimCar.id == cid))


def submitted_time_ms(
    time_ms: int | None = None,
    time: str | None = None,
    minutes: int | None = None,
    seconds: int | None = None,
    milliseconds: int | None = None,
) -> int:
    """Accept a raw millisecond count, a "m:ss.mmm" string, or form components."""
    if time_ms is not None:
        value = time_ms
    elif time:
        value = parse_lap_time(time)
    elif any(v is not None for v in (minutes, seconds, milliseconds)):
        value = lap_time_from_components(minutes, seconds, milliseconds)
    else:
        raise InvalidLapTime("lap time is required")
    if value <= 0:
        raise InvalidLapTime("lap time must be positive")
    if value > MAX_LAP_TIME_MS:
        raise InvalidLapTime("lap time is too long")
    return value


def with_lap_relations(q):
    return q.options(
        selectinload(SimLapTime.game),
        selectinload(SimLapTime.track),
        selectinload(SimLapTime.car),
        selectinload(SimLapTime.user),
    )


async def get_lap_time(session: AsyncSession, lap_id: uuid.UUID) -> SimLapTime | None:
    return await session.scalar(
        with_lap_relations(select(SimLapTime))
        .where(SimLapTime.id == lap_id)
        .execution_options(populate_existing=True)
    )


async def create_lap_time(
    session: AsyncSession,
    user: User,
    game: SimGame,
    track: SimTrack,
    car: SimCar,
    time_ms: int,
    **details,
) -> SimLapTime:
    lt = SimLapTime(
        user_id=user.id,
        game_id=game.id,
        track_id=track.id,
        car_id=car.id,
        time_ms=time_ms,
        status="pending",
        weather=details.get("weather"),
        assists=details.get("assists"),
        proof_url=details.get("proof_url") or None,
        proof_type=details.get("proof_type"),
        setup_notes=details.get("setup_notes") or None,
    )
    session.add(lt)
    await session.commit()
    log.info("lap_time_submitted", lap_time_id=str(lt.id), user_id=str(user.id), track_id=str(track.id), time_ms=time_ms)
    return await get_lap_time(session, lt.id)


async def list_lap_times(
    session: AsyncSession,
    viewer: User | None,
    game: SimGame | None = None,
    track_id: uuid.UUID | None = None,
    car_id: uuid.UUID | None = None,
    user_id: uuid.UUID | None = None,
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[Sequence[SimLapTime], int]:
    q = select(SimLapTime)
    if game is not None:
        q = q.where(SimLapTime.game_id == game.id)
    if track_id:
        q = q.where(SimLapTime.track_id == track_id)
    if car_id:
        q = q.where(SimLapTime.car_id == car_id)
    if user_id:
        q = q.where(SimLapTime.user_id == user_id)
    if status:
        q = q.where(SimLapTime.status == status)
    # Staff see everything; others see verified laps plus their own
    if viewer is None:
        q = q.where(SimLapTime.status == "verified")
    elif not viewer.is_staff:
        q = q.where(or_(SimLapTime.status == "verified", SimLapTime.user_id == viewer.id))

    total = await session.scalar(select(func.count()).select_from(q.subquery()))
    rows = (await session.scalars(
        with_lap_relations(q)
        .order_by(SimLapTime.time_ms.asc(), SimLapTime.created_at.asc(), SimLapTime.id.asc())
        .limit(limit)
        .offset(offset)
    )).all()
    return rows, int(total or 0)


async def review_lap_time(session: AsyncSession, lt: SimLapTime, status: str, reviewer: User) -> SimLapTime:
    if status not in LAP_STATUSES:
        raise ValueError(f"unknown status: {status}")
    lt.status = status
    lt.reviewed_at = utcnow() if status != "pending" else None
    await session.commit()
    log.info("lap_time_reviewed", lap_time_id=str(lt.id), status=status, reviewer_id=str(reviewer.id))
    return await get_lap_time(session, lt.id)


async def delete_lap_time(session: AsyncSession, lt: SimLapTime, actor: User) -> None:
    await session.delete(lt)
    await session.commit()
    log.info("lap_time_deleted", lap_time_id=str(lt.id), actor_id=str(actor.id))
