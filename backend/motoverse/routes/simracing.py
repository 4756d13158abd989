from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from motoverse.auth_deps import get_current_user, get_optional_user, require_staff
from motoverse.db import get_session
from motoverse.models.user import User
from motoverse.models.simracing import SimGame, SimTrack, SimCar, SimLapTime
from motoverse.schemas.common import UserSummary
from motoverse.schemas.simracing import (
    GamePublic, GameWithCounts, TrackPublic, TrackWithCount, SimCarPublic,
    LapTimeCreate, LapTimePublic, LapTimeCreated, LapTimeList, LapTimeReview, LapStatus,
    LeaderboardRow, LeaderboardOut,
)
from motoverse.services.laptime import InvalidLapTime, format_lap_time
from motoverse.services.leaderboard import RankedEntry, build_leaderboard
from motoverse.services.simracing import (
    as_uuid, resolve_game, resolve_track, resolve_car, submitted_time_ms,
    create_lap_time, get_lap_time, list_lap_times, review_lap_time, delete_lap_time,
)

router = APIRouter(prefix="/api/simracing", tags=["simracing"])

def _lap_public(lt: SimLapTime) -> LapTimePublic:
    return LapTimePublic(
        id=lt.id,
        time_ms=lt.time_ms,
        time_formatted=format_lap_time(lt.time_ms),
        status=lt.status,
        verified=lt.verified,
        weather=lt.weather,
        assists=lt.assists,
        proof_url=lt.proof_url,
        proof_type=lt.proof_type,
        setup_notes=lt.setup_notes,
        created_at=lt.created_at,
        reviewed_at=lt.reviewed_at,
        game=GamePublic.model_validate(lt.game),
        track=TrackPublic.model_validate(lt.track),
        car=SimCarPublic.model_validate(lt.car),
        user=UserSummary.model_validate(lt.user),
    )

def _row(r: RankedEntry) -> LeaderboardRow:
    e = r.entry
    return LeaderboardRow(
        position=r.position,
        lap_time_id=e.id,
        time_ms=e.time_ms,
        time_formatted=r.time_formatted,
        gap=r.gap,
        gap_ms=r.gap_ms,
        verified=e.verified,
        weather=e.weather,
        assists=e.assists,
        created_at=e.created_at,
        user=UserSummary.model_validate(e.user),
        car=SimCarPublic.model_validate(e.car),
    )

def _optional_uuid(raw: str | None, detail: str) -> uuid.UUID | None:
    if not raw:
        return None
    value = as_uuid(raw)
    if value is None:
        raise HTTPException(status_code=400, detail=detail)
    return value

async def _game_or_404(session: AsyncSession, ref: str) -> SimGame:
    game = await resolve_game(session, ref)
    if not game:
        raise HTTPException(status_code=404, detail="game_not_found")
    return game

@router.get("/leaderboard", response_model=LeaderboardOut)
async def leaderboard(
    request: Request,
    game_id: str | None = Query(None, alias="gameId"),
    track_id: str | None = Query(None, alias="trackId"),
    car_class: str | None = Query(None, alias="class"),
    car_id: str | None = Query(None, alias="carId"),
    limit: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
):
    if not game_id or not track_id:
        raise HTTPException(status_code=400, detail="missing_selectors")
    cfg = request.app.state.settings
    limit = cfg.leaderboard_default_limit if limit is None else max(1, min(limit, cfg.leaderboard_max_limit))
    car_uuid = _optional_uuid(car_id, "invalid_car_id")

    game = await _game_or_404(session, game_id)
    track = await resolve_track(session, game, track_id)
    if not track:
        raise HTTPException(status_code=404, detail="track_not_found")

    board = await build_leaderboard(session, game, track, car_class=car_class or None, car_id=car_uuid, limit=limit)
    return LeaderboardOut(
        game=GamePublic.model_validate(board.game),
        track=TrackPublic.model_validate(board.track),
        leaderboard=[_row(r) for r in board.rows],
        track_record=_row(board.track_record) if board.track_record else None,
        available_classes=board.available_classes,
        total_entries=board.total_entries,
    )

@router.post("/laptimes", status_code=201, response_model=LapTimeCreated)
async def submit_lap_time(
    payload: LapTimeCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    if not payload.game_id or not payload.track_id or not payload.car_id:
        raise HTTPException(status_code=400, detail="missing_selectors")
    try:
        time_ms = submitted_time_ms(
            time_ms=payload.time_ms,
            time=payload.time,
            minutes=payload.minutes,
            seconds=payload.seconds,
            milliseconds=payload.milliseconds,
        )
    except InvalidLapTime:
        raise HTTPException(status_code=400, detail=InvalidLapTime.code)

    game = await _game_or_404(session, payload.game_id)
    track = await resolve_track(session, game, payload.track_id)
    if not track:
        raise HTTPException(status_code=404, detail="track_not_found")
    car = await resolve_car(session, game, payload.car_id)
    if not car:
        raise HTTPException(status_code=404, detail="car_not_found")

    lt = await create_lap_time(
        session, user, game, track, car, time_ms,
        weather=payload.weather,
        assists=payload.assists,
        proof_url=payload.proof_url,
        proof_type=payload.proof_type,
        setup_notes=payload.setup_notes,
    )
    return LapTimeCreated(lap_time=_lap_public(lt))

@router.get("/laptimes", response_model=LapTimeList)
async def lap_times(
    game_id: str | None = Query(None, alias="gameId"),
    track_id: str | None = Query(None, alias="trackId"),
    car_id: str | None = Query(None, alias="carId"),
    user_id: str | None = Query(None, alias="userId"),
    status: LapStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
    viewer: User | None = Depends(get_optional_user),
):
    game = await _game_or_404(session, game_id) if game_id else None
    rows, total = await list_lap_times(
        session,
        viewer,
        game=game,
        track_id=_optional_uuid(track_id, "invalid_track_id"),
        car_id=_optional_uuid(car_id, "invalid_car_id"),
        user_id=_optional_uuid(user_id, "invalid_user_id"),
        status=status,
        limit=limit,
        offset=offset,
    )
    return LapTimeList(lap_times=[_lap_public(lt) for lt in rows], total=total, has_more=offset + len(rows) < total)

@router.post("/laptimes/{lap_id}/verify", response_model=LapTimeCreated)
async def verify_lap_time(
    lap_id: uuid.UUID,
    payload: LapTimeReview,
    session: AsyncSession = Depends(get_session),
    staff: User = Depends(require_staff),
):
    lt = await get_lap_time(session, lap_id)
    if not lt:
        raise HTTPException(status_code=404, detail="not_found")
    lt = await review_lap_time(session, lt, payload.status, staff)
    return LapTimeCreated(lap_time=_lap_public(lt))

@router.delete("/laptimes/{lap_id}", status_code=204)
async def remove_lap_time(
    lap_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    lt = await session.get(SimLapTime, lap_id)
    if not lt:
        raise HTTPException(status_code=404, detail="not_found")
    if lt.user_id != user.id and not user.is_staff:
        raise HTTPException(status_code=403, detail="forbidden")
    await delete_lap_time(session, lt, user)
    return Response(status_code=204)

@router.get("/games", response_model=list[GameWithCounts])
async def games(session: AsyncSession = Depends(get_session)):
    tracks = select(func.count(SimTrack.id)).where(SimTrack.game_id == SimGame.id).scalar_subquery()
    cars = select(func.count(SimCar.id)).where(SimCar.game_id == SimGame.id).scalar_subquery()
    laps = (
        select(func.count(SimLapTime.id))
        .where(SimLapTime.game_id == SimGame.id, SimLapTime.status == "verified")
        .scalar_subquery()
    )
    res = await session.execute(select(SimGame, tracks, cars, laps).order_by(SimGame.name.asc()))
    return [
        GameWithCounts(
            id=g.id, name=g.name, slug=g.slug, short_name=g.short_name,
            track_count=t or 0, car_count=c or 0, lap_time_count=n or 0,
        )
        for g, t, c, n in res.all()
    ]

@router.get("/games/{game_ref}/tracks", response_model=list[TrackWithCount])
async def game_tracks(game_ref: str, session: AsyncSession = Depends(get_session)):
    game = await _game_or_404(session, game_ref)
    laps = (
        select(func.count(SimLapTime.id))
        .where(SimLapTime.track_id == SimTrack.id, SimLapTime.status == "verified")
        .scalar_subquery()
    )
    res = await session.execute(
        select(SimTrack, laps).where(SimTrack.game_id == game.id).order_by(SimTrack.name.asc())
    )
    return [
        TrackWithCount(**TrackPublic.model_validate(t).model_dump(), lap_time_count=n or 0)
        for t, n in res.all()
    ]

@router.get("/games/{game_ref}/cars", response_model=list[SimCarPublic])
async def game_cars(
    game_ref: str,
    car_class: str | None = Query(None, alias="class"),
    session: AsyncSession = Depends(get_session),
):
    game = await _game_or_404(session, game_ref)
    q = select(SimCar).where(SimCar.game_id == game.id)
    if car_class:
        q = q.where(SimCar.car_class == car_class)
    cars = (await session.scalars(q.order_by(SimCar.car_class.asc(), SimCar.name.asc()))).all()
    return [SimCarPublic.model_validate(c) for c in cars]
