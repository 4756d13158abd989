from __future__ import annotations
import uuid
import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from motoverse.auth_deps import get_current_user
from motoverse.db import get_session
from motoverse.models.user import User, Follow
from motoverse.models.car import Car, CarFollow
from motoverse.schemas.common import FollowResult

router = APIRouter(prefix="/api", tags=["follows"])
log = structlog.get_logger()

async def _user_or_404(session: AsyncSession, username: str) -> User:
    target = await session.scalar(select(User).where(User.username == username.lower()))
    if not target:
        raise HTTPException(status_code=404, detail="user_not_found")
    return target

async def _car_or_404(session: AsyncSession, car_id: uuid.UUID, viewer: User) -> Car:
    car = await session.get(Car, car_id)
    if not car or (not car.is_public and car.owner_id != viewer.id):
        raise HTTPException(status_code=404, detail="car_not_found")
    return car

async def _user_result(session: AsyncSession, target: User, following: bool) -> FollowResult:
    count = await session.scalar(select(func.count(Follow.id)).where(Follow.following_id == target.id))
    return FollowResult(is_following=following, follower_count=count or 0)

async def _car_result(session: AsyncSession, car: Car, following: bool) -> FollowResult:
    count = await session.scalar(select(func.count(CarFollow.id)).where(CarFollow.car_id == car.id))
    return FollowResult(is_following=following, follower_count=count or 0)

@router.post("/users/{username}/follow", response_model=FollowResult)
async def follow_user(username: str, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    target = await _user_or_404(session, username)
    if target.id == user.id:
        raise HTTPException(status_code=400, detail="cannot_follow_self")
    exists = await session.scalar(
        select(Follow.id).where(Follow.follower_id == user.id, Follow.following_id == target.id)
    )
    if exists:
        raise HTTPException(status_code=400, detail="already_following")
    session.add(Follow(follower_id=user.id, following_id=target.id))
    try:
        await session.commit()
    except IntegrityError:
        # a concurrent request inserted the same pair after our check
        await session.rollback()
        raise HTTPException(status_code=400, detail="already_following")
    log.info("user_followed", follower_id=str(user.id), following_id=str(target.id))
    return await _user_result(session, target, True)

@router.delete("/users/{username}/follow", response_model=FollowResult)
async def unfollow_user(username: str, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    target = await _user_or_404(session, username)
    await session.execute(delete(Follow).where(Follow.follower_id == user.id, Follow.following_id == target.id))
    await session.commit()
    return await _user_result(session, target, False)

@router.post("/cars/{car_id}/follow", response_model=FollowResult)
async def follow_car(car_id: uuid.UUID, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    car = await _car_or_404(session, car_id, user)
    exists = await session.scalar(
        select(CarFollow.id).where(CarFollow.follower_id == user.id, CarFollow.car_id == car.id)
    )
    if exists:
        raise HTTPException(status_code=400, detail="already_following")
    session.add(CarFollow(follower_id=user.id, car_id=car.id))
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=400, detail="already_following")
    log.info("car_followed", follower_id=str(user.id), car_id=str(car.id))
    return await _car_result(session, car, True)

@router.delete("/cars/{car_id}/follow", response_model=FollowResult)
async def unfollow_car(car_id: uuid.UUID, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    car = await _car_or_404(session, car_id, user)
    await session.execute(delete(CarFollow).where(CarFollow.follower_id == user.id, CarFollow.car_id == car.id))
    await session.commit()
    return await _car_result(session, car, False)
