from __future__ import annotations
import base64
import json
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal
import structlog
from sqlalchemy import select, func, or_, and_, literal, true, false
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from motoverse.db import as_utc
from motoverse.models.user import User, Follow
from motoverse.models.catalog import CarMake, CarModel, CarGeneration
from motoverse.models.car import Car, CarFollow, CarRating, CarComment, CarPhoto, PhotoRating, PhotoComment
from motoverse.models.post import Post, PostLike, PostComment
from motoverse.schemas.common import UserRef, UserSummary, CarSummary
from motoverse.schemas.feed import (
    FeedPage, PostFeedItem, CarFeedItem, RatingFeedItem, CarCommentFeedItem, PhotoFeedItem,
    PostActivity, CarActivity, RatingActivity, CarCommentActivity, PhotoActivity,
)

log = structlog.get_logger()

Scope = Literal["global", "following"]

SOURCES_BY_FILTER: dict[str, tuple[str, ...]] = {
    "all": ("post", "car", "rating", "car_comment", "photo"),
    "posts": ("post",),
    "cars": ("car",),
    "activity": ("rating", "car_comment", "photo"),
}


class InvalidCursor(ValueError):
    code = "invalid_cursor"


@dataclass(frozen=True)
class FeedCursor:
    """Position in the merged (created_at, item id) descending order."""
    created_at: datetime
    item_id: str

    def encode(self) -> str:
        raw = json.dumps({"t": as_utc(self.created_at).isoformat(), "id": self.item_id}).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    @classmethod
    def decode(cls, token: str) -> "FeedCursor":
        try:
            padded = token + "=" * (-len(token) % 4)
            data = json.loads(base64.urlsafe_b64decode(padded.encode()))
            item_id = str(data["id"])
            kind, _, source_id = item_id.partition("-")
            if kind not in SOURCES_BY_FILTER["all"]:
                raise ValueError(f"unknown item type {kind!r}")
            uuid.UUID(source_id)
            return cls(created_at=as_utc(datetime.fromisoformat(data["t"])), item_id=item_id)
        except (ValueError, KeyError, TypeError) as e:
            raise InvalidCursor(f"bad feed cursor: {e}") from e


@dataclass
class FeedQuery:
    viewer_id: uuid.UUID | None = None
    scope: Scope = "global"
    limit: int = 20
    q: str | None = None
    type: str = "all"
    cursor: FeedCursor | None = None


@dataclass
class FollowSet:
    user_ids: list[uuid.UUID] = field(default_factory=list)
    car_ids: list[uuid.UUID] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.user_ids and not self.car_ids


async def load_follow_set(session: AsyncSession, viewer_id: uuid.UUID) -> FollowSet:
    users = await session.scalars(select(Follow.following_id).where(Follow.follower_id == viewer_id))
    cars = await session.scalars(select(CarFollow.car_id).where(CarFollow.follower_id == viewer_id))
    return FollowSet(user_ids=list(users.all()), car_ids=list(cars.all()))


# ---------- payload helpers ----------

def round_half_up(value) -> int:
    return int(math.floor(float(value) + 0.5))


def user_summary(u: User) -> UserSummary:
    return UserSummary(id=u.id, username=u.username, name=u.name, avatar=u.avatar)


def car_summary(car: Car) -> CarSummary:
    gen = car.generation
    return CarSummary(
        id=car.id,
        nickname=car.nickname,
        year=car.year,
        image=car.image,
        thumbnail=car.thumbnail,
        make=gen.model.make.name if gen else None,
        model=gen.model.name if gen else None,
        generation=gen.name if gen else None,
        owner=UserRef(id=car.owner.id, username=car.owner.username),
    )


def car_display_name(car: Car, fallback: str) -> str:
    gen = car.generation
    if gen:
        return f"{car.year} {gen.model.make.name} {gen.model.name}"
    return car.nickname or fallback


def _car_options(*path):
    """Eager loads for a Car reached through `path` (empty path = the Car itself)."""
    def chain(*attrs):
        attrs = path + attrs
        opt = selectinload(attrs[0])
        for attr in attrs[1:]:
            opt = opt.selectinload(attr)
        return opt
    return (
        chain(Car.owner),
        chain(Car.generation, CarGeneration.model, CarModel.make),
    )


def _like(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _scope(stmt, follows: FollowSet | None, actor_col, car_col=None):
    """Restrict to followed actors/cars; None means nothing in this source can match."""
    if follows is None:
        return stmt
    conds = []
    if follows.user_ids:
        conds.append(actor_col.in_(follows.user_ids))
    if car_col is not None and follows.car_ids:
        conds.append(car_col.in_(follows.car_ids))
    if not conds:
        return None
    return stmt.where(or_(*conds))


def _after_cursor(cursor: FeedCursor, kind: str, created_col, id_col):
    """Rows strictly after `cursor` in the merged ("created_at", "{kind}-{id}") descending order."""
    prefix = f"{kind}-"
    if cursor.item_id.startswith(prefix):
        tie = id_col < uuid.UUID(cursor.item_id[len(prefix):])
    else:
        # types never contain "-", so the prefix alone decides the order
        tie = true() if prefix < cursor.item_id else false()
    return or_(created_col < cursor.created_at, and_(created_col == cursor.created_at, tie))


def _page(stmt, query: FeedQuery, kind: str, created_col, id_col):
    if query.cursor is not None:
        stmt = stmt.where(_after_cursor(query.cursor, kind, created_col, id_col))
    return stmt.order_by(created_col.desc(), id_col.desc()).limit(query.limit)


# ---------- sources ----------

async def _posts(session: AsyncSession, query: FeedQuery, follows: FollowSet | None) -> list[PostFeedItem]:
    like_count = select(func.count(PostLike.id)).where(PostLike.post_id == Post.id).scalar_subquery()
    comment_count = select(func.count(PostComment.id)).where(PostComment.post_id == Post.id).scalar_subquery()
    if query.viewer_id:
        liked = (
            select(func.count(PostLike.id))
            .where(PostLike.post_id == Post.id, PostLike.user_id == query.viewer_id)
            .scalar_subquery()
        )
    else:
        liked = literal(0)

    stmt = (
        select(Post, like_count, comment_count, liked)
        .join(Car, Car.id == Post.car_id)
        .where(Car.is_public.is_(True))
        .options(selectinload(Post.author), *_car_options(Post.car))
    )
    if query.q:
        pat = _like(query.q)
        stmt = stmt.where(or_(Post.title.ilike(pat, escape="\\"), Post.content.ilike(pat, escape="\\")))
    stmt = _scope(stmt, follows, Post.author_id, Post.car_id)
    if stmt is None:
        return []
    rows = (await session.execute(_page(stmt, query, "post", Post.created_at, Post.id))).all()

    out = []
    for post, likes, comments, liked_cnt in rows:
        out.append(PostFeedItem(
            id=f"post-{post.id}",
            created_at=as_utc(post.created_at),
            activity_text=f"posted about {car_display_name(post.car, 'their car')}",
            data=PostActivity(
                id=post.id,
                title=post.title,
                content=post.content,
                category=post.category,
                images=list(post.images or []),
                author=user_summary(post.author),
                car=car_summary(post.car),
                like_count=int(likes or 0),
                comment_count=int(comments or 0),
                is_liked=bool(liked_cnt),
            ),
        ))
    return out


async def _cars(session: AsyncSession, query: FeedQuery, follows: FollowSet | None) -> list[CarFeedItem]:
    post_count = select(func.count(Post.id)).where(Post.car_id == Car.id).scalar_subquery()
    rating_count = select(func.count(CarRating.id)).where(CarRating.car_id == Car.id).scalar_subquery()

    stmt = (
        select(Car, post_count, rating_count)
        .where(Car.is_public.is_(True))
        .options(*_car_options())
    )
    if query.q:
        pat = _like(query.q)
        stmt = (
            stmt.outerjoin(CarGeneration, CarGeneration.id == Car.generation_id)
            .outerjoin(CarModel, CarModel.id == CarGeneration.model_id)
            .outerjoin(CarMake, CarMake.id == CarModel.make_id)
            .where(or_(
                Car.nickname.ilike(pat, escape="\\"),
                CarModel.name.ilike(pat, escape="\\"),
                CarMake.name.ilike(pat, escape="\\"),
            ))
        )
    # new cars only come from followed owners
    stmt = _scope(stmt, follows, Car.owner_id)
    if stmt is None:
        return []
    rows = (await session.execute(_page(stmt, query, "car", Car.created_at, Car.id))).all()

    out = []
    for car, posts, ratings in rows:
        summary = car_summary(car)
        out.append(CarFeedItem(
            id=f"car-{car.id}",
            created_at=as_utc(car.created_at),
            activity_text=f"added {car_display_name(car, 'a new car')} to their garage",
            data=CarActivity(
                **summary.model_dump(exclude={"owner"}),
                owner=user_summary(car.owner),
                post_count=int(posts or 0),
                rating_count=int(ratings or 0),
            ),
        ))
    return out


async def _ratings(session: AsyncSession, query: FeedQuery, follows: FollowSet | None) -> list[RatingFeedItem]:
    stmt = (
        select(CarRating)
        .join(Car, Car.id == CarRating.car_id)
        .where(Car.is_public.is_(True))
        .options(selectinload(CarRating.user), *_car_options(CarRating.car))
    )
    if query.q:
        stmt = stmt.where(CarRating.comment.ilike(_like(query.q), escape="\\"))
    stmt = _scope(stmt, follows, CarRating.user_id, CarRating.car_id)
    if stmt is None:
        return []
    ratings = (await session.scalars(_page(stmt, query, "rating", CarRating.created_at, CarRating.id))).all()

    return [
        RatingFeedItem(
            id=f"rating-{r.id}",
            created_at=as_utc(r.created_at),
            activity_text=f"rated {car_display_name(r.car, 'a car')} {r.rating}/10",
            data=RatingActivity(
                id=r.id, rating=r.rating, comment=r.comment,
                user=user_summary(r.user), car=car_summary(r.car),
            ),
        )
        for r in ratings
    ]


async def _car_comments(session: AsyncSession, query: FeedQuery, follows: FollowSet | None) -> list[CarCommentFeedItem]:
    stmt = (
        select(CarComment)
        .join(Car, Car.id == CarComment.car_id)
        .where(Car.is_public.is_(True))
        .options(selectinload(CarComment.author), *_car_options(CarComment.car))
    )
    if query.q:
        stmt = stmt.where(CarComment.content.ilike(_like(query.q), escape="\\"))
    stmt = _scope(stmt, follows, CarComment.author_id, CarComment.car_id)
    if stmt is None:
        return []
    comments = (await session.scalars(_page(stmt, query, "car_comment", CarComment.created_at, CarComment.id))).all()

    return [
        CarCommentFeedItem(
            id=f"car_comment-{c.id}",
            created_at=as_utc(c.created_at),
            activity_text=f"commented on {car_display_name(c.car, 'a car')}",
            data=CarCommentActivity(
                id=c.id, content=c.content,
                author=user_summary(c.author), car=car_summary(c.car),
            ),
        )
        for c in comments
    ]


async def _photos(session: AsyncSession, query: FeedQuery, follows: FollowSet | None) -> list[PhotoFeedItem]:
    avg_rating = select(func.avg(PhotoRating.rating)).where(PhotoRating.photo_id == CarPhoto.id).scalar_subquery()
    rating_count = select(func.count(PhotoRating.id)).where(PhotoRating.photo_id == CarPhoto.id).scalar_subquery()
    comment_count = select(func.count(PhotoComment.id)).where(PhotoComment.photo_id == CarPhoto.id).scalar_subquery()

    stmt = (
        select(CarPhoto, avg_rating, rating_count, comment_count)
        .join(Car, Car.id == CarPhoto.car_id)
        .where(Car.is_public.is_(True))
        .options(selectinload(CarPhoto.uploader), *_car_options(CarPhoto.car))
    )
    if query.q:
        stmt = stmt.where(CarPhoto.caption.ilike(_like(query.q), escape="\\"))
    stmt = _scope(stmt, follows, CarPhoto.uploader_id, CarPhoto.car_id)
    if stmt is None:
        return []
    rows = (await session.execute(_page(stmt, query, "photo", CarPhoto.created_at, CarPhoto.id))).all()

    out = []
    for photo, avg, ratings, comments in rows:
        out.append(PhotoFeedItem(
            id=f"photo-{photo.id}",
            created_at=as_utc(photo.created_at),
            activity_text=f"added a photo of {car_display_name(photo.car, 'their car')}",
            data=PhotoActivity(
                id=photo.id,
                url=photo.url,
                thumbnail=photo.thumbnail,
                caption=photo.caption,
                uploader=user_summary(photo.uploader),
                car=car_summary(photo.car),
                avg_rating=round_half_up(avg) if avg is not None else None,
                rating_count=int(ratings or 0),
                comment_count=int(comments or 0),
            ),
        ))
    return out


_SOURCES = {
    "post": _posts,
    "car": _cars,
    "rating": _ratings,
    "car_comment": _car_comments,
    "photo": _photos,
}


def _item_key(item) -> tuple[datetime, str]:
    return (as_utc(item.created_at), item.id)


async def aggregate_feed(session: AsyncSession, query: FeedQuery) -> FeedPage:
    """Merge every activity source into one page, newest first.

    Sources are queried one after another; any failure propagates and the
    whole feed fails (no partial results).
    """
    follows: FollowSet | None = None
    if query.scope == "following":
        if query.viewer_id is None:
            raise ValueError("following feed needs a viewer")
        follows = await load_follow_set(session, query.viewer_id)
        if follows.empty:
            return FeedPage(items=[], next_cursor=None)

    items = []
    for kind in SOURCES_BY_FILTER[query.type]:
        items.extend(await _SOURCES[kind](session, query, follows))

    items.sort(key=_item_key, reverse=True)
    page = items[: query.limit]

    next_cursor = None
    if page and len(page) == query.limit:
        last = page[-1]
        next_cursor = FeedCursor(created_at=last.created_at, item_id=last.id).encode()

    log.info("feed_aggregated", scope=query.scope, type=query.type, items=len(page), has_more=next_cursor is not None)
    return FeedPage(items=page, next_cursor=next_cursor)
