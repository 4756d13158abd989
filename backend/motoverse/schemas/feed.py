from __future__ import annotations
from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID
from pydantic import Field
from motoverse.schemas.base import CamelModel
from motoverse.schemas.common import UserSummary, CarSummary

ActivityType = Literal["post", "car", "rating", "car_comment", "photo"]
FeedTypeFilter = Literal["all", "posts", "cars", "activity"]

# --- per-activity payloads ---

class PostActivity(CamelModel):
    id: UUID
    title: str
    content: str
    category: str
    images: list[str] = Field(default_factory=list)
    author: UserSummary
    car: CarSummary
    like_count: int = 0
    comment_count: int = 0
    is_liked: bool = False

class CarActivity(CarSummary):
    owner: UserSummary | None = None
    post_count: int = 0
    rating_count: int = 0

class RatingActivity(CamelModel):
    id: UUID
    rating: int
    comment: str | None = None
    user: UserSummary
    car: CarSummary

class CarCommentActivity(CamelModel):
    id: UUID
    content: str
    author: UserSummary
    car: CarSummary

class PhotoActivity(CamelModel):
    id: UUID
    url: str
    thumbnail: str | None = None
    caption: str | None = None
    uploader: UserSummary
    car: CarSummary
    avg_rating: int | None = None
    rating_count: int = 0
    comment_count: int = 0

# --- feed items: tagged union on `type` ---

class _FeedItemBase(CamelModel):
    id: str  # "{type}-{source id}"
    created_at: datetime
    activity_text: str

class PostFeedItem(_FeedItemBase):
    type: Literal["post"] = "post"
    data: PostActivity

class CarFeedItem(_FeedItemBase):
    type: Literal["car"] = "car"
    data: CarActivity

class RatingFeedItem(_FeedItemBase):
    type: Literal["rating"] = "rating"
    data: RatingActivity

class CarCommentFeedItem(_FeedItemBase):
    type: Literal["car_comment"] = "car_comment"
    data: CarCommentActivity

class PhotoFeedItem(_FeedItemBase):
    type: Literal["photo"] = "photo"
    data: PhotoActivity

FeedItem = Annotated[
    Union[PostFeedItem, CarFeedItem, RatingFeedItem, CarCommentFeedItem, PhotoFeedItem],
    Field(discriminator="type"),
]

class FeedPage(CamelModel):
    items: list[FeedItem]
    next_cursor: str | None = None
