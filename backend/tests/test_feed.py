import uuid
import pytest
from datetime import datetime
from sqlalchemy.exc import OperationalError
from conftest import at
from motoverse.models.post import Post, PostLike
from motoverse.models.car import CarRating, CarComment, CarPhoto, PhotoRating
from motoverse.services import feed as feed_service
from motoverse.services.feed import FeedCursor, InvalidCursor, round_half_up

def _times(items):
    return [datetime.fromisoformat(i["createdAt"].replace("Z", "+00:00")) for i in items]

async def _post(seed, author, car, title, minute, **kw):
    return await seed.add(Post(author_id=author.id, car_id=car.id, title=title, content=kw.pop("content", ""), created_at=at(minute), **kw))

@pytest.mark.asyncio
async def test_following_feed_scenario(client, seed):
    viewer, friend, stranger = await seed.user("viewer"), await seed.user("friend"), await seed.user("stranger")
    await seed.follow(viewer, friend)
    gen = await seed.generation()
    car = await seed.car(friend, generation=gen, year=2003, created_at=at(1))
    await _post(seed, friend, car, "First drive", 5)
    other_car = await seed.car(stranger, nickname="Project", created_at=at(2))
    await _post(seed, stranger, other_car, "Not followed", 6)

    r = await client.get("/api/feed/following", headers=seed.auth(viewer))
    assert r.status_code == 200, r.text
    items = r.json()["items"]
    assert [i["type"] for i in items] == ["post", "car"]
    assert items[0]["activityText"] == "posted about 2003 BMW 3 Series"
    assert items[1]["activityText"] == "added 2003 BMW 3 Series to their garage"
    assert items[1]["data"]["owner"]["username"] == "friend"
    assert items[0]["data"]["car"]["make"] == "BMW"

@pytest.mark.asyncio
async def test_following_feed_requires_auth(client):
    r = await client.get("/api/feed/following")
    assert r.status_code == 401

@pytest.mark.asyncio
async def test_following_nobody_issues_no_source_queries(client, seed, monkeypatch):
    viewer = await seed.user()
    await seed.car(await seed.user(), nickname="Elsewhere")

    async def _boom(*a, **kw):
        raise AssertionError("source queried")
    for kind in list(feed_service._SOURCES):
        monkeypatch.setitem(feed_service._SOURCES, kind, _boom)

    r = await client.get("/api/feed/following", headers=seed.auth(viewer))
    assert r.status_code == 200
    assert r.json() == {"items": [], "nextCursor": None}

@pytest.mark.asyncio
async def test_followed_car_activity(client, seed):
    viewer, owner, rater = await seed.user(), await seed.user(), await seed.user("rater")
    car = await seed.car(owner, nickname="Silver Arrow", created_at=at(0))
    await seed.follow_car(viewer, car)
    await seed.add(CarRating(car_id=car.id, user_id=rater.id, rating=9, comment="clean", created_at=at(3)))
    await seed.add(CarComment(car_id=car.id, author_id=rater.id, content="nice wheels", created_at=at(4)))

    items = (await client.get("/api/feed/following", headers=seed.auth(viewer))).json()["items"]
    # the car itself only shows up when its owner is followed
    assert [i["type"] for i in items] == ["car_comment", "rating"]
    assert items[0]["activityText"] == "commented on Silver Arrow"
    assert items[1]["activityText"] == "rated Silver Arrow 9/10"
    assert items[1]["data"]["user"]["username"] == "rater"

@pytest.mark.asyncio
async def test_global_feed_merges_and_orders(client, seed):
    alice, bob = await seed.user("alice"), await seed.user("bob")
    car = await seed.car(alice, nickname="Daily", created_at=at(0))
    hidden = await seed.car(bob, nickname="Secret", is_public=False, created_at=at(1))
    await _post(seed, alice, car, "Oil change", 2, category="maintenance")
    await _post(seed, bob, hidden, "Hidden post", 3)
    await seed.add(CarRating(car_id=car.id, user_id=bob.id, rating=7, created_at=at(4)))
    photo = await seed.add(CarPhoto(car_id=car.id, uploader_id=alice.id, url="https://img/1.jpg", caption="sunset", created_at=at(5)))
    comment = await seed.add(CarComment(car_id=car.id, author_id=bob.id, content="wow", created_at=at(6)))

    r = await client.get("/api/feed")
    assert r.status_code == 200, r.text
    items = r.json()["items"]
    assert [i["type"] for i in items] == ["car_comment", "photo", "rating", "post", "car"]
    times = _times(items)
    assert times == sorted(times, reverse=True)
    assert all("Secret" not in i["activityText"] and "Hidden" not in str(i["data"]) for i in items)
    assert items[1]["id"] == f"photo-{photo.id}"
    assert items[1]["data"]["avgRating"] is None
    assert items[0]["id"] == f"car_comment-{comment.id}"

@pytest.mark.asyncio
async def test_limit_and_cursor_pages(client, seed):
    alice = await seed.user()
    car = await seed.car(alice, nickname="Daily", created_at=at(0))
    for n in range(1, 6):
        await _post(seed, alice, car, f"post {n}", n)

    first = (await client.get("/api/feed", params={"limit": 3})).json()
    assert [i["data"]["title"] for i in first["items"]] == ["post 5", "post 4", "post 3"]
    assert first["nextCursor"]

    second = (await client.get("/api/feed", params={"limit": 3, "cursor": first["nextCursor"]})).json()
    assert [i.get("data", {}).get("title") for i in second["items"]] == ["post 2", "post 1", None]
    assert second["items"][-1]["type"] == "car"
    assert second["nextCursor"]

    third = (await client.get("/api/feed", params={"limit": 3, "cursor": second["nextCursor"]})).json()
    assert third == {"items": [], "nextCursor": None}

@pytest.mark.asyncio
async def test_limit_is_clamped(client, seed):
    alice = await seed.user()
    car = await seed.car(alice, nickname="Daily", created_at=at(0))
    for n in range(1, 56):
        await _post(seed, alice, car, f"post {n}", n)
    assert len((await client.get("/api/feed", params={"limit": 500})).json()["items"]) == 50
    assert len((await client.get("/api/feed", params={"limit": 0})).json()["items"]) == 1
    assert len((await client.get("/api/feed")).json()["items"]) == 20

@pytest.mark.asyncio
async def test_type_filter_and_search(client, seed):
    alice, bob = await seed.user(), await seed.user()
    car = await seed.car(alice, nickname="Track Toy", created_at=at(0))
    await _post(seed, alice, car, "Brake upgrade", 1, content="new pads")
    await _post(seed, alice, car, "Road trip", 2)
    await seed.add(CarRating(car_id=car.id, user_id=bob.id, rating=8, comment="brakes look great", created_at=at(3)))

    posts = (await client.get("/api/feed", params={"type": "posts"})).json()["items"]
    assert {i["type"] for i in posts} == {"post"}
    activity = (await client.get("/api/feed", params={"type": "activity"})).json()["items"]
    assert [i["type"] for i in activity] == ["rating"]
    cars = (await client.get("/api/feed", params={"type": "cars"})).json()["items"]
    assert [i["type"] for i in cars] == ["car"]

    found = (await client.get("/api/feed", params={"q": "BRAKE"})).json()["items"]
    assert [i["type"] for i in found] == ["rating", "post"]
    assert (await client.get("/api/feed", params={"q": "100%"})).json()["items"] == []
    assert (await client.get("/api/feed", params={"type": "bogus"})).status_code == 422

@pytest.mark.asyncio
async def test_post_counts_and_is_liked(client, seed):
    alice, bob = await seed.user(), await seed.user()
    car = await seed.car(alice, nickname="Daily", created_at=at(0))
    post = await _post(seed, alice, car, "Liked", 1)
    await seed.add(PostLike(post_id=post.id, user_id=bob.id))

    as_bob = (await client.get("/api/feed", params={"type": "posts"}, headers=seed.auth(bob))).json()["items"][0]["data"]
    assert as_bob["likeCount"] == 1 and as_bob["isLiked"] is True
    anon = (await client.get("/api/feed", params={"type": "posts"})).json()["items"][0]["data"]
    assert anon["isLiked"] is False

    car_item = (await client.get("/api/feed", params={"type": "cars"})).json()["items"][0]["data"]
    assert car_item["postCount"] == 1

@pytest.mark.asyncio
async def test_photo_average_rounds_half_up(client, seed):
    alice, r1, r2 = await seed.user(), await seed.user(), await seed.user()
    car = await seed.car(alice, nickname="Daily", created_at=at(0))
    photo = await seed.add(CarPhoto(car_id=car.id, uploader_id=alice.id, url="https://img/2.jpg", created_at=at(1)))
    await seed.add(PhotoRating(photo_id=photo.id, user_id=r1.id, rating=7))
    await seed.add(PhotoRating(photo_id=photo.id, user_id=r2.id, rating=8))

    data = (await client.get("/api/feed", params={"type": "activity"})).json()["items"][0]["data"]
    assert data["avgRating"] == 8
    assert data["ratingCount"] == 2

def test_round_half_up():
    assert round_half_up(7.5) == 8
    assert round_half_up(8.5) == 9
    assert round_half_up(7.49) == 7

@pytest.mark.asyncio
async def test_bad_cursor_is_400(client):
    r = await client.get("/api/feed", params={"cursor": "not-a-cursor"})
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_cursor"

def test_cursor_round_trip():
    c = FeedCursor(created_at=at(3), item_id=f"post-{uuid.uuid4()}")
    assert FeedCursor.decode(c.encode()) == c

@pytest.mark.parametrize("item_id", ["post-abc", "video-00000000-0000-0000-0000-000000000000", "nodash"])
def test_cursor_rejects_unknown_items(item_id):
    token = FeedCursor(created_at=at(3), item_id=item_id).encode()
    with pytest.raises(InvalidCursor):
        FeedCursor.decode(token)

@pytest.mark.asyncio
async def test_source_failure_fails_whole_feed(client, seed, monkeypatch):
    alice = await seed.user()
    await seed.car(alice, nickname="Daily")

    async def _broken(*a, **kw):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))
    monkeypatch.setitem(feed_service._SOURCES, "photo", _broken)

    r = await client.get("/api/feed")
    assert r.status_code == 500
    assert r.json() == {"detail": "failed"}

async def _page_through(client, limit, path="/api/feed", **kw):
    seen, cursor = [], None
    for _ in range(20):
        params = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        body = (await client.get(path, params=params, **kw)).json()
        seen.extend(i["id"] for i in body["items"])
        cursor = body["nextCursor"]
        if not cursor:
            return seen
    raise AssertionError("feed never ran out of pages")

@pytest.mark.asyncio
async def test_cursor_keeps_items_sharing_a_timestamp(client, seed):
    alice = await seed.user()
    car = await seed.car(alice, nickname="Daily", created_at=at(0))
    posts = [await _post(seed, alice, car, f"same time {n}", 5) for n in range(3)]

    seen = await _page_through(client, limit=2)
    assert len(seen) == len(set(seen)) == 4
    assert set(seen) == {f"post-{p.id}" for p in posts} | {f"car-{car.id}"}
    assert seen[-1] == f"car-{car.id}"

@pytest.mark.asyncio
async def test_cursor_across_types_at_one_timestamp(client, seed):
    alice, bob = await seed.user(), await seed.user()
    car = await seed.car(alice, nickname="Daily", created_at=at(5))
    await _post(seed, alice, car, "same minute", 5)
    await _post(seed, alice, car, "same minute again", 5)
    await seed.add(CarRating(car_id=car.id, user_id=bob.id, rating=6, created_at=at(5)))
    await seed.add(CarComment(car_id=car.id, author_id=bob.id, content="hi", created_at=at(5)))
    await seed.add(CarPhoto(car_id=car.id, uploader_id=alice.id, url="https://img/3.jpg", created_at=at(5)))

    one_by_one = await _page_through(client, limit=1)
    everything = (await client.get("/api/feed")).json()["items"]
    assert len(everything) == 6
    assert one_by_one == [i["id"] for i in everything]
