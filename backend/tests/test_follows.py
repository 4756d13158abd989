import uuid
import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from motoverse.models.user import Follow
from motoverse.models.car import CarFollow

@pytest.mark.asyncio
async def test_follow_and_unfollow_user(client, seed):
    me, target = await seed.user("me"), await seed.user("target")
    hdrs = seed.auth(me)

    r = await client.post("/api/users/target/follow", headers=hdrs)
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "isFollowing": True, "followerCount": 1}

    r = await client.post("/api/users/target/follow", headers=hdrs)
    assert r.status_code == 400 and r.json()["detail"] == "already_following"

    r = await client.delete("/api/users/target/follow", headers=hdrs)
    assert r.json() == {"success": True, "isFollowing": False, "followerCount": 0}

@pytest.mark.asyncio
async def test_follow_user_errors(client, seed):
    me = await seed.user("me")
    assert (await client.post("/api/users/me/follow")).status_code == 401
    r = await client.post("/api/users/me/follow", headers=seed.auth(me))
    assert r.status_code == 400 and r.json()["detail"] == "cannot_follow_self"
    r = await client.post("/api/users/ghost/follow", headers=seed.auth(me))
    assert r.status_code == 404

@pytest.mark.asyncio
async def test_follow_car(client, seed):
    me, owner = await seed.user(), await seed.user()
    car = await seed.car(owner, nickname="Wagon")
    private = await seed.car(owner, nickname="Garage Queen", is_public=False)
    hdrs = seed.auth(me)

    r = await client.post(f"/api/cars/{car.id}/follow", headers=hdrs)
    assert r.json()["isFollowing"] is True and r.json()["followerCount"] == 1
    assert (await client.post(f"/api/cars/{car.id}/follow", headers=hdrs)).status_code == 400
    assert (await client.post(f"/api/cars/{private.id}/follow", headers=hdrs)).status_code == 404
    assert (await client.post(f"/api/cars/{uuid.uuid4()}/follow", headers=hdrs)).status_code == 404

    r = await client.delete(f"/api/cars/{car.id}/follow", headers=hdrs)
    assert r.json()["followerCount"] == 0

def _hide_existing_row(monkeypatch, model):
    """Make the duplicate check miss, as when two requests race past it."""
    original = AsyncSession.scalar

    async def scalar(self, statement, *args, **kwargs):
        cols = getattr(statement, "column_descriptions", None) or []
        if len(cols) == 1 and cols[0].get("entity") is model and cols[0].get("name") == "id":
            return None
        return await original(self, statement, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "scalar", scalar)

@pytest.mark.asyncio
async def test_concurrent_follow_user_is_rejected_not_500(client, seed, monkeypatch):
    me, target = await seed.user("me"), await seed.user("target")
    await seed.follow(me, target)
    _hide_existing_row(monkeypatch, Follow)

    r = await client.post("/api/users/target/follow", headers=seed.auth(me))
    assert r.status_code == 400
    assert r.json()["detail"] == "already_following"

    monkeypatch.undo()
    r = await client.delete("/api/users/target/follow", headers=seed.auth(me))
    assert r.json()["followerCount"] == 0

@pytest.mark.asyncio
async def test_concurrent_follow_car_is_rejected_not_500(client, seed, monkeypatch):
    me, owner = await seed.user(), await seed.user()
    car = await seed.car(owner)
    await seed.follow_car(me, car)
    _hide_existing_row(monkeypatch, CarFollow)

    r = await client.post(f"/api/cars/{car.id}/follow", headers=seed.auth(me))
    assert r.status_code == 400
    assert r.json()["detail"] == "already_following"
