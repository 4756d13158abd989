import pytest
from conftest import at

def _payload(game, track, car, **extra):
    body = {"gameId": game.slug, "trackId": track.slug, "carId": str(car.id)}
    body.update(extra)
    return body

@pytest.mark.asyncio
async def test_submission_requires_auth(client, seed):
    game, track, (car,) = await seed.sim_world()
    r = await client.post("/api/simracing/laptimes", json=_payload(game, track, car, timeMs=95320))
    assert r.status_code == 401

@pytest.mark.asyncio
async def test_submit_lap_time(client, seed):
    game, track, (car,) = await seed.sim_world()
    user = await seed.user("racer")
    r = await client.post(
        "/api/simracing/laptimes",
        headers=seed.auth(user),
        json=_payload(game, track, car, timeMs=95320, weather="Dry", assists="TC Only", setupNotes="low fuel"),
    )
    assert r.status_code == 201, r.text
    lap = r.json()["lapTime"]
    assert lap["timeMs"] == 95320
    assert lap["timeFormatted"] == "1:35.320"
    assert lap["status"] == "pending" and lap["verified"] is False
    assert lap["weather"] == "Dry" and lap["assists"] == "TC Only"
    assert lap["user"]["username"] == "racer"
    assert lap["track"]["slug"] == "monza"

@pytest.mark.asyncio
@pytest.mark.parametrize("time_fields,expected", [
    ({"time": "1:35.320"}, 95320),
    ({"minutes": 1, "seconds": 35, "milliseconds": 320}, 95320),
    ({"seconds": 59, "milliseconds": 1}, 59001),
])
async def test_submit_alternate_time_inputs(client, seed, time_fields, expected):
    game, track, (car,) = await seed.sim_world()
    user = await seed.user()
    r = await client.post("/api/simracing/laptimes", headers=seed.auth(user), json=_payload(game, track, car, **time_fields))
    assert r.status_code == 201, r.text
    assert r.json()["lapTime"]["timeMs"] == expected

@pytest.mark.asyncio
@pytest.mark.parametrize("time_fields", [
    {"timeMs": 0},
    {"timeMs": -5},
    {"timeMs": 2_147_483_648},
    {"time": "40000000:00.000"},
    {"time": "1:75.000"},
    {"minutes": 1, "seconds": 60, "milliseconds": 0},
    {},
])
async def test_submit_rejects_bad_times(client, seed, time_fields):
    game, track, (car,) = await seed.sim_world()
    user = await seed.user()
    r = await client.post("/api/simracing/laptimes", headers=seed.auth(user), json=_payload(game, track, car, **time_fields))
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_lap_time"

@pytest.mark.asyncio
async def test_submit_selector_errors(client, seed):
    game, track, (car,) = await seed.sim_world()
    hdrs = seed.auth(await seed.user())
    r = await client.post("/api/simracing/laptimes", headers=hdrs, json={"gameId": "acc", "timeMs": 95000})
    assert r.status_code == 400 and r.json()["detail"] == "missing_selectors"
    r = await client.post("/api/simracing/laptimes", headers=hdrs, json={**_payload(game, track, car, timeMs=95000), "gameId": "iracing"})
    assert r.status_code == 404 and r.json()["detail"] == "game_not_found"
    r = await client.post("/api/simracing/laptimes", headers=hdrs, json={**_payload(game, track, car, timeMs=95000), "trackId": "spa"})
    assert r.status_code == 404 and r.json()["detail"] == "track_not_found"
    r = await client.post("/api/simracing/laptimes", headers=hdrs, json={**_payload(game, track, car, timeMs=95000), "carId": "not-a-car"})
    assert r.status_code == 404 and r.json()["detail"] == "car_not_found"

@pytest.mark.asyncio
async def test_listing_visibility(client, seed):
    game, track, (car,) = await seed.sim_world()
    owner, other = await seed.user(), await seed.user()
    mod = await seed.user(role="moderator")
    await seed.lap(owner, game, track, car, 95000, status="verified", created_at=at(1))
    await seed.lap(owner, game, track, car, 94000, status="pending", created_at=at(2))
    await seed.lap(other, game, track, car, 93000, status="rejected", created_at=at(3))

    params = {"gameId": "acc", "trackId": str(track.id)}
    anon = (await client.get("/api/simracing/laptimes", params=params)).json()
    assert [lt["timeMs"] for lt in anon["lapTimes"]] == [95000]
    assert anon["total"] == 1 and anon["hasMore"] is False

    mine = (await client.get("/api/simracing/laptimes", params=params, headers=seed.auth(owner))).json()
    assert [lt["timeMs"] for lt in mine["lapTimes"]] == [94000, 95000]

    staff = (await client.get("/api/simracing/laptimes", params={**params, "limit": 2}, headers=seed.auth(mod))).json()
    assert [lt["timeMs"] for lt in staff["lapTimes"]] == [93000, 94000]
    assert staff["total"] == 3 and staff["hasMore"] is True

@pytest.mark.asyncio
async def test_verify_and_delete(client, seed):
    game, track, (car,) = await seed.sim_world()
    owner, other = await seed.user(), await seed.user()
    admin = await seed.user(role="admin")
    lap = await seed.lap(owner, game, track, car, 95000, status="pending")

    r = await client.post(f"/api/simracing/laptimes/{lap.id}/verify", headers=seed.auth(owner), json={"status": "verified"})
    assert r.status_code == 403
    r = await client.post(f"/api/simracing/laptimes/{lap.id}/verify", headers=seed.auth(admin), json={"status": "verified"})
    assert r.status_code == 200, r.text
    assert r.json()["lapTime"]["verified"] is True
    assert r.json()["lapTime"]["reviewedAt"] is not None

    board = (await client.get("/api/simracing/leaderboard", params={"gameId": "acc", "trackId": "monza"})).json()
    assert board["trackRecord"]["lapTimeId"] == str(lap.id)

    assert (await client.delete(f"/api/simracing/laptimes/{lap.id}", headers=seed.auth(other))).status_code == 403
    assert (await client.delete(f"/api/simracing/laptimes/{lap.id}", headers=seed.auth(owner))).status_code == 204
    assert (await client.delete(f"/api/simracing/laptimes/{lap.id}", headers=seed.auth(owner))).status_code == 404

@pytest.mark.asyncio
async def test_catalog_listings(client, seed):
    game, track, cars = await seed.sim_world(("GT3", "GT4"))
    await seed.lap(await seed.user(), game, track, cars[0], 95000)
    await seed.lap(await seed.user(), game, track, cars[0], 96000, status="pending")

    games = (await client.get("/api/simracing/games")).json()
    assert games[0]["slug"] == "acc"
    assert (games[0]["trackCount"], games[0]["carCount"], games[0]["lapTimeCount"]) == (1, 2, 1)

    tracks = (await client.get(f"/api/simracing/games/{game.id}/tracks")).json()
    assert tracks[0]["lengthMeters"] == 5793 and tracks[0]["lapTimeCount"] == 1

    gt4 = (await client.get("/api/simracing/games/acc/cars", params={"class": "GT4"})).json()
    assert [c["class"] for c in gt4] == ["GT4"]
    assert (await client.get("/api/simracing/games/nope/cars")).status_code == 404
