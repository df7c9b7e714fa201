"""Pomodoro focus sessions."""

import pytest

pytestmark = pytest.mark.asyncio


async def _start(client, headers, duration=20):
    res = await client.post("/pomodoro/start", json={"duration": duration}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["session"]


@pytest.mark.parametrize("duration,break_length", [(10, 2), (20, 5), (60, 10)])
async def test_start_picks_break_length(client, make_user, duration, break_length):
    _, headers = await make_user("Alice")
    session = await _start(client, headers, duration)
    assert session["duration"] == duration
    assert session["breakLength"] == break_length
    assert session["status"] == "running"
    assert session["startTime"] is not None
    assert session["endTime"] is None


@pytest.mark.parametrize("body", [{"duration": 25}, {}, {"duration": 0}])
async def test_start_rejects_other_durations(client, make_user, body):
    _, headers = await make_user("Alice")
    res = await client.post("/pomodoro/start", json=body, headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid duration. Allowed: 10,20,60"


async def test_end_session_records_progress(client, make_user):
    _, headers = await make_user("Alice")
    session = await _start(client, headers)

    res = await client.post(
        "/pomodoro/end",
        json={
            "sessionId": session["id"],
            "status": "completed",
            "endTime": "2024-03-05T10:20:00Z",
            "focusSeconds": 1200,
            "breakSeconds": 300,
        },
        headers=headers,
    )
    assert res.status_code == 200
    ended = res.json()["session"]
    assert ended["status"] == "completed"
    assert ended["endTime"] == "2024-03-05T10:20:00"
    assert (ended["focusSeconds"], ended["breakSeconds"]) == (1200, 300)


async def test_completing_without_end_time_stamps_now(client, make_user):
    _, headers = await make_user("Alice")
    session = await _start(client, headers)
    res = await client.post(
        "/pomodoro/end", json={"sessionId": session["id"], "status": "completed"}, headers=headers
    )
    assert res.json()["session"]["endTime"] is not None


async def test_pause_keeps_session_open(client, make_user):
    _, headers = await make_user("Alice")
    session = await _start(client, headers)
    res = await client.post(
        "/pomodoro/end",
        json={"sessionId": session["id"], "status": "paused", "focusSeconds": 90},
        headers=headers,
    )
    ended = res.json()["session"]
    assert ended["status"] == "paused"
    assert ended["endTime"] is None
    assert ended["focusSeconds"] == 90


async def test_end_validation(client, make_user):
    _, alice_h = await make_user("Alice")
    _, bob_h = await make_user("Bob")
    session = await _start(client, alice_h)

    assert (await client.post("/pomodoro/end", json={}, headers=alice_h)).status_code == 400
    res = await client.post(
        "/pomodoro/end", json={"sessionId": session["id"], "status": "exploded"}, headers=alice_h
    )
    assert res.status_code == 400
    res = await client.post("/pomodoro/end", json={"sessionId": session["id"]}, headers=bob_h)
    assert res.status_code == 404


async def test_history_newest_first(client, make_user):
    _, headers = await make_user("Alice")
    first = await _start(client, headers, 10)
    second = await _start(client, headers, 60)

    sessions = (await client.get("/pomodoro/history", headers=headers)).json()["sessions"]
    assert [s["id"] for s in sessions] == [second["id"], first["id"]]
