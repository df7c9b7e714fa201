"""Space chat: posting, history limits and realtime fan-out."""

import pytest

pytestmark = pytest.mark.asyncio


async def _space(client, headers, is_public=True):
    res = await client.post(
        "/spaces", json={"title": "Algebra Group", "isPublic": is_public}, headers=headers
    )
    return res.json()["space"]


async def _add_member(client, space_id, admin_h, user, user_h):
    await client.post(f"/spaces/{space_id}/join", headers=user_h)
    res = await client.post(
        f"/spaces/{space_id}/join/{user['id']}", json={"action": "approve"}, headers=admin_h
    )
    assert res.status_code == 200


async def test_member_posts_message_and_room_is_notified(client, make_user, emitted):
    alice, alice_h = await make_user("Alice")
    space = await _space(client, alice_h)

    res = await client.post(
        f"/spaces/{space['id']}/messages", json={"text": "  hello  "}, headers=alice_h
    )
    assert res.status_code == 201
    msg = res.json()["message"]
    assert msg["text"] == "hello"
    assert msg["user"]["id"] == alice["id"]
    assert msg["spaceId"] == space["id"]

    broadcasts = [e for e in emitted if e[0] == "space:message"]
    assert broadcasts == [("space:message", msg, f"space:{space['id']}")]


async def test_blank_message_is_rejected_and_not_stored(client, make_user, emitted):
    _, alice_h = await make_user("Alice")
    space = await _space(client, alice_h)

    for text in ("", "   ", None):
        res = await client.post(
            f"/spaces/{space['id']}/messages", json={"text": text}, headers=alice_h
        )
        assert res.status_code == 400

    res = await client.get(f"/spaces/{space['id']}/messages", headers=alice_h)
    assert res.json()["messages"] == []
    assert not [e for e in emitted if e[0] == "space:message"]


async def test_non_member_cannot_post(client, make_user):
    _, alice_h = await make_user("Alice")
    _, bob_h = await make_user("Bob")
    space = await _space(client, alice_h)

    res = await client.post(f"/spaces/{space['id']}/messages", json={"text": "hi"}, headers=bob_h)
    assert res.status_code == 403


async def test_public_space_messages_readable_by_non_members(client, make_user):
    _, alice_h = await make_user("Alice")
    _, bob_h = await make_user("Bob")
    space = await _space(client, alice_h)
    await client.post(f"/spaces/{space['id']}/messages", json={"text": "hi"}, headers=alice_h)

    res = await client.get(f"/spaces/{space['id']}/messages", headers=bob_h)
    assert res.status_code == 200
    assert [m["text"] for m in res.json()["messages"]] == ["hi"]


async def test_private_space_messages_hidden_from_non_members(client, make_user):
    _, alice_h = await make_user("Alice")
    _, bob_h = await make_user("Bob")
    space = await _space(client, alice_h, is_public=False)

    res = await client.get(f"/spaces/{space['id']}/messages", headers=bob_h)
    assert res.status_code == 403


async def test_messages_are_the_newest_n_in_ascending_order(client, make_user):
    _, alice_h = await make_user("Alice")
    space = await _space(client, alice_h)
    for i in range(5):
        await client.post(
            f"/spaces/{space['id']}/messages", json={"text": f"m{i}"}, headers=alice_h
        )

    res = await client.get(f"/spaces/{space['id']}/messages?limit=3", headers=alice_h)
    assert [m["text"] for m in res.json()["messages"]] == ["m2", "m3", "m4"]

    res = await client.get(f"/spaces/{space['id']}/messages", headers=alice_h)
    assert [m["text"] for m in res.json()["messages"]] == [f"m{i}" for i in range(5)]


async def test_limit_is_capped(client, make_user, monkeypatch):
    from config import Config

    monkeypatch.setattr(Config, "MESSAGES_MAX_LIMIT", 2)
    _, alice_h = await make_user("Alice")
    space = await _space(client, alice_h)
    for i in range(3):
        await client.post(
            f"/spaces/{space['id']}/messages", json={"text": f"m{i}"}, headers=alice_h
        )

    res = await client.get(f"/spaces/{space['id']}/messages?limit=500", headers=alice_h)
    assert [m["text"] for m in res.json()["messages"]] == ["m1", "m2"]


@pytest.mark.parametrize("limit", ["0", "-1", "abc"])
async def test_bad_limit_is_400(client, make_user, limit):
    _, alice_h = await make_user("Alice")
    space = await _space(client, alice_h)
    res = await client.get(f"/spaces/{space['id']}/messages?limit={limit}", headers=alice_h)
    assert res.status_code == 400


async def test_messages_unknown_space_is_404(client, make_user):
    _, alice_h = await make_user("Alice")
    res = await client.get("/spaces/nope/messages", headers=alice_h)
    assert res.status_code == 404


async def test_algebra_group_scenario(client, make_user, emitted):
    alice, alice_h = await make_user("Alice")
    bob, bob_h = await make_user("Bob")
    space = await _space(client, alice_h)
    sid = space["id"]

    # Bob asks to join; Alice is told privately
    await client.post(f"/spaces/{sid}/join", headers=bob_h)
    assert ("space:joinRequest", f"user:{alice['id']}") in [(e[0], e[2]) for e in emitted]

    # Bob cannot talk before approval
    res = await client.post(f"/spaces/{sid}/messages", json={"text": "hi"}, headers=bob_h)
    assert res.status_code == 403

    await _add_member(client, sid, alice_h, bob, bob_h)
    res = await client.post(
        f"/spaces/{sid}/messages", json={"text": "What is x if 2x = 6?"}, headers=bob_h
    )
    assert res.status_code == 201
    await client.post(f"/spaces/{sid}/messages", json={"text": "x = 3"}, headers=alice_h)

    history = (await client.get(f"/spaces/{sid}/messages", headers=bob_h)).json()["messages"]
    assert [(m["user"]["id"], m["text"]) for m in history] == [
        (bob["id"], "What is x if 2x = 6?"),
        (alice["id"], "x = 3"),
    ]

    # After leaving, Bob can read (public space) but not post
    await client.post(f"/spaces/{sid}/leave", headers=bob_h)
    res = await client.post(f"/spaces/{sid}/messages", json={"text": "bye"}, headers=bob_h)
    assert res.status_code == 403
    assert (await client.get(f"/spaces/{sid}/messages", headers=bob_h)).status_code == 200
