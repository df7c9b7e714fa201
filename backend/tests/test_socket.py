"""Socket.IO handshake and room handlers, called directly with the server stubbed."""

import pytest

import socket_manager
from socket_manager import HandshakeRefused, sio


@pytest.fixture
def fake_sio(monkeypatch):
    """Replace the server's session/room bookkeeping with in-memory dicts."""
    state = {"sessions": {}, "rooms": {}}

    async def save_session(sid, data, namespace=None):
        state["sessions"][sid] = data

    async def get_session(sid, namespace=None):
        return state["sessions"].get(sid, {})

    async def enter_room(sid, room, namespace=None):
        state["rooms"].setdefault(sid, set()).add(room)

    async def leave_room(sid, room, namespace=None):
        state["rooms"].get(sid, set()).discard(room)

    monkeypatch.setattr(sio, "save_session", save_session)
    monkeypatch.setattr(sio, "get_session", get_session)
    monkeypatch.setattr(sio, "enter_room", enter_room)
    monkeypatch.setattr(sio, "leave_room", leave_room)
    return state


def _token(headers):
    return headers["Authorization"].split(" ", 1)[1]


async def _space(client, headers, is_public=True):
    res = await client.post(
        "/spaces", json={"title": "Algebra Group", "isPublic": is_public}, headers=headers
    )
    return res.json()["space"]


async def test_connect_without_token_is_refused(client, fake_sio):
    with pytest.raises(HandshakeRefused):
        await socket_manager.connect("sid-1", {"QUERY_STRING": ""}, None)
    assert fake_sio["sessions"] == {}


async def test_connect_with_bad_token_is_refused(client, fake_sio):
    with pytest.raises(HandshakeRefused):
        await socket_manager.connect("sid-1", {}, {"token": "not-a-jwt"})


async def test_connect_joins_private_user_room(client, make_user, fake_sio):
    alice, alice_h = await make_user("Alice")

    await socket_manager.connect("sid-1", {}, {"token": _token(alice_h)})
    assert fake_sio["sessions"]["sid-1"] == {"user_id": alice["id"]}
    assert fake_sio["rooms"]["sid-1"] == {f"user:{alice['id']}"}


async def test_connect_accepts_token_in_query_string(client, make_user, fake_sio):
    bob, bob_h = await make_user("Bob")

    await socket_manager.connect("sid-2", {"QUERY_STRING": f"token={_token(bob_h)}"})
    assert fake_sio["sessions"]["sid-2"]["user_id"] == bob["id"]


async def test_join_public_space_room(client, make_user, fake_sio, emitted):
    _, alice_h = await make_user("Alice")
    bob, bob_h = await make_user("Bob")
    space = await _space(client, alice_h)
    await socket_manager.connect("sid-b", {}, {"token": _token(bob_h)})

    ack = await socket_manager.join_space("sid-b", {"spaceId": space["id"]})
    assert ack == {"ok": True}
    assert f"space:{space['id']}" in fake_sio["rooms"]["sid-b"]
    assert (
        "space:userJoined",
        {"spaceId": space["id"], "userId": bob["id"]},
        f"space:{space['id']}",
    ) in emitted


async def test_non_member_cannot_join_private_space_room(client, make_user, fake_sio, emitted):
    _, alice_h = await make_user("Alice")
    _, bob_h = await make_user("Bob")
    space = await _space(client, alice_h, is_public=False)
    await socket_manager.connect("sid-b", {}, {"token": _token(bob_h)})

    ack = await socket_manager.join_space("sid-b", {"spaceId": space["id"]})
    assert ack["ok"] is False
    assert f"space:{space['id']}" not in fake_sio["rooms"]["sid-b"]
    assert not [e for e in emitted if e[0] == "space:userJoined"]


async def test_admin_can_join_private_space_room(client, make_user, fake_sio, emitted):
    _, alice_h = await make_user("Alice")
    space = await _space(client, alice_h, is_public=False)
    await socket_manager.connect("sid-a", {}, {"token": _token(alice_h)})

    ack = await socket_manager.join_space("sid-a", {"spaceId": space["id"]})
    assert ack == {"ok": True}


async def test_join_unknown_space_or_missing_id(client, make_user, fake_sio, emitted):
    _, alice_h = await make_user("Alice")
    await socket_manager.connect("sid-a", {}, {"token": _token(alice_h)})

    assert (await socket_manager.join_space("sid-a", {"spaceId": "nope"}))["ok"] is False
    assert (await socket_manager.join_space("sid-a", {}))["ok"] is False
    assert (await socket_manager.join_space("sid-a", None))["ok"] is False


@pytest.mark.parametrize("payload", ["space-1", 42, ["spaceId"]])
async def test_room_events_reject_non_object_payloads(client, make_user, fake_sio, payload):
    _, alice_h = await make_user("Alice")
    await socket_manager.connect("sid-a", {}, {"token": _token(alice_h)})

    expected = {"ok": False, "error": "spaceId required"}
    assert await socket_manager.join_space("sid-a", payload) == expected
    assert await socket_manager.leave_space("sid-a", payload) == expected


async def test_leave_space_room(client, make_user, fake_sio, emitted):
    alice, alice_h = await make_user("Alice")
    space = await _space(client, alice_h)
    await socket_manager.connect("sid-a", {}, {"token": _token(alice_h)})
    await socket_manager.join_space("sid-a", {"spaceId": space["id"]})

    ack = await socket_manager.leave_space("sid-a", {"spaceId": space["id"]})
    assert ack == {"ok": True}
    assert fake_sio["rooms"]["sid-a"] == {f"user:{alice['id']}"}
    assert any(e[0] == "space:userLeft" for e in emitted)


async def test_notify_swallows_emit_failures(monkeypatch):
    async def broken_emit(*args, **kwargs):
        raise RuntimeError("transport closed")

    monkeypatch.setattr(sio, "emit", broken_emit)
    await socket_manager.notify("space:message", {"text": "hi"}, "space:x")
