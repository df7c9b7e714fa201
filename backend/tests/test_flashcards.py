"""Flashcard decks and cards."""

import pytest

pytestmark = pytest.mark.asyncio


async def _deck(client, headers, title="Spanish verbs", subject="languages", is_public=False):
    res = await client.post(
        "/flashcards/decks",
        json={"title": title, "subject": subject, "isPublic": is_public},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["deck"]


async def _add_cards(client, headers, deck_id, cards):
    return await client.post(
        f"/flashcards/decks/{deck_id}/cards", json={"cards": cards}, headers=headers
    )


# ── Decks ─────────────────────────────────────────────────────────────────────

async def test_create_and_list_decks(client, make_user):
    alice, headers = await make_user("Alice")
    deck = await _deck(client, headers)
    assert deck["title"] == "Spanish verbs"
    assert deck["user"]["id"] == alice["id"]
    assert deck["isPublic"] is False

    decks = (await client.get("/flashcards/decks", headers=headers)).json()["decks"]
    assert [d["id"] for d in decks] == [deck["id"]]


async def test_create_deck_requires_title(client, make_user):
    _, headers = await make_user("Alice")
    res = await client.post("/flashcards/decks", json={"title": "  "}, headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Title is required"


async def test_get_deck_with_cards(client, make_user):
    _, headers = await make_user("Alice")
    deck = await _deck(client, headers)
    await _add_cards(client, headers, deck["id"], [
        {"question": "hablar", "answer": "to speak"},
        {"question": "comer", "answer": "to eat"},
    ])

    res = await client.get(f"/flashcards/decks/{deck['id']}", headers=headers)
    assert res.status_code == 200
    cards = res.json()["cards"]
    assert [(c["question"], c["answer"]) for c in cards] == [
        ("hablar", "to speak"), ("comer", "to eat"),
    ]
    assert all(c["deck"] == deck["id"] for c in cards)


async def test_private_deck_hidden_from_others(client, make_user):
    _, alice_h = await make_user("Alice")
    _, bob_h = await make_user("Bob")
    deck = await _deck(client, alice_h)

    assert (await client.get(f"/flashcards/decks/{deck['id']}", headers=bob_h)).status_code == 403
    assert (await client.get(f"/flashcards/decks/{deck['id']}")).status_code == 403


async def test_public_deck_readable_anonymously(client, make_user):
    _, headers = await make_user("Alice")
    deck = await _deck(client, headers, is_public=True)
    res = await client.get(f"/flashcards/decks/{deck['id']}")
    assert res.status_code == 200


async def test_public_decks_filter_by_subject(client, make_user):
    _, headers = await make_user("Alice")
    langs = await _deck(client, headers, is_public=True)
    await _deck(client, headers, title="Derivatives", subject="math", is_public=True)
    await _deck(client, headers, title="Private", subject="languages")

    res = await client.get("/flashcards/public?subject=languages")
    assert [d["id"] for d in res.json()["decks"]] == [langs["id"]]
    assert len((await client.get("/flashcards/public")).json()["decks"]) == 2

    etag = res.headers["etag"]
    again = await client.get("/flashcards/public?subject=languages", headers={"If-None-Match": etag})
    assert again.status_code == 304


async def test_update_deck_owner_only(client, make_user):
    _, alice_h = await make_user("Alice")
    _, bob_h = await make_user("Bob")
    deck = await _deck(client, alice_h)

    res = await client.patch(
        f"/flashcards/decks/{deck['id']}", json={"isPublic": True}, headers=bob_h
    )
    assert res.status_code == 403

    res = await client.patch(
        f"/flashcards/decks/{deck['id']}",
        json={"title": "Verbos", "isPublic": True},
        headers=alice_h,
    )
    assert res.status_code == 200
    assert res.json()["deck"]["title"] == "Verbos"
    assert res.json()["deck"]["isPublic"] is True


async def test_delete_deck_removes_cards(client, make_user):
    _, headers = await make_user("Alice")
    deck = await _deck(client, headers)
    res = await _add_cards(client, headers, deck["id"], [{"question": "ser", "answer": "to be"}])
    card_id = res.json()["inserted"][0]["id"]

    res = await client.delete(f"/flashcards/decks/{deck['id']}", headers=headers)
    assert res.json() == {"message": "Deck and associated cards deleted"}
    assert (await client.get(f"/flashcards/decks/{deck['id']}", headers=headers)).status_code == 404
    assert (await client.delete(f"/flashcards/cards/{card_id}", headers=headers)).status_code == 404


async def test_delete_deck_owner_only(client, make_user):
    _, alice_h = await make_user("Alice")
    _, bob_h = await make_user("Bob")
    deck = await _deck(client, alice_h, is_public=True)
    res = await client.delete(f"/flashcards/decks/{deck['id']}", headers=bob_h)
    assert res.status_code == 403


# ── Cards ─────────────────────────────────────────────────────────────────────

async def test_add_cards_validation(client, make_user):
    _, headers = await make_user("Alice")
    deck = await _deck(client, headers)

    res = await _add_cards(client, headers, deck["id"], [])
    assert res.status_code == 400
    assert res.json()["detail"] == "cards array required"

    res = await _add_cards(client, headers, deck["id"], [
        {"question": "ok", "answer": "fine"},
        {"question": "  ", "answer": "missing question"},
    ])
    assert res.status_code == 400
    cards = (await client.get(f"/flashcards/decks/{deck['id']}", headers=headers)).json()["cards"]
    assert cards == []


async def test_add_cards_to_foreign_deck_is_403(client, make_user):
    _, alice_h = await make_user("Alice")
    _, bob_h = await make_user("Bob")
    deck = await _deck(client, alice_h, is_public=True)
    res = await _add_cards(client, bob_h, deck["id"], [{"question": "q", "answer": "a"}])
    assert res.status_code == 403


async def test_review_card_updates_counters(client, make_user):
    _, headers = await make_user("Alice")
    deck = await _deck(client, headers)
    res = await _add_cards(client, headers, deck["id"], [{"question": "ir", "answer": "to go"}])
    card = res.json()["inserted"][0]
    assert card["rememberedCount"] == 0

    res = await client.patch(
        f"/flashcards/cards/{card['id']}",
        json={"rememberedCount": 2, "lastReviewed": "2024-05-01T10:00:00"},
        headers=headers,
    )
    assert res.status_code == 200
    updated = res.json()["card"]
    assert updated["rememberedCount"] == 2
    assert updated["forgottenCount"] == 0
    assert updated["lastReviewed"] == "2024-05-01T10:00:00"
    assert updated["question"] == "ir"


async def test_card_edits_are_owner_only(client, make_user):
    _, alice_h = await make_user("Alice")
    _, bob_h = await make_user("Bob")
    deck = await _deck(client, alice_h, is_public=True)
    res = await _add_cards(client, alice_h, deck["id"], [{"question": "q", "answer": "a"}])
    card_id = res.json()["inserted"][0]["id"]

    assert (
        await client.patch(f"/flashcards/cards/{card_id}", json={"answer": "b"}, headers=bob_h)
    ).status_code == 403
    assert (await client.delete(f"/flashcards/cards/{card_id}", headers=bob_h)).status_code == 403
    res = await client.delete(f"/flashcards/cards/{card_id}", headers=alice_h)
    assert res.json() == {"message": "Card deleted"}
