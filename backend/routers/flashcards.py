"""
routers/flashcards.py — Flashcard decks and cards.

Deleting a deck also removes every space pointer to it, so shared-content
listings never reference a deck that is gone.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request, Response
from sqlalchemy import delete, select

from dependencies import DB, CurrentUser, OptionalUser
from logging_config import get_logger
from models_async import Flashcard, FlashcardDeck, User
from schemas import CardsCreate, CardUpdate, DeckCreate, DeckUpdate
from services import space_service
from utils.cache import conditional_response

logger = get_logger(__name__)

router = APIRouter(prefix="/flashcards", tags=["flashcards"])


async def _deck_or_404(db, deck_id: int) -> FlashcardDeck:
    result = await db.execute(select(FlashcardDeck).where(FlashcardDeck.id == deck_id))
    deck = result.scalar_one_or_none()
    if not deck:
        raise HTTPException(status_code=404, detail="Deck not found")
    return deck


def _require_owner(deck: FlashcardDeck, user: User) -> None:
    if deck.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not authorized")


async def _owned_card(db, card_id: int, user: User) -> Flashcard:
    result = await db.execute(select(Flashcard).where(Flashcard.id == card_id))
    card = result.scalar_one_or_none()
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    deck = await _deck_or_404(db, card.deck_id)
    _require_owner(deck, user)
    return card


# ── Decks ─────────────────────────────────────────────────────────────────────

@router.post("/decks", status_code=201)
async def create_deck(data: DeckCreate, current_user: CurrentUser, db: DB):
    title = (data.title or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")

    deck = FlashcardDeck(
        user=current_user,
        title=title,
        subject=data.subject or "",
        is_public=bool(data.is_public),
    )
    db.add(deck)
    await db.commit()
    logger.info("flashcards.deck.created", deck_id=deck.id, user_id=current_user.id)
    return {"deck": deck.to_dict()}


@router.get("/decks")
async def list_decks(current_user: CurrentUser, db: DB):
    result = await db.execute(
        select(FlashcardDeck)
        .where(FlashcardDeck.user_id == current_user.id)
        .order_by(FlashcardDeck.created_at.desc(), FlashcardDeck.id.desc())
    )
    return {"decks": [d.to_dict() for d in result.scalars().all()]}


@router.get("/public")
async def list_public_decks(
    request: Request, response: Response, db: DB, subject: Optional[str] = None
):
    query = select(FlashcardDeck).where(FlashcardDeck.is_public.is_(True))
    if subject:
        query = query.where(FlashcardDeck.subject == subject)
    result = await db.execute(
        query.order_by(FlashcardDeck.created_at.desc(), FlashcardDeck.id.desc())
    )
    data = {"decks": [d.to_dict() for d in result.scalars().all()]}
    return conditional_response(request, response, data)


@router.get("/decks/{deck_id}")
async def get_deck(deck_id: int, current_user: OptionalUser, db: DB):
    deck = await _deck_or_404(db, deck_id)
    if not deck.is_public and (current_user is None or deck.user_id != current_user.id):
        raise HTTPException(status_code=403, detail="Not authorized to view this deck")

    await db.refresh(deck, ["cards"])
    return {"deck": deck.to_dict(), "cards": [c.to_dict() for c in deck.cards]}


@router.patch("/decks/{deck_id}")
async def update_deck(deck_id: int, data: DeckUpdate, current_user: CurrentUser, db: DB):
    deck = await _deck_or_404(db, deck_id)
    _require_owner(deck, current_user)

    if data.title is not None:
        if not data.title.strip():
            raise HTTPException(status_code=400, detail="Title is required")
        deck.title = data.title.strip()
    if data.subject is not None:
        deck.subject = data.subject
    if data.is_public is not None:
        deck.is_public = bool(data.is_public)
    await db.commit()
    return {"deck": deck.to_dict()}


@router.delete("/decks/{deck_id}")
async def delete_deck(deck_id: int, current_user: CurrentUser, db: DB):
    deck = await _deck_or_404(db, deck_id)
    _require_owner(deck, current_user)

    await db.execute(delete(Flashcard).where(Flashcard.deck_id == deck.id))
    space_ids = await space_service.purge_pointers(db, "flashcard", deck.id)
    await db.delete(deck)
    await db.commit()

    logger.info(
        "flashcards.deck.deleted",
        deck_id=deck_id, user_id=current_user.id, purged_spaces=len(space_ids),
    )
    await space_service.notify_purged(space_ids, "flashcard", deck_id, current_user.id)
    return {"message": "Deck and associated cards deleted"}


# ── Cards ─────────────────────────────────────────────────────────────────────

@router.post("/decks/{deck_id}/cards", status_code=201)
async def add_cards(deck_id: int, data: CardsCreate, current_user: CurrentUser, db: DB):
    if not data.cards:
        raise HTTPException(status_code=400, detail="cards array required")
    if any(not c.question.strip() or not c.answer.strip() for c in data.cards):
        raise HTTPException(status_code=400, detail="Each card needs a question and an answer")

    deck = await _deck_or_404(db, deck_id)
    _require_owner(deck, current_user)

    inserted = [
        Flashcard(deck_id=deck.id, question=c.question.strip(), answer=c.answer.strip())
        for c in data.cards
    ]
    db.add_all(inserted)
    await db.commit()
    return {"inserted": [c.to_dict() for c in inserted]}


@router.patch("/cards/{card_id}")
async def update_card(card_id: int, data: CardUpdate, current_user: CurrentUser, db: DB):
    card = await _owned_card(db, card_id, current_user)

    updates = data.model_dump(exclude_unset=True)
    for field in ("question", "answer", "remembered_count", "forgotten_count", "last_reviewed"):
        if field in updates and updates[field] is not None:
            setattr(card, field, updates[field])
    await db.commit()
    return {"card": card.to_dict()}


@router.delete("/cards/{card_id}")
async def delete_card(card_id: int, current_user: CurrentUser, db: DB):
    card = await _owned_card(db, card_id, current_user)
    await db.delete(card)
    await db.commit()
    return {"message": "Card deleted"}
