"""
routers/spaces.py — Study spaces: membership, shared content and chat.

Handlers are thin; the rules live in services/space_service.py.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import Config
from dependencies import DB, CurrentUser, OptionalUser
from schemas import (
    JoinDecision, MessageCreate, RemoveMemberRequest, ShareFlashcardRequest,
    ShareNoteRequest, ShareQuizRequest, SpaceCreate, UnshareRequest,
)
from services import space_service

limiter = Limiter(key_func=get_remote_address, enabled=Config.RATELIMIT_ENABLED)

router = APIRouter(prefix="/spaces", tags=["spaces"])


@router.post("", status_code=201)
async def create_space(data: SpaceCreate, current_user: CurrentUser, db: DB):
    space = await space_service.create_space(
        db, current_user, data.title, data.description, data.is_public
    )
    return {"space": space.to_dict()}


@router.get("")
async def list_spaces(current_user: OptionalUser, db: DB, mine: bool = False):
    if mine and current_user is None:
        raise HTTPException(status_code=401, detail="Not authorized, no token provided")
    spaces = await space_service.list_spaces(db, current_user, mine)
    return {"spaces": [s.to_summary() for s in spaces]}


@router.get("/{space_id}")
async def get_space(space_id: str, db: DB):
    space = await space_service.get_space_or_404(db, space_id)
    return {"space": space.to_dict()}


# ── Membership ────────────────────────────────────────────────────────────────

@router.post("/{space_id}/join")
async def request_join(space_id: str, current_user: CurrentUser, db: DB):
    message = await space_service.request_join(db, current_user, space_id)
    return {"message": message}


@router.post("/{space_id}/join/{user_id}")
async def handle_join_request(
    space_id: str, user_id: int, data: JoinDecision, current_user: CurrentUser, db: DB
):
    message = await space_service.handle_join_request(
        db, current_user, space_id, user_id, data.action
    )
    return {"message": message}


@router.post("/{space_id}/leave")
async def leave_space(space_id: str, current_user: CurrentUser, db: DB):
    message = await space_service.leave_space(db, current_user, space_id)
    return {"message": message}


@router.post("/{space_id}/remove")
async def remove_member(space_id: str, data: RemoveMemberRequest, current_user: CurrentUser, db: DB):
    message = await space_service.remove_member(db, current_user, space_id, data.user_id)
    return {"message": message}


# ── Shared content ────────────────────────────────────────────────────────────

@router.post("/{space_id}/share/note", status_code=201)
async def share_note(space_id: str, data: ShareNoteRequest, current_user: CurrentUser, db: DB):
    snapshot = await space_service.share_note(
        db, current_user, space_id, data.note_ref, data.title, data.content, data.meta
    )
    return {"shared": snapshot.to_dict()}


@router.post("/{space_id}/share/flashcard", status_code=201)
async def share_flashcard(
    space_id: str, data: ShareFlashcardRequest, current_user: CurrentUser, db: DB
):
    shared = await space_service.share_flashcard(db, current_user, space_id, data.deck_id)
    return {"shared": shared}


@router.post("/{space_id}/share/quiz", status_code=201)
async def share_quiz(space_id: str, data: ShareQuizRequest, current_user: CurrentUser, db: DB):
    shared = await space_service.share_quiz(db, current_user, space_id, data.quiz_id)
    return {"shared": shared}


@router.get("/{space_id}/shared/items")
async def get_shared_items(space_id: str, current_user: CurrentUser, db: DB):
    items = await space_service.get_shared_items(db, current_user, space_id)
    return {"items": items}


@router.get("/{space_id}/shared/notes")
async def get_shared_notes(space_id: str, current_user: CurrentUser, db: DB):
    notes = await space_service.get_shared_notes(db, current_user, space_id)
    return {"notes": notes}


@router.post("/{space_id}/unshare")
async def unshare_item(space_id: str, data: UnshareRequest, current_user: CurrentUser, db: DB):
    message = await space_service.unshare_item(db, current_user, space_id, data.kind, data.ref_id)
    return {"message": message}


# ── Chat ──────────────────────────────────────────────────────────────────────

@router.post("/{space_id}/messages", status_code=201)
@limiter.limit("60/minute")
async def post_message(
    space_id: str, data: MessageCreate, request: Request, current_user: CurrentUser, db: DB
):
    message = await space_service.post_message(db, current_user, space_id, data.text)
    return {"message": message}


@router.get("/{space_id}/messages")
async def get_messages(
    space_id: str, current_user: CurrentUser, db: DB, limit: Optional[int] = None
):
    messages = await space_service.get_messages(db, current_user, space_id, limit)
    return {"messages": messages}
