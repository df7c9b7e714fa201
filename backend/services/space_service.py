"""
services/space_service.py — Space membership, shared content and chat.

Membership lives only in SpaceMember rows (one per user+space, unique).
Every function takes the request's AsyncSession and the acting user, raises
an ``errors.AppError`` subclass on failure, commits on success and then
emits the matching Socket.IO event through ``socket_manager.notify``.
"""

import json
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import Config
from errors import AuthorizationError, NotFoundError, ValidationError
from logging_config import get_logger
from models_async import (
    FlashcardDeck, Note, Quiz, SharedItem, SharedNote, Space, SpaceMember,
    SpaceMessage, User, user_brief,
)
from socket_manager import notify, space_room, user_room

logger = get_logger(__name__)

SHARE_KINDS = ("note", "flashcard", "quiz")


# ── Lookups & permission helpers ──────────────────────────────────────────────

def is_member(space: Space, user_id: Optional[int]) -> bool:
    if user_id is None:
        return False
    if space.admin_id == user_id:
        return True
    return any(m.user_id == user_id for m in space.members)


def can_view(space: Space, user_id: Optional[int]) -> bool:
    return space.is_public or is_member(space, user_id)


def _membership(space: Space, user_id: int) -> Optional[SpaceMember]:
    return next((m for m in space.memberships if m.user_id == user_id), None)


async def get_space_or_404(db: AsyncSession, space_id: str) -> Space:
    result = await db.execute(
        select(Space)
        .where(Space.id == space_id)
        .execution_options(populate_existing=True)
    )
    space = result.scalar_one_or_none()
    if not space:
        raise NotFoundError("Space not found")
    return space


def _require_member(space: Space, user: User, message: str) -> None:
    if not is_member(space, user.id):
        raise AuthorizationError(message)


def _require_admin(space: Space, user: User, message: str) -> None:
    if space.admin_id != user.id:
        raise AuthorizationError(message)


# ── Spaces ────────────────────────────────────────────────────────────────────

async def create_space(
    db: AsyncSession, user: User, title: Optional[str], description: str, is_public: bool
) -> Space:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title required")

    space = Space(
        title=title,
        description=(description or "").strip(),
        is_public=bool(is_public),
        admin=user,
    )
    admin_row = SpaceMember(user=user, status="requested")
    admin_row.approve(role="admin")
    space.memberships.append(admin_row)
    db.add(space)
    await db.commit()

    logger.info("space.created", space_id=space.id, admin_id=user.id)
    return space


async def list_spaces(db: AsyncSession, user: Optional[User], mine: bool) -> List[Space]:
    query = select(Space).order_by(Space.created_at.desc())
    if mine:
        member_of = select(SpaceMember.space_id).where(
            SpaceMember.user_id == user.id, SpaceMember.status == "approved"
        )
        query = query.where(Space.id.in_(member_of))
    elif user is not None:
        member_of = select(SpaceMember.space_id).where(
            SpaceMember.user_id == user.id, SpaceMember.status == "approved"
        )
        query = query.where(or_(Space.is_public.is_(True), Space.id.in_(member_of)))
    else:
        query = query.where(Space.is_public.is_(True))

    result = await db.execute(query)
    return list(result.scalars().all())


# ── Membership lifecycle ──────────────────────────────────────────────────────

async def request_join(db: AsyncSession, user: User, space_id: str) -> str:
    space = await get_space_or_404(db, space_id)
    if is_member(space, user.id):
        raise ValidationError("Already a member")

    row = _membership(space, user.id)
    if row is not None and row.status == "requested":
        return "Join requested"

    if row is None:
        row = SpaceMember(user=user, role="member", status="requested")
        space.memberships.append(row)
    else:
        # re-request after a rejection, removal or leave
        row.status = "requested"
        row.role = "member"
        row.requested_at = datetime.utcnow()

    try:
        await db.commit()
    except IntegrityError:
        # a concurrent request for the same (user, space) won the insert
        await db.rollback()
        logger.info("space.join_request.duplicate", space_id=space_id, user_id=user.id)
        return "Join requested"

    logger.info("space.join_requested", space_id=space.id, user_id=user.id, member_id=row.id)
    await notify(
        "space:joinRequest",
        {"spaceId": space.id, "userId": user.id, "memberId": row.id},
        user_room(space.admin_id),
    )
    return "Join requested"


async def handle_join_request(
    db: AsyncSession, user: User, space_id: str, requester_id: int, action: Optional[str]
) -> str:
    if action not in ("approve", "reject"):
        raise ValidationError("Invalid action")

    space = await get_space_or_404(db, space_id)
    _require_admin(space, user, "Only admin can approve/reject")

    # keyed by the requester's user id, never the membership row id
    row = _membership(space, requester_id)
    if row is None or row.status != "requested":
        raise NotFoundError("Join request not found")

    if action == "approve":
        row.approve()
        event, message = "space:joinApproved", "Approved"
    else:
        row.reject()
        event, message = "space:joinRejected", "Rejected"
    await db.commit()

    logger.info(
        "space.join_request.handled",
        space_id=space.id, member_id=row.id, user_id=row.user_id, action=action,
    )
    await notify(event, {"spaceId": space.id}, user_room(row.user_id))
    return message


async def leave_space(db: AsyncSession, user: User, space_id: str) -> str:
    space = await get_space_or_404(db, space_id)
    if space.admin_id == user.id:
        raise ValidationError("Admin cannot leave space. Transfer admin before leaving.")

    row = _membership(space, user.id)
    if row is None or row.status != "approved":
        raise ValidationError("You are not a member of this space")

    row.leave()
    await db.commit()

    logger.info("space.member_left", space_id=space.id, user_id=user.id)
    await notify("space:memberLeft", {"spaceId": space.id, "userId": user.id}, space_room(space.id))
    return "Left space"


async def remove_member(
    db: AsyncSession, actor: User, space_id: str, user_id: Optional[int]
) -> str:
    if not user_id:
        raise ValidationError("userId required")

    space = await get_space_or_404(db, space_id)
    _require_admin(space, actor, "Only admin can remove members")
    if user_id == space.admin_id:
        raise ValidationError("Admin cannot remove themselves from the space")

    row = _membership(space, user_id)
    if row is None or row.status != "approved":
        raise NotFoundError("Member not found")

    row.reject()
    await db.commit()

    logger.info("space.member_removed", space_id=space.id, user_id=user_id, actor_id=actor.id)
    await notify(
        "space:memberRemoved", {"spaceId": space.id, "userId": user_id}, space_room(space.id)
    )
    return "Member removed"


# ── Shared content ────────────────────────────────────────────────────────────

async def _append_pointer(
    db: AsyncSession, space: Space, kind: str, ref_id: int, user: User, meta: dict
) -> SharedItem:
    item = SharedItem(
        space_id=space.id,
        kind=kind,
        ref_id=ref_id,
        shared_by_id=user.id,
        meta_json=json.dumps(meta),
    )
    db.add(item)
    return item


async def share_note(
    db: AsyncSession,
    user: User,
    space_id: str,
    note_ref: Optional[int],
    title: Optional[str],
    content: Optional[str],
    meta: Optional[dict] = None,
) -> SharedNote:
    space = await get_space_or_404(db, space_id)
    _require_member(space, user, "Only members can share content")

    if note_ref is not None:
        result = await db.execute(select(Note).where(Note.id == note_ref))
        note = result.scalar_one_or_none()
        if not note:
            raise NotFoundError("Note not found")
        if note.user_id != user.id and not note.is_public:
            raise AuthorizationError("You can only share your own or public notes")
        if title is None:
            title = note.title
        if content is None:
            content = note.content or note.description or ""
    elif not (title or "").strip() and not (content or "").strip():
        raise ValidationError("title or content required")

    snapshot = SharedNote(
        space_id=space.id,
        note_ref=note_ref,
        shared_by=user,
        title=(title or "").strip(),
        content=content or "",
        meta_json=json.dumps(meta or {}),
    )
    db.add(snapshot)
    await db.flush()
    pointer = await _append_pointer(db, space, "note", snapshot.id, user, {"title": snapshot.title})
    await db.commit()

    logger.info("space.shared", space_id=space.id, kind="note", ref_id=snapshot.id, user_id=user.id)
    await notify(
        "space:sharedItem", {"spaceId": space.id, "item": pointer.to_dict()}, space_room(space.id)
    )
    return snapshot


async def share_flashcard(
    db: AsyncSession, user: User, space_id: str, deck_id: Optional[int]
) -> dict:
    if not deck_id:
        raise ValidationError("deckId required")

    space = await get_space_or_404(db, space_id)
    _require_member(space, user, "Only members can share content")

    result = await db.execute(select(FlashcardDeck).where(FlashcardDeck.id == deck_id))
    deck = result.scalar_one_or_none()
    if not deck:
        raise NotFoundError("Flashcard deck not found")
    if deck.user_id != user.id and not deck.is_public:
        raise AuthorizationError("You can only share your own or public decks")

    pointer = await _append_pointer(db, space, "flashcard", deck.id, user, {"title": deck.title})
    await db.commit()

    payload = pointer.to_dict()
    logger.info("space.shared", space_id=space.id, kind="flashcard", ref_id=deck.id, user_id=user.id)
    await notify("space:sharedItem", {"spaceId": space.id, "item": payload}, space_room(space.id))
    return payload


async def share_quiz(db: AsyncSession, user: User, space_id: str, quiz_id: Optional[int]) -> dict:
    if not quiz_id:
        raise ValidationError("quizId required")

    space = await get_space_or_404(db, space_id)
    _require_member(space, user, "Only members can share content")

    result = await db.execute(select(Quiz).where(Quiz.id == quiz_id))
    quiz = result.scalar_one_or_none()
    if not quiz:
        raise NotFoundError("Quiz not found")
    if quiz.user_id != user.id:
        raise AuthorizationError("You can only share your own quizzes")

    pointer = await _append_pointer(db, space, "quiz", quiz.id, user, {"title": quiz.title})
    await db.commit()

    payload = pointer.to_dict()
    logger.info("space.shared", space_id=space.id, kind="quiz", ref_id=quiz.id, user_id=user.id)
    await notify("space:sharedItem", {"spaceId": space.id, "item": payload}, space_room(space.id))
    return payload


async def unshare_item(
    db: AsyncSession, actor: User, space_id: str, kind: Optional[str], ref_id: Optional[str]
) -> str:
    if not kind or not ref_id:
        raise ValidationError("kind and refId required")
    if kind not in SHARE_KINDS:
        raise ValidationError("kind must be one of: note, flashcard, quiz")
    try:
        ref = int(ref_id)
    except (TypeError, ValueError):
        raise ValidationError("Invalid refId")

    space = await get_space_or_404(db, space_id)

    result = await db.execute(
        select(SharedItem).where(
            SharedItem.space_id == space.id, SharedItem.kind == kind, SharedItem.ref_id == ref
        )
    )
    matches = result.scalars().all()
    if not matches:
        raise NotFoundError("Shared item not found in space")

    allowed = space.admin_id == actor.id or any(m.shared_by_id == actor.id for m in matches)
    if not allowed:
        raise AuthorizationError("Not allowed to unshare this item")

    for m in matches:
        await db.delete(m)
    if kind == "note":
        # every note share owns its snapshot, so no other pointer references it
        await db.execute(
            delete(SharedNote).where(SharedNote.id == ref, SharedNote.space_id == space.id)
        )
    await db.commit()

    logger.info("space.unshared", space_id=space.id, kind=kind, ref_id=ref, actor_id=actor.id)
    await notify(
        "space:unsharedItem",
        {"spaceId": space.id, "kind": kind, "refId": str(ref), "actorId": actor.id},
        space_room(space.id),
    )
    return "Unshared"


async def _hydrate(db: AsyncSession, item: SharedItem) -> Optional[dict]:
    if item.kind == "note":
        result = await db.execute(select(SharedNote).where(SharedNote.id == item.ref_id))
        sn = result.scalar_one_or_none()
        if sn is None:
            return None
        return {
            "id": sn.id,
            "title": sn.title,
            "content": sn.content,
            "noteRef": sn.note_ref,
            "sharedBy": user_brief(sn.shared_by),
        }
    if item.kind == "flashcard":
        result = await db.execute(select(FlashcardDeck).where(FlashcardDeck.id == item.ref_id))
        deck = result.scalar_one_or_none()
        if deck is None:
            return None
        await db.refresh(deck, ["cards"])
        return {"id": deck.id, "title": deck.title, "cardsCount": len(deck.cards)}
    if item.kind == "quiz":
        result = await db.execute(select(Quiz).where(Quiz.id == item.ref_id))
        quiz = result.scalar_one_or_none()
        if quiz is None:
            return None
        return {"id": quiz.id, "title": quiz.title, "questionsCount": len(quiz.questions)}
    return None


async def get_shared_items(db: AsyncSession, user: User, space_id: str) -> List[dict]:
    space = await get_space_or_404(db, space_id)
    if not can_view(space, user.id):
        raise AuthorizationError("Only members can view shared content")

    result = await db.execute(
        select(SharedItem).where(SharedItem.space_id == space.id).order_by(SharedItem.id)
    )
    items = []
    users: dict = {}
    for pointer in result.scalars().all():
        entry = pointer.to_dict()
        # null when the target is gone; consumers must check
        entry["payload"] = await _hydrate(db, pointer)
        if pointer.shared_by_id not in users:
            u = await db.execute(select(User).where(User.id == pointer.shared_by_id))
            users[pointer.shared_by_id] = user_brief(u.scalar_one_or_none())
        entry["sharedByUser"] = users[pointer.shared_by_id]
        items.append(entry)
    return items


async def get_shared_notes(db: AsyncSession, user: User, space_id: str) -> List[dict]:
    space = await get_space_or_404(db, space_id)
    if not can_view(space, user.id):
        raise AuthorizationError("Only members can view shared content")

    result = await db.execute(
        select(SharedNote)
        .where(SharedNote.space_id == space.id)
        .order_by(SharedNote.created_at.desc(), SharedNote.id.desc())
    )
    return [
        {
            "id": n.id,
            "title": n.title,
            "content": n.content,
            "sharedBy": user_brief(n.shared_by),
            "createdAt": n.to_dict()["createdAt"],
        }
        for n in result.scalars().all()
    ]


async def purge_pointers(db: AsyncSession, kind: str, ref_id: int) -> List[str]:
    """Delete every pointer to a deck/quiz being deleted. Caller commits.

    Returns the affected space ids so the caller can notify them after commit.
    """
    result = await db.execute(
        select(SharedItem).where(SharedItem.kind == kind, SharedItem.ref_id == ref_id)
    )
    space_ids = []
    for pointer in result.scalars().all():
        if pointer.space_id not in space_ids:
            space_ids.append(pointer.space_id)
        await db.delete(pointer)
    return space_ids


async def notify_purged(space_ids: List[str], kind: str, ref_id: int, actor_id: int) -> None:
    for space_id in space_ids:
        await notify(
            "space:unsharedItem",
            {"spaceId": space_id, "kind": kind, "refId": str(ref_id), "actorId": actor_id},
            space_room(space_id),
        )


# ── Chat ──────────────────────────────────────────────────────────────────────

async def post_message(db: AsyncSession, user: User, space_id: str, text: Optional[str]) -> dict:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Message text required")

    space = await get_space_or_404(db, space_id)
    _require_member(space, user, "Only members can post messages")

    msg = SpaceMessage(space_id=space.id, user_id=user.id, text=text)
    db.add(msg)
    await db.commit()

    result = await db.execute(
        select(SpaceMessage)
        .where(SpaceMessage.id == msg.id)
        .execution_options(populate_existing=True)
    )
    payload = result.scalar_one().to_dict()

    logger.info("space.message_posted", space_id=space.id, user_id=user.id, message_id=msg.id)
    await notify("space:message", payload, space_room(space.id))
    return payload


async def get_messages(
    db: AsyncSession, user: User, space_id: str, limit: Optional[int] = None
) -> List[dict]:
    if limit is None:
        limit = Config.MESSAGES_DEFAULT_LIMIT
    if limit < 1:
        raise ValidationError("limit must be a positive integer")
    limit = min(Config.MESSAGES_MAX_LIMIT, limit)

    space = await get_space_or_404(db, space_id)
    if not can_view(space, user.id):
        raise AuthorizationError("Only members can read messages")

    result = await db.execute(
        select(SpaceMessage)
        .where(SpaceMessage.space_id == space.id)
        .order_by(SpaceMessage.created_at.desc(), SpaceMessage.id.desc())
        .limit(limit)
    )
    newest_first = result.scalars().all()
    return [m.to_dict() for m in reversed(newest_first)]


