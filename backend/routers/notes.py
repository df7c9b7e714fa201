"""
routers/notes.py — Personal notes (text, uploaded file or Google Docs link),
publishing and bookmarks.

Create/update take multipart form fields so a file can ride along.
"""

import re
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, Response, UploadFile
from sqlalchemy import delete, select

from dependencies import DB, CurrentUser
from logging_config import get_logger
from models_async import Bookmark, Note, User
from services.registry import file_service
from utils.cache import conditional_response

logger = get_logger(__name__)

router = APIRouter(prefix="/notes", tags=["notes"])

NOTE_TYPES = ("text", "file", "google_docs")
GOOGLE_DOCS_PREFIX = "https://docs.google.com"

_DOC_PATTERNS = (
    (re.compile(r"/document/d/([a-zA-Z0-9-_]+)"), "document"),
    (re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)"), "spreadsheets"),
    (re.compile(r"/presentation/d/([a-zA-Z0-9-_]+)"), "presentation"),
    (re.compile(r"/d/([a-zA-Z0-9-_]+)"), "document"),
)


def google_preview_url(raw_url: Optional[str]) -> Optional[str]:
    """Read-only ``/preview`` form of a Google Docs/Sheets/Slides link."""
    if not raw_url:
        return None
    url = raw_url.strip()
    for pattern, kind in _DOC_PATTERNS:
        match = pattern.search(url)
        if match:
            return f"https://docs.google.com/{kind}/d/{match.group(1)}/preview"
    if "docs.google.com" in url and "/edit" in url:
        return url.replace("/edit", "/preview", 1)
    return url


def _note_view(note: Note, viewer: User) -> dict:
    if note.note_type == "google_docs" and note.is_public and note.user_id != viewer.id:
        return note.to_dict(docs_url=google_preview_url(note.docs_url))
    return note.to_dict()


def _check_docs_url(docs_url: Optional[str]) -> None:
    if docs_url and not docs_url.startswith(GOOGLE_DOCS_PREFIX):
        raise HTTPException(status_code=400, detail="Invalid Google Docs URL")


async def _own_note_or_404(db, note_id: int, user: User) -> Note:
    result = await db.execute(select(Note).where(Note.id == note_id, Note.user_id == user.id))
    note = result.scalar_one_or_none()
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


async def _readable_note(db, note_id: int, user: User) -> Note:
    result = await db.execute(select(Note).where(Note.id == note_id))
    note = result.scalar_one_or_none()
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    if not note.is_public and note.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not authorized to view this note")
    return note


@router.post("", status_code=201)
async def create_note(
    current_user: CurrentUser,
    db: DB,
    title: Optional[str] = Form(None),
    note_type: Optional[str] = Form(None, alias="type"),
    description: str = Form(""),
    content: str = Form(""),
    docs_url: Optional[str] = Form(None, alias="docsUrl"),
    file: Optional[UploadFile] = File(None),
):
    if not title or not title.strip() or not note_type:
        raise HTTPException(status_code=400, detail="Please provide all required fields")
    if note_type not in NOTE_TYPES:
        raise HTTPException(status_code=400, detail="type must be one of: text, file, google_docs")

    note = Note(
        user=current_user,
        title=title.strip(),
        description=description or "",
        note_type=note_type,
        content=content or "",
        is_public=False,
    )
    if note_type == "file" and file is not None and file.filename:
        data = await file.read()
        note.file_url = file_service.save_upload(file.filename, data)
    elif note_type == "google_docs" and docs_url:
        _check_docs_url(docs_url)
        note.docs_url = docs_url

    db.add(note)
    await db.commit()
    logger.info("note.created", note_id=note.id, user_id=current_user.id, note_type=note_type)
    return {"note": note.to_dict()}


@router.get("")
async def list_notes(current_user: CurrentUser, db: DB):
    result = await db.execute(
        select(Note).where(Note.user_id == current_user.id).order_by(Note.created_at.desc())
    )
    return {"notes": [n.to_dict() for n in result.scalars().all()]}


@router.get("/public")
async def list_public_notes(request: Request, response: Response, current_user: CurrentUser, db: DB):
    result = await db.execute(
        select(Note).where(Note.is_public.is_(True)).order_by(Note.created_at.desc(), Note.id.desc())
    )
    data = {"notes": [_note_view(n, current_user) for n in result.scalars().all()]}
    # per-viewer: docs links differ for the owner
    return conditional_response(request, response, data, cache_control="private, no-cache")


@router.get("/bookmarks")
async def list_bookmarks(current_user: CurrentUser, db: DB):
    result = await db.execute(
        select(Note)
        .join(Bookmark, Bookmark.note_id == Note.id)
        .where(Bookmark.user_id == current_user.id)
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
    )
    return {"notes": [_note_view(n, current_user) for n in result.scalars().all()]}


@router.get("/{note_id}")
async def get_note(note_id: int, current_user: CurrentUser, db: DB):
    note = await _readable_note(db, note_id, current_user)
    return {"note": _note_view(note, current_user)}


@router.put("/{note_id}")
async def update_note(
    note_id: int,
    current_user: CurrentUser,
    db: DB,
    title: Optional[str] = Form(None),
    note_type: Optional[str] = Form(None, alias="type"),
    description: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    docs_url: Optional[str] = Form(None, alias="docsUrl"),
    file: Optional[UploadFile] = File(None),
):
    note = await _own_note_or_404(db, note_id, current_user)
    if note_type is not None and note_type not in NOTE_TYPES:
        raise HTTPException(status_code=400, detail="type must be one of: text, file, google_docs")
    if title is not None and not title.strip():
        raise HTTPException(status_code=400, detail="Title cannot be empty")

    if file is not None and file.filename:
        data = await file.read()
        new_url = file_service.save_upload(file.filename, data)
        file_service.delete_upload(note.file_url)
        note.file_url = new_url
        note.note_type = "file"
    elif note_type == "google_docs":
        _check_docs_url(docs_url)
        note.docs_url = docs_url or note.docs_url
        note.note_type = "google_docs"
    elif note_type is not None:
        note.note_type = note_type

    if title is not None:
        note.title = title.strip()
    if description is not None:
        note.description = description
    if content is not None:
        note.content = content

    await db.commit()
    logger.info("note.updated", note_id=note.id, user_id=current_user.id)
    return {"note": note.to_dict()}


@router.delete("/{note_id}")
async def delete_note(note_id: int, current_user: CurrentUser, db: DB):
    note = await _own_note_or_404(db, note_id, current_user)
    file_url = note.file_url

    await db.execute(delete(Bookmark).where(Bookmark.note_id == note.id))
    await db.delete(note)
    await db.commit()

    file_service.delete_upload(file_url)
    logger.info("note.deleted", note_id=note_id, user_id=current_user.id)
    return {"message": "Note deleted successfully"}


@router.put("/{note_id}/publish")
async def toggle_publish(note_id: int, current_user: CurrentUser, db: DB):
    note = await _own_note_or_404(db, note_id, current_user)
    note.is_public = not note.is_public
    await db.commit()
    logger.info("note.publish_toggled", note_id=note.id, is_public=note.is_public)
    return {"note": note.to_dict()}


# ── Bookmarks ─────────────────────────────────────────────────────────────────

@router.post("/{note_id}/bookmark", status_code=201)
async def add_bookmark(note_id: int, current_user: CurrentUser, db: DB):
    note = await _readable_note(db, note_id, current_user)
    result = await db.execute(
        select(Bookmark).where(Bookmark.user_id == current_user.id, Bookmark.note_id == note.id)
    )
    if result.scalar_one_or_none() is None:
        db.add(Bookmark(user_id=current_user.id, note_id=note.id))
        await db.commit()
    return {"message": "Bookmarked", "noteId": note.id}


@router.delete("/{note_id}/bookmark")
async def remove_bookmark(note_id: int, current_user: CurrentUser, db: DB):
    result = await db.execute(
        select(Bookmark).where(Bookmark.user_id == current_user.id, Bookmark.note_id == note_id)
    )
    bookmark = result.scalar_one_or_none()
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    await db.delete(bookmark)
    await db.commit()
    return {"message": "Bookmark removed", "noteId": note_id}
