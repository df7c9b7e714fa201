"""
routers/ai.py — Flashcard generation from pasted text or an uploaded file.

Accepts either a JSON body ``{"text": ...}`` or a multipart form with a
``text`` field and/or a ``file``; file content takes precedence.
"""

from fastapi import APIRouter, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.datastructures import UploadFile

from config import Config
from dependencies import CurrentUser
from logging_config import get_logger
from services.registry import ai_service, file_service

limiter = Limiter(key_func=get_remote_address, enabled=Config.RATELIMIT_ENABLED)
logger = get_logger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


async def _source_text(request: Request) -> str:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        text = form.get("text") or form.get("content") or ""
        upload = form.get("file")
        if isinstance(upload, UploadFile) and upload.filename:
            data = await upload.read()
            text = file_service.extract_text(upload.filename, data, upload.content_type or "")
        return str(text)

    try:
        body = await request.json()
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    return str(body.get("text") or body.get("content") or "")


@router.post("/generate-flashcards")
@limiter.limit("10/minute")
async def generate_flashcards(request: Request, current_user: CurrentUser):
    text = await _source_text(request)
    cards, degraded = await ai_service.generate_flashcards(text)
    logger.info(
        "ai.flashcards.request", user_id=current_user.id, count=len(cards), degraded=degraded
    )
    return {"flashcards": cards, "degraded": degraded}
