"""
routers/quizzes.py — Quiz CRUD, AI quiz generation and attempt history.

Quizzes are private to their owner; other users' quizzes read as 404.
"""

import json

from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select

from config import Config
from dependencies import DB, CurrentUser
from logging_config import get_logger
from models_async import Quiz, QuizHistory, User
from schemas import QuizCreate, QuizGenerateRequest, QuizResultCreate, QuizUpdate
from services import space_service
from services.registry import ai_service

limiter = Limiter(key_func=get_remote_address, enabled=Config.RATELIMIT_ENABLED)
logger = get_logger(__name__)

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


async def _own_quiz_or_404(db, quiz_id: int, user: User) -> Quiz:
    result = await db.execute(select(Quiz).where(Quiz.id == quiz_id, Quiz.user_id == user.id))
    quiz = result.scalar_one_or_none()
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return quiz


@router.post("", status_code=201)
async def create_quiz(data: QuizCreate, current_user: CurrentUser, db: DB):
    quiz = Quiz(
        user_id=current_user.id,
        title=data.title.strip(),
        description=data.description or "",
        questions_json=json.dumps([q.to_payload() for q in data.questions]),
    )
    db.add(quiz)
    await db.commit()
    logger.info("quiz.created", quiz_id=quiz.id, user_id=current_user.id)
    return {"quiz": quiz.to_dict()}


@router.post("/ai-generate", status_code=201)
@limiter.limit("10/minute")
async def ai_generate_quiz(
    data: QuizGenerateRequest, request: Request, current_user: CurrentUser, db: DB
):
    if not data.context_text or not data.context_text.strip():
        raise HTTPException(status_code=400, detail="contextText (string) is required")

    generated, degraded = await ai_service.generate_quiz(data.context_text, data.num_questions)
    quiz = Quiz(
        user_id=current_user.id,
        title=(data.title or "").strip() or generated.get("title") or "AI Generated Quiz",
        description="AI generated from user context",
        questions_json=json.dumps(generated["questions"]),
    )
    db.add(quiz)
    await db.commit()

    logger.info(
        "quiz.generated",
        quiz_id=quiz.id, user_id=current_user.id,
        questions=len(generated["questions"]), degraded=degraded,
    )
    return {"quiz": quiz.to_dict(), "degraded": degraded}


@router.get("")
async def list_quizzes(current_user: CurrentUser, db: DB):
    result = await db.execute(
        select(Quiz)
        .where(Quiz.user_id == current_user.id)
        .order_by(Quiz.created_at.desc(), Quiz.id.desc())
    )
    return {"quizzes": [q.to_dict() for q in result.scalars().all()]}


# ── History ───────────────────────────────────────────────────────────────────

@router.post("/history/record", status_code=201)
async def record_result(data: QuizResultCreate, current_user: CurrentUser, db: DB):
    if data.quiz_id is None or data.answers is None:
        raise HTTPException(status_code=400, detail="quizId and answers[] required")

    result = await db.execute(select(Quiz.id).where(Quiz.id == data.quiz_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Quiz not found")

    answers = [a.model_dump(by_alias=True) for a in data.answers]
    score = sum(1 for a in data.answers if a.selected_answer == a.correct_answer)
    history = QuizHistory(
        user_id=current_user.id,
        quiz_id=data.quiz_id,
        title=data.title or "Completed Quiz",
        score=score,
        total=len(answers),
        answers_json=json.dumps(answers),
    )
    db.add(history)
    await db.commit()
    logger.info(
        "quiz.attempt_recorded",
        quiz_id=data.quiz_id, user_id=current_user.id, score=score, total=len(answers),
    )
    return {"history": history.to_dict()}


@router.get("/history")
async def get_history(current_user: CurrentUser, db: DB):
    result = await db.execute(
        select(QuizHistory)
        .where(QuizHistory.user_id == current_user.id)
        .order_by(QuizHistory.taken_at.desc(), QuizHistory.id.desc())
    )
    return {"history": [h.to_dict() for h in result.scalars().all()]}


# ── Single quiz ───────────────────────────────────────────────────────────────

@router.get("/{quiz_id}")
async def get_quiz(quiz_id: int, current_user: CurrentUser, db: DB):
    quiz = await _own_quiz_or_404(db, quiz_id, current_user)
    return {"quiz": quiz.to_dict()}


@router.put("/{quiz_id}")
async def update_quiz(quiz_id: int, data: QuizUpdate, current_user: CurrentUser, db: DB):
    quiz = await _own_quiz_or_404(db, quiz_id, current_user)

    if data.title is not None:
        if not data.title.strip():
            raise HTTPException(status_code=400, detail="Title cannot be empty")
        quiz.title = data.title.strip()
    if data.description is not None:
        quiz.description = data.description
    if data.questions is not None:
        quiz.questions_json = json.dumps([q.to_payload() for q in data.questions])
    await db.commit()
    return {"quiz": quiz.to_dict()}


@router.delete("/{quiz_id}")
async def delete_quiz(quiz_id: int, current_user: CurrentUser, db: DB):
    quiz = await _own_quiz_or_404(db, quiz_id, current_user)

    space_ids = await space_service.purge_pointers(db, "quiz", quiz.id)
    await db.delete(quiz)
    await db.commit()

    logger.info("quiz.deleted", quiz_id=quiz_id, user_id=current_user.id, purged_spaces=len(space_ids))
    await space_service.notify_purged(space_ids, "quiz", quiz_id, current_user.id)
    return {"message": "Deleted"}
