"""
routers/pomodoro.py — Pomodoro focus sessions.

Work length (minutes) picks the break length from ``Config.POMODORO_BREAKS``.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException
from sqlalchemy import select

from config import Config
from dependencies import DB, CurrentUser
from logging_config import get_logger
from models_async import PomodoroSession
from schemas import PomodoroEnd, PomodoroStart

logger = get_logger(__name__)

router = APIRouter(prefix="/pomodoro", tags=["pomodoro"])


@router.post("/start", status_code=201)
async def start_session(data: PomodoroStart, current_user: CurrentUser, db: DB):
    if data.duration not in Config.POMODORO_BREAKS:
        allowed = ",".join(str(d) for d in sorted(Config.POMODORO_BREAKS))
        raise HTTPException(status_code=400, detail=f"Invalid duration. Allowed: {allowed}")

    session = PomodoroSession(
        user_id=current_user.id,
        duration=data.duration,
        break_length=Config.POMODORO_BREAKS[data.duration],
        status="running",
        start_time=datetime.utcnow(),
    )
    db.add(session)
    await db.commit()
    logger.info("pomodoro.started", session_id=session.id, user_id=current_user.id, duration=data.duration)
    return {"session": session.to_dict()}


@router.post("/end")
async def end_session(data: PomodoroEnd, current_user: CurrentUser, db: DB):
    if not data.session_id:
        raise HTTPException(status_code=400, detail="sessionId required")

    result = await db.execute(
        select(PomodoroSession).where(
            PomodoroSession.id == data.session_id,
            PomodoroSession.user_id == current_user.id,
        )
    )
    session = result.scalar_one_or_none()
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    if data.status is not None:
        session.status = data.status
    if data.end_time is not None:
        end_time = data.end_time
        if end_time.tzinfo is not None:
            end_time = end_time.astimezone(timezone.utc).replace(tzinfo=None)
        session.end_time = end_time
    if data.focus_seconds is not None:
        session.focus_seconds = data.focus_seconds
    if data.break_seconds is not None:
        session.break_seconds = data.break_seconds
    if session.status == "completed" and session.end_time is None:
        session.end_time = datetime.utcnow()

    await db.commit()
    logger.info("pomodoro.updated", session_id=session.id, status=session.status)
    return {"session": session.to_dict()}


@router.get("/history")
async def get_history(current_user: CurrentUser, db: DB):
    result = await db.execute(
        select(PomodoroSession)
        .where(PomodoroSession.user_id == current_user.id)
        .order_by(PomodoroSession.created_at.desc(), PomodoroSession.id.desc())
    )
    return {"sessions": [s.to_dict() for s in result.scalars().all()]}
