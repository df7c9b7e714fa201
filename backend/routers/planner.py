"""
routers/planner.py — Study planner: calendar events and dated tasks.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy import select

from dependencies import DB, CurrentUser
from models_async import StudyEvent, StudyTask
from schemas import EventCreate, EventUpdate, TaskCreate, TaskUpdate

router = APIRouter(prefix="/study", tags=["planner"])


def _naive_utc(value: datetime) -> datetime:
    """Stored datetimes are naive UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _day_bounds(day: date):
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


async def _owned(db, model, item_id: int, user_id: int, label: str):
    result = await db.execute(select(model).where(model.id == item_id))
    item = result.scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    if item.user_id != user_id:
        raise HTTPException(status_code=403, detail=f"Not authorized to modify this {label.lower()}")
    return item


# ── Events ────────────────────────────────────────────────────────────────────

@router.post("/events", status_code=201)
async def create_event(data: EventCreate, current_user: CurrentUser, db: DB):
    if not (data.title or "").strip() or not data.start_date or not data.end_date:
        raise HTTPException(status_code=400, detail="title, startDate and endDate are required")

    event = StudyEvent(
        user_id=current_user.id,
        title=data.title.strip(),
        description=data.description or "",
        start_date=_naive_utc(data.start_date),
        end_date=_naive_utc(data.end_date),
    )
    db.add(event)
    await db.commit()
    return {"event": event.to_dict()}


@router.get("/events")
async def list_events(
    current_user: CurrentUser, db: DB, day: Optional[date] = Query(None, alias="date")
):
    query = select(StudyEvent).where(StudyEvent.user_id == current_user.id)
    if day is not None:
        day_start, day_end = _day_bounds(day)
        # overlap: starts before the day ends and ends after it starts
        query = query.where(StudyEvent.start_date <= day_end, StudyEvent.end_date >= day_start)
    result = await db.execute(query.order_by(StudyEvent.start_date, StudyEvent.id))
    return {"events": [e.to_dict() for e in result.scalars().all()]}


@router.put("/events/{event_id}")
async def update_event(event_id: int, data: EventUpdate, current_user: CurrentUser, db: DB):
    event = await _owned(db, StudyEvent, event_id, current_user.id, "Event")

    if data.title is not None:
        event.title = data.title
    if data.description is not None:
        event.description = data.description
    if data.start_date is not None:
        event.start_date = _naive_utc(data.start_date)
    if data.end_date is not None:
        event.end_date = _naive_utc(data.end_date)
    if data.is_completed is not None:
        event.is_completed = data.is_completed
    await db.commit()
    return {"event": event.to_dict()}


@router.delete("/events/{event_id}")
async def delete_event(event_id: int, current_user: CurrentUser, db: DB):
    event = await _owned(db, StudyEvent, event_id, current_user.id, "Event")
    await db.delete(event)
    await db.commit()
    return {"message": "Event removed"}


# ── Tasks ─────────────────────────────────────────────────────────────────────

@router.post("/tasks", status_code=201)
async def create_task(data: TaskCreate, current_user: CurrentUser, db: DB):
    if not (data.title or "").strip() or not data.due_date:
        raise HTTPException(status_code=400, detail="title and dueDate are required")

    task = StudyTask(
        user_id=current_user.id,
        title=data.title.strip(),
        description=data.description or "",
        due_date=_naive_utc(data.due_date),
    )
    db.add(task)
    await db.commit()
    return {"task": task.to_dict()}


@router.get("/tasks")
async def list_tasks_for_day(
    current_user: CurrentUser, db: DB, day: Optional[date] = Query(None, alias="date")
):
    if day is None:
        raise HTTPException(status_code=400, detail="date query parameter is required (YYYY-MM-DD)")

    day_start, day_end = _day_bounds(day)
    result = await db.execute(
        select(StudyTask)
        .where(
            StudyTask.user_id == current_user.id,
            StudyTask.due_date >= day_start,
            StudyTask.due_date <= day_end,
        )
        .order_by(StudyTask.is_completed, StudyTask.due_date, StudyTask.id)
    )
    return {"tasks": [t.to_dict() for t in result.scalars().all()]}


@router.get("/tasks/all")
async def list_all_tasks(current_user: CurrentUser, db: DB):
    result = await db.execute(
        select(StudyTask)
        .where(StudyTask.user_id == current_user.id)
        .order_by(StudyTask.due_date, StudyTask.id)
    )
    return {"tasks": [t.to_dict() for t in result.scalars().all()]}


@router.put("/tasks/{task_id}")
async def update_task(task_id: int, data: TaskUpdate, current_user: CurrentUser, db: DB):
    task = await _owned(db, StudyTask, task_id, current_user.id, "Task")

    if data.title is not None:
        task.title = data.title
    if data.description is not None:
        task.description = data.description
    if data.due_date is not None:
        task.due_date = _naive_utc(data.due_date)
    if data.is_completed is not None:
        task.is_completed = data.is_completed
    await db.commit()
    return {"task": task.to_dict()}


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: int, current_user: CurrentUser, db: DB):
    task = await _owned(db, StudyTask, task_id, current_user.id, "Task")
    await db.delete(task)
    await db.commit()
    return {"message": "Task removed"}
