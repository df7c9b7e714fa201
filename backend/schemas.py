"""Pydantic v2 request schemas for FastAPI.

Field aliases follow the camelCase names the SPA sends.
"""

import re
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Auth ──────────────────────────────────────────────────────────────────────

class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    password: str = Field(min_length=8)
    username: Optional[str] = None
    bio: str = ""

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        v = v.strip().lower()
        parts = v.split("@")
        if len(parts) != 2 or not parts[0] or "." not in parts[1]:
            raise ValueError("Invalid email address")
        return v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[0-9]", v):
            raise ValueError("Password must contain at least one number")
        if not re.search(r"[^A-Za-z0-9]", v):
            raise ValueError("Password must contain at least one special character")
        return v

    @field_validator("username")
    @classmethod
    def username_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


# ── Spaces ────────────────────────────────────────────────────────────────────

class SpaceCreate(_CamelModel):
    title: Optional[str] = None
    description: str = ""
    is_public: bool = Field(True, alias="isPublic")


class JoinDecision(_CamelModel):
    action: Optional[str] = None


class RemoveMemberRequest(_CamelModel):
    user_id: Optional[int] = Field(None, alias="userId")


class ShareNoteRequest(_CamelModel):
    note_ref: Optional[int] = Field(None, alias="noteRef")
    title: Optional[str] = None
    content: Optional[str] = None
    meta: dict = Field(default_factory=dict)


class ShareFlashcardRequest(_CamelModel):
    deck_id: Optional[int] = Field(None, alias="deckId")


class ShareQuizRequest(_CamelModel):
    quiz_id: Optional[int] = Field(None, alias="quizId")


class UnshareRequest(_CamelModel):
    kind: Optional[str] = None
    ref_id: Optional[str] = Field(None, alias="refId")

    @field_validator("ref_id", mode="before")
    @classmethod
    def stringify_ref(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class MessageCreate(_CamelModel):
    text: Optional[str] = None


# ── Flashcards ────────────────────────────────────────────────────────────────

class DeckCreate(_CamelModel):
    title: Optional[str] = None
    subject: str = ""
    is_public: bool = Field(False, alias="isPublic")


class DeckUpdate(_CamelModel):
    title: Optional[str] = None
    subject: Optional[str] = None
    is_public: Optional[bool] = Field(None, alias="isPublic")


class CardIn(BaseModel):
    question: str = ""
    answer: str = ""


class CardsCreate(BaseModel):
    cards: List[CardIn] = []


class CardUpdate(_CamelModel):
    question: Optional[str] = None
    answer: Optional[str] = None
    remembered_count: Optional[int] = Field(None, alias="rememberedCount")
    forgotten_count: Optional[int] = Field(None, alias="forgottenCount")
    last_reviewed: Optional[datetime] = Field(None, alias="lastReviewed")


# ── Quizzes ───────────────────────────────────────────────────────────────────

class QuizQuestion(_CamelModel):
    question_text: str = Field(alias="questionText")
    choices: List[str] = []
    correct_answer: str = Field(alias="correctAnswer")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class QuizCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    questions: List[QuizQuestion] = []


class QuizUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[QuizQuestion]] = None


class QuizGenerateRequest(_CamelModel):
    context_text: Optional[str] = Field(None, alias="contextText")
    num_questions: int = Field(5, alias="numQuestions")
    title: Optional[str] = None


class AnswerRecord(_CamelModel):
    question_text: str = Field("", alias="questionText")
    selected_answer: Optional[str] = Field(None, alias="selectedAnswer")
    correct_answer: Optional[str] = Field(None, alias="correctAnswer")


class QuizResultCreate(_CamelModel):
    quiz_id: Optional[int] = Field(None, alias="quizId")
    title: Optional[str] = None
    answers: Optional[List[AnswerRecord]] = None


# ── Study planner ─────────────────────────────────────────────────────────────

class EventCreate(_CamelModel):
    title: Optional[str] = None
    description: str = ""
    start_date: Optional[datetime] = Field(None, alias="startDate")
    end_date: Optional[datetime] = Field(None, alias="endDate")


class EventUpdate(_CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = Field(None, alias="startDate")
    end_date: Optional[datetime] = Field(None, alias="endDate")
    is_completed: Optional[bool] = Field(None, alias="isCompleted")


class TaskCreate(_CamelModel):
    title: Optional[str] = None
    description: str = ""
    due_date: Optional[datetime] = Field(None, alias="dueDate")


class TaskUpdate(_CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = Field(None, alias="dueDate")
    is_completed: Optional[bool] = Field(None, alias="isCompleted")


# ── Pomodoro ──────────────────────────────────────────────────────────────────

PomodoroStatus = Literal["started", "running", "paused", "onBreak", "completed"]


class PomodoroStart(BaseModel):
    duration: Optional[int] = None


class PomodoroEnd(_CamelModel):
    session_id: Optional[int] = Field(None, alias="sessionId")
    status: Optional[PomodoroStatus] = None
    end_time: Optional[datetime] = Field(None, alias="endTime")
    focus_seconds: Optional[int] = Field(None, alias="focusSeconds")
    break_seconds: Optional[int] = Field(None, alias="breakSeconds")
