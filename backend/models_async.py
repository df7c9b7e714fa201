"""SQLAlchemy 2.x models (async-compatible) for FastAPI.

Responses use camelCase keys because the SPA consumes them directly.
Space membership lives only in ``space_members``; the members / join-request
lists of a space are views over that table filtered by ``status``.
"""

import json
import uuid
from datetime import datetime
from typing import Optional, List

from sqlalchemy import (
    Boolean, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def user_brief(user: Optional["User"]) -> Optional[dict]:
    """Display fields attached wherever a user is referenced."""
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "username": user.username}


# ── Users ─────────────────────────────────────────────────────────────────────

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(60), unique=True, nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    bio: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "bio": self.bio or "",
            "createdAt": _iso(self.created_at),
        }


class Bookmark(Base):
    __tablename__ = "bookmarks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    note_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "note_id", name="_user_note_bookmark_uc"),
    )


# ── Notes ─────────────────────────────────────────────────────────────────────

class Note(Base):
    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    note_type: Mapped[str] = mapped_column(String(20), nullable=False, default="text")
    content: Mapped[str] = mapped_column(Text, default="")
    file_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    docs_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship("User", lazy="selectin")

    def to_dict(self, docs_url: Optional[str] = None):
        return {
            "id": self.id,
            "user": user_brief(self.user),
            "title": self.title,
            "description": self.description or "",
            "type": self.note_type,
            "content": self.content or "",
            "fileUrl": self.file_url,
            "docsUrl": docs_url if docs_url is not None else self.docs_url,
            "isPublic": self.is_public,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


# ── Flashcards ────────────────────────────────────────────────────────────────

class FlashcardDeck(Base):
    __tablename__ = "flashcard_decks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(120), default="")
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship("User", lazy="selectin")
    cards: Mapped[List["Flashcard"]] = relationship(
        "Flashcard",
        back_populates="deck",
        cascade="all, delete-orphan",
        order_by="Flashcard.id",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "subject": self.subject or "",
            "isPublic": self.is_public,
            "user": user_brief(self.user),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Flashcard(Base):
    __tablename__ = "flashcards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    deck_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("flashcard_decks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    remembered_count: Mapped[int] = mapped_column(Integer, default=0)
    forgotten_count: Mapped[int] = mapped_column(Integer, default=0)
    last_reviewed: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    deck: Mapped["FlashcardDeck"] = relationship("FlashcardDeck", back_populates="cards")

    def to_dict(self):
        return {
            "id": self.id,
            "deck": self.deck_id,
            "question": self.question,
            "answer": self.answer,
            "rememberedCount": self.remembered_count or 0,
            "forgottenCount": self.forgotten_count or 0,
            "lastReviewed": _iso(self.last_reviewed),
            "createdAt": _iso(self.created_at),
        }


# ── Quizzes ───────────────────────────────────────────────────────────────────

class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    questions_json: Mapped[str] = mapped_column(Text, default="[]")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def questions(self) -> list:
        return json.loads(self.questions_json or "[]")

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description or "",
            "questions": self.questions,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class QuizHistory(Base):
    __tablename__ = "quiz_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # kept after the quiz itself is deleted
    quiz_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("quizzes.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), default="Completed Quiz")
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    answers_json: Mapped[str] = mapped_column(Text, default="[]")
    taken_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "quizId": self.quiz_id,
            "title": self.title,
            "score": self.score,
            "total": self.total,
            "answers": json.loads(self.answers_json or "[]"),
            "percentage": round(self.score / self.total * 100, 1) if self.total > 0 else 0,
            "takenAt": _iso(self.taken_at),
        }


# ── Study planner ─────────────────────────────────────────────────────────────

class StudyEvent(Base):
    __tablename__ = "study_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description or "",
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "isCompleted": self.is_completed,
            "createdAt": _iso(self.created_at),
        }


class StudyTask(Base):
    __tablename__ = "study_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description or "",
            "dueDate": _iso(self.due_date),
            "isCompleted": self.is_completed,
            "createdAt": _iso(self.created_at),
        }


# ── Pomodoro ──────────────────────────────────────────────────────────────────

class PomodoroSession(Base):
    __tablename__ = "pomodoro_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    break_length: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="started")
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    focus_seconds: Mapped[int] = mapped_column(Integer, default=0)
    break_seconds: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user": self.user_id,
            "duration": self.duration,
            "breakLength": self.break_length,
            "status": self.status,
            "startTime": _iso(self.start_time),
            "endTime": _iso(self.end_time),
            "focusSeconds": self.focus_seconds or 0,
            "breakSeconds": self.break_seconds or 0,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


# ── Spaces ────────────────────────────────────────────────────────────────────

class Space(Base):
    __tablename__ = "spaces"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    admin_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    admin: Mapped["User"] = relationship("User", lazy="selectin")
    memberships: Mapped[List["SpaceMember"]] = relationship(
        "SpaceMember",
        back_populates="space",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SpaceMember.id",
    )

    @property
    def members(self) -> List["SpaceMember"]:
        return [m for m in self.memberships if m.status == "approved"]

    @property
    def join_requests(self) -> List["SpaceMember"]:
        return [m for m in self.memberships if m.status == "requested"]

    def to_summary(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description or "",
            "isPublic": self.is_public,
            "admin": self.admin_id,
            "memberCount": len(self.members),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def to_dict(self):
        d = self.to_summary()
        d["admin"] = user_brief(self.admin)
        d["members"] = [
            {"user": user_brief(m.user), "role": m.role, "joinedAt": _iso(m.approved_at)}
            for m in self.members
        ]
        d["joinRequests"] = [
            {"memberId": m.id, "user": user_brief(m.user), "requestedAt": _iso(m.requested_at)}
            for m in self.join_requests
        ]
        return d


class SpaceMember(Base):
    """One user's relationship to one space: requested → approved | rejected, approved → left."""

    __tablename__ = "space_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(20), default="member")
    status: Mapped[str] = mapped_column(String(20), default="requested")
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    left_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    space: Mapped["Space"] = relationship("Space", back_populates="memberships")
    user: Mapped["User"] = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "space_id", name="_user_space_member_uc"),
    )

    def approve(self, role: str = "member"):
        self.status = "approved"
        self.role = role
        self.approved_at = datetime.utcnow()

    def reject(self):
        self.status = "rejected"
        self.rejected_at = datetime.utcnow()

    def leave(self):
        self.status = "left"
        self.left_at = datetime.utcnow()

    def to_dict(self):
        return {
            "id": self.id,
            "spaceId": self.space_id,
            "user": user_brief(self.user),
            "role": self.role,
            "status": self.status,
            "requestedAt": _iso(self.requested_at),
            "approvedAt": _iso(self.approved_at),
            "rejectedAt": _iso(self.rejected_at),
            "leftAt": _iso(self.left_at),
        }


class SharedItem(Base):
    """Pointer from a space to a note snapshot, flashcard deck or quiz."""

    __tablename__ = "shared_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    ref_id: Mapped[int] = mapped_column(Integer, nullable=False)
    shared_by_id: Mapped[int] = mapped_column(Integer, nullable=False)
    shared_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    meta_json: Mapped[str] = mapped_column(Text, default="{}")

    def to_dict(self):
        return {
            "kind": self.kind,
            "refId": str(self.ref_id),
            "sharedBy": self.shared_by_id,
            "sharedAt": _iso(self.shared_at),
            "meta": json.loads(self.meta_json or "{}"),
        }


class SharedNote(Base):
    """Snapshot of a note at share time; independent of the source note."""

    __tablename__ = "shared_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    note_ref: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("notes.id", ondelete="SET NULL"), nullable=True
    )
    shared_by_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), default="")
    content: Mapped[str] = mapped_column(Text, default="")
    meta_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    shared_by: Mapped["User"] = relationship("User", lazy="selectin")

    def to_dict(self):
        return {
            "id": self.id,
            "space": self.space_id,
            "noteRef": self.note_ref,
            "sharedBy": user_brief(self.shared_by),
            "title": self.title or "",
            "content": self.content or "",
            "meta": json.loads(self.meta_json or "{}"),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class SpaceMessage(Base):
    __tablename__ = "space_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    space_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    meta_json: Mapped[str] = mapped_column(Text, default="{}")
    edited: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship("User", lazy="selectin")

    def to_dict(self):
        return {
            "id": self.id,
            "spaceId": self.space_id,
            "user": user_brief(self.user),
            "text": self.text,
            "meta": json.loads(self.meta_json or "{}"),
            "edited": self.edited,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
