"""
faithful_city.engine.views — Detached Read Models
==================================================

Frozen snapshots handed to callers and subscribers.  They never hold a
reference to an ORM session, so they are safe to pass across threads and
to serialize straight into API responses.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from faithful_city.database.models import (
    Account,
    Comment,
    Family,
    Media,
    Notification,
    Post,
    QuizQuestion,
)


@dataclass(frozen=True, slots=True)
class AccountView:
    id: str
    email: str
    display_name: str
    family_id: str | None
    role: str
    quiz_score: int
    quiz_streak: int
    created_at: datetime | None

    @classmethod
    def from_row(cls, row: Account) -> AccountView:
        return cls(
            id=row.id,
            email=row.email,
            display_name=row.display_name,
            family_id=row.family_id,
            role=row.role,
            quiz_score=row.quiz_score,
            quiz_streak=row.quiz_streak,
            created_at=row.created_at,
        )


@dataclass(frozen=True, slots=True)
class FamilyView:
    id: str
    name: str
    description: str
    image_url: str | None
    member_count: int
    created_at: datetime | None

    @classmethod
    def from_row(cls, row: Family) -> FamilyView:
        return cls(
            id=row.id,
            name=row.name,
            description=row.description or "",
            image_url=row.image_url,
            member_count=row.member_count,
            created_at=row.created_at,
        )


@dataclass(frozen=True, slots=True)
class CommentView:
    id: str
    author_id: str
    author_name: str
    content: str
    created_at: datetime | None

    @classmethod
    def from_row(cls, row: Comment) -> CommentView:
        return cls(
            id=row.id,
            author_id=row.author_id,
            author_name=row.author_name,
            content=row.content,
            created_at=row.created_at,
        )


@dataclass(frozen=True, slots=True)
class PostView:
    """A post hydrated with its like-set and comment thread."""

    id: str
    family_id: str
    author_id: str
    author_name: str
    content: str
    type: str
    created_at: datetime | None
    likes: list[str] = field(default_factory=list)
    comments: list[CommentView] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Post) -> PostView:
        return cls(
            id=row.id,
            family_id=row.family_id,
            author_id=row.author_id,
            author_name=row.author_name,
            content=row.content,
            type=row.type,
            created_at=row.created_at,
            likes=[like.account_id for like in row.likes],
            comments=[CommentView.from_row(c) for c in row.comments],
        )


@dataclass(frozen=True, slots=True)
class MediaView:
    id: str
    family_id: str
    type: str
    title: str
    description: str | None
    url: str
    uploaded_by: str
    uploaded_at: datetime | None

    @classmethod
    def from_row(cls, row: Media) -> MediaView:
        return cls(
            id=row.id,
            family_id=row.family_id,
            type=row.type,
            title=row.title,
            description=row.description,
            url=row.url,
            uploaded_by=row.uploaded_by,
            uploaded_at=row.uploaded_at,
        )


@dataclass(frozen=True, slots=True)
class NotificationView:
    id: str
    family_id: str
    account_id: str | None
    title: str
    message: str
    type: str
    is_read: bool
    created_at: datetime | None

    @classmethod
    def from_row(cls, row: Notification) -> NotificationView:
        return cls(
            id=row.id,
            family_id=row.family_id,
            account_id=row.account_id,
            title=row.title,
            message=row.message,
            type=row.type,
            is_read=bool(row.is_read),
            created_at=row.created_at,
        )


@dataclass(frozen=True, slots=True)
class QuestionView:
    """A quiz question as shown to a player.

    ``correct_answer`` is carried so a client-side round can reveal it after
    submission; the HTTP layer strips it from the question payload.
    """

    id: str
    question: str
    correct_answer: str
    options: list[str]
    difficulty: str
    bible_reference: str

    @classmethod
    def from_row(cls, row: QuizQuestion) -> QuestionView:
        return cls(
            id=row.id,
            question=row.question,
            correct_answer=row.correct_answer,
            options=list(row.options or []),
            difficulty=row.difficulty,
            bible_reference=row.bible_reference or "",
        )


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    id: str
    display_name: str
    quiz_score: int
    quiz_streak: int


def to_dict(view: Any) -> dict:
    """Serialize a view (or nested views) to a JSON-friendly dict."""
    raw = asdict(view)
    return {k: _jsonable(v) for k, v in raw.items()}


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value
