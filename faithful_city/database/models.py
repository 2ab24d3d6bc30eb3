"""
faithful_city.database.models — SQLAlchemy 2.0 Data Models
===========================================================

Tables:
- families        — The tenant unit every piece of content is scoped to
- accounts        — Member profiles (PK is the identity provider's subject)
- posts           — Announcements, discussions, prayer requests
- post_likes      — One row per (post, account) like
- comments        — Ordered replies on a post
- media           — Photo/audio metadata pointing at object storage
- notifications   — Family broadcasts or single-account notices
- quiz_questions  — Bible trivia bank
- quiz_attempts   — Append-only answer journal
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Faithful City ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Role(enum.StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


class PostType(enum.StrEnum):
    ANNOUNCEMENT = "announcement"
    DISCUSSION = "discussion"
    PRAYER_REQUEST = "prayer-request"


class MediaType(enum.StrEnum):
    PHOTO = "photo"
    AUDIO = "audio"


class NotificationCategory(enum.StrEnum):
    ANNOUNCEMENT = "announcement"
    MEDIA = "media"
    GENERAL = "general"
    QUIZ = "quiz"


class Difficulty(enum.StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# ---------------------------------------------------------------------------
# Families
# ---------------------------------------------------------------------------
class Family(Base):
    __tablename__ = "families"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    # Incremented on join, never recomputed from membership.
    member_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Family id={self.id} name={self.name!r} members={self.member_count}>"


# ---------------------------------------------------------------------------
# Accounts — one row per signed-up member
# ---------------------------------------------------------------------------
class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    family_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("families.id", ondelete="SET NULL"), default=None
    )
    role: Mapped[str] = mapped_column(String(10), default=Role.MEMBER.value)
    quiz_score: Mapped[int] = mapped_column(Integer, default=0)
    quiz_streak: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_accounts_family_score", "family_id", "quiz_score"),
    )

    def __repr__(self) -> str:
        return f"<Account id={self.id} name={self.display_name!r} role={self.role}>"


# ---------------------------------------------------------------------------
# Posts, likes, comments
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    family_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("families.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    author_name: Mapped[str] = mapped_column(String(100), nullable=False)  # snapshot
    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    likes: Mapped[list[PostLike]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )
    comments: Mapped[list[Comment]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )

    __table_args__ = (
        Index("ix_posts_family_created", "family_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Post id={self.id} type={self.type} author={self.author_name!r}>"


class PostLike(Base):
    __tablename__ = "post_likes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    post: Mapped[Post] = relationship(back_populates="likes")

    __table_args__ = (
        UniqueConstraint("post_id", "account_id", name="uq_post_likes_post_account"),
    )


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    author_name: Mapped[str] = mapped_column(String(100), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    post: Mapped[Post] = relationship(back_populates="comments")

    __table_args__ = (
        Index("ix_comments_post_created", "post_id", "created_at"),
    )


# ---------------------------------------------------------------------------
# Media — metadata for blobs held in object storage
# ---------------------------------------------------------------------------
class Media(Base):
    __tablename__ = "media"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    family_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("families.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(300), nullable=False)
    uploaded_by: Mapped[str] = mapped_column(String(64), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_media_family_uploaded", "family_id", "uploaded_at"),
    )

    def __repr__(self) -> str:
        return f"<Media id={self.id} type={self.type} title={self.title!r}>"


# ---------------------------------------------------------------------------
# Notifications — account_id NULL means broadcast to the whole family
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    family_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("families.id", ondelete="CASCADE"), nullable=False
    )
    account_id: Mapped[str | None] = mapped_column(String(64), default=None)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_notifications_family_created", "family_id", "created_at"),
    )


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------
class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    correct_answer: Mapped[str] = mapped_column(String(300), nullable=False)
    options: Mapped[list] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )
    difficulty: Mapped[str] = mapped_column(String(10), nullable=False)
    bible_reference: Mapped[str] = mapped_column(String(100), default="")

    def __repr__(self) -> str:
        return f"<QuizQuestion id={self.id} difficulty={self.difficulty}>"


class QuizAttempt(Base):
    """Immutable record of one answer.  Never updated after insert."""
    __tablename__ = "quiz_attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    family_id: Mapped[str | None] = mapped_column(String(36), default=None)
    question_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False
    )
    user_answer: Mapped[str] = mapped_column(String(300), nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_quiz_attempts_account_created", "account_id", "created_at"),
    )
