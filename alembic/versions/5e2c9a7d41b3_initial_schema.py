"""Initial schema: families, accounts, feed, media, notifications, quiz

Revision ID: 5e2c9a7d41b3
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5e2c9a7d41b3"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Create every table with its indexes."""
    op.create_table(
        "families",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column(
            "family_id",
            sa.String(36),
            sa.ForeignKey("families.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("role", sa.String(10), nullable=False, server_default="member"),
        sa.Column("quiz_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quiz_streak", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_index("ix_accounts_family_score", "accounts", ["family_id", "quiz_score"])

    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "family_id",
            sa.String(36),
            sa.ForeignKey("families.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", sa.String(64), nullable=False),
        sa.Column("author_name", sa.String(100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        _created_at(),
    )
    op.create_index("ix_posts_family_created", "posts", ["family_id", "created_at"])

    op.create_table(
        "post_likes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "post_id",
            sa.String(36),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("account_id", sa.String(64), nullable=False),
        _created_at(),
        sa.UniqueConstraint("post_id", "account_id", name="uq_post_likes_post_account"),
    )

    op.create_table(
        "comments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "post_id",
            sa.String(36),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", sa.String(64), nullable=False),
        sa.Column("author_name", sa.String(100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_comments_post_created", "comments", ["post_id", "created_at"])

    op.create_table(
        "media",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "family_id",
            sa.String(36),
            sa.ForeignKey("families.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column("storage_key", sa.String(300), nullable=False),
        sa.Column("uploaded_by", sa.String(64), nullable=False),
        _created_at("uploaded_at"),
    )
    op.create_index("ix_media_family_uploaded", "media", ["family_id", "uploaded_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "family_id",
            sa.String(36),
            sa.ForeignKey("families.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("account_id", sa.String(64), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index(
        "ix_notifications_family_created", "notifications", ["family_id", "created_at"],
    )

    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("correct_answer", sa.String(300), nullable=False),
        sa.Column("options", postgresql.JSONB(), nullable=False),
        sa.Column("difficulty", sa.String(10), nullable=False),
        sa.Column("bible_reference", sa.String(100), nullable=False, server_default=""),
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("family_id", sa.String(36), nullable=True),
        sa.Column(
            "question_id",
            sa.String(36),
            sa.ForeignKey("quiz_questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_answer", sa.String(300), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_index(
        "ix_quiz_attempts_account_created", "quiz_attempts", ["account_id", "created_at"],
    )


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    op.drop_index("ix_quiz_attempts_account_created", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")
    op.drop_table("quiz_questions")
    op.drop_index("ix_notifications_family_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_media_family_uploaded", table_name="media")
    op.drop_table("media")
    op.drop_index("ix_comments_post_created", table_name="comments")
    op.drop_table("comments")
    op.drop_table("post_likes")
    op.drop_index("ix_posts_family_created", table_name="posts")
    op.drop_table("posts")
    op.drop_index("ix_accounts_family_score", table_name="accounts")
    op.drop_table("accounts")
    op.drop_table("families")
