"""
faithful_city.services.feed_service — Posts, Likes & Comments
==============================================================

Point queries and mutations behind the family feed.  Live delivery of the
feed lives in :mod:`faithful_city.services.feed_sync`; every write here
publishes a change event so subscribers resync.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from faithful_city.constants import (
    ANNOUNCEMENT_PREVIEW_CHARS,
    ANNOUNCEMENT_TITLE,
    FEED_LIMIT,
)
from faithful_city.database.engine import get_session
from faithful_city.database.models import (
    Account,
    Comment,
    NotificationCategory,
    Post,
    PostLike,
    PostType,
    Role,
)
from faithful_city.engine.changefeed import notify_change
from faithful_city.engine.views import CommentView, PostView
from faithful_city.errors import NotFoundError, PolicyError
from faithful_city.services.notification_service import notify_best_effort

logger = logging.getLogger(__name__)


def load_posts(engine, family_id: str) -> list[PostView]:
    """The family's newest posts, each with its full like-set and comments."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(Post)
            .where(Post.family_id == family_id)
            .options(selectinload(Post.likes), selectinload(Post.comments))
            .order_by(Post.created_at.desc())
            .limit(FEED_LIMIT)
        ).all()
        return [PostView.from_row(p) for p in rows]


def create_post(
    engine,
    family_id: str,
    author_id: str,
    content: str,
    post_type: str = PostType.DISCUSSION.value,
) -> PostView:
    """Publish a post under the author's current display name.

    Announcements are restricted to family admins and fan out a broadcast
    notification once the post has committed.

    Raises
    ------
    NotFoundError
        If the author has no profile.
    PolicyError
        If a non-admin posts an announcement.
    """
    post_type = PostType(post_type).value
    with get_session(engine, expire_on_commit=False) as session:
        author = session.get(Account, author_id)
        if author is None:
            raise NotFoundError(f"Account {author_id} not found")
        if post_type == PostType.ANNOUNCEMENT and author.role != Role.ADMIN:
            raise PolicyError("only family admins can post announcements")

        post = Post(
            family_id=family_id,
            author_id=author_id,
            author_name=author.display_name,
            content=content,
            type=post_type,
        )
        session.add(post)
        session.flush()
        notify_change(session, "posts", "INSERT", family_id=family_id, row_id=post.id)
        view = PostView(
            id=post.id,
            family_id=post.family_id,
            author_id=post.author_id,
            author_name=post.author_name,
            content=post.content,
            type=post.type,
            created_at=post.created_at,
        )

    if post_type == PostType.ANNOUNCEMENT:
        notify_best_effort(
            engine,
            family_id,
            ANNOUNCEMENT_TITLE,
            content[:ANNOUNCEMENT_PREVIEW_CHARS],
            NotificationCategory.ANNOUNCEMENT.value,
        )
    return view


def _post_family(session, post_id: str) -> str:
    family_id = session.scalar(select(Post.family_id).where(Post.id == post_id))
    if family_id is None:
        raise NotFoundError(f"Post {post_id} not found")
    return family_id


def post_family(engine, post_id: str) -> str:
    """The family a post belongs to, or :class:`NotFoundError`."""
    with get_session(engine) as session:
        return _post_family(session, post_id)


def toggle_like(engine, post_id: str, account_id: str) -> bool:
    """Like the post if *account_id* hasn't, otherwise unlike it.

    Check-then-write with no lock: two toggles racing from the same account
    may both take the same branch.  Returns True if the post is now liked.
    """
    with get_session(engine) as session:
        family_id = _post_family(session, post_id)
        existing = session.scalar(
            select(PostLike).where(
                PostLike.post_id == post_id, PostLike.account_id == account_id,
            )
        )
        if existing is not None:
            session.delete(existing)
            liked = False
            op = "DELETE"
        else:
            session.add(PostLike(post_id=post_id, account_id=account_id))
            liked = True
            op = "INSERT"
        notify_change(session, "post_likes", op, family_id=family_id, row_id=post_id)
    return liked


def add_comment(
    engine, post_id: str, account_id: str, display_name: str, content: str,
) -> CommentView:
    """Append a comment.  Callers reject blank content before calling."""
    with get_session(engine, expire_on_commit=False) as session:
        family_id = _post_family(session, post_id)
        comment = Comment(
            post_id=post_id,
            author_id=account_id,
            author_name=display_name,
            content=content,
        )
        session.add(comment)
        session.flush()
        notify_change(session, "comments", "INSERT", family_id=family_id, row_id=post_id)
    return CommentView.from_row(comment)
