"""
faithful_city.services.notification_service — Notification Fanout
==================================================================

A notification either targets one account or, with no target, is a
broadcast every member of the family sees.  They are always created
unread; nothing in the app marks them read yet.

Fanout after a primary action (a media upload, an announcement) goes
through :func:`notify_best_effort`: the primary action has already
committed, so a failed notification is logged and never propagated.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select

from faithful_city.constants import NOTIFICATION_LIMIT
from faithful_city.database.engine import get_session
from faithful_city.database.models import Notification, NotificationCategory
from faithful_city.engine.changefeed import notify_change
from faithful_city.engine.views import NotificationView

logger = logging.getLogger(__name__)


def notify(
    engine,
    family_id: str,
    title: str,
    message: str,
    category: str,
    target_account_id: str | None = None,
) -> NotificationView:
    """Insert a notification row.  Omit *target_account_id* to broadcast."""
    category = NotificationCategory(category).value
    with get_session(engine, expire_on_commit=False) as session:
        row = Notification(
            family_id=family_id,
            account_id=target_account_id,
            title=title,
            message=message,
            type=category,
            is_read=False,
        )
        session.add(row)
        session.flush()
        notify_change(session, "notifications", "INSERT", family_id=family_id, row_id=row.id)

    logger.debug("Notification %s → family %s (%s)", row.id, family_id, category)
    return NotificationView.from_row(row)


def notify_best_effort(
    engine,
    family_id: str,
    title: str,
    message: str,
    category: str,
    target_account_id: str | None = None,
) -> NotificationView | None:
    """Like :func:`notify` but logs and returns None on failure."""
    try:
        return notify(engine, family_id, title, message, category, target_account_id)
    except Exception:
        logger.exception("Failed to send '%s' notification to family %s", title, family_id)
        return None


def load_notifications(engine, family_id: str, account_id: str) -> list[NotificationView]:
    """Newest notifications visible to *account_id*: its own plus broadcasts."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(Notification)
            .where(
                Notification.family_id == family_id,
                or_(Notification.account_id == account_id, Notification.account_id.is_(None)),
            )
            .order_by(Notification.created_at.desc())
            .limit(NOTIFICATION_LIMIT)
        ).all()
        return [NotificationView.from_row(n) for n in rows]
