"""
faithful_city.services.feed_sync — Live Feed & Scoring Synchronizer
====================================================================

Keeps a member's views (posts, notifications, own profile, leaderboard)
current without manual refresh.  The pattern is the same for each view:

    1. Open a change-feed subscription filtered to the family (or account).
    2. Fetch the whole view once and deliver it.
    3. On **any** matching event, fetch the whole view again and deliver it.

No deltas are computed: the full collection is re-read every time.  At
family scale (50 posts, 20 notifications) that is cheap; larger tenants
would need row-level patches instead.

Threading: change events arrive on the listener thread (or the committing
thread for in-process dispatch).  Each event is handed to the subscriber's
event loop with ``run_coroutine_threadsafe``; resyncs for one subscription
are serialized by an ``asyncio.Lock``.  There is no ordering between a
resync and a caller's own writes, so a fresh like can be briefly
overwritten by an older snapshot until the next event corrects it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from faithful_city.database.engine import run_db
from faithful_city.engine.changefeed import ChangeEvent, ChangeFeed
from faithful_city.services.feed_service import load_posts
from faithful_city.services.notification_service import load_notifications
from faithful_city.services.profile_service import find_profile
from faithful_city.services.quiz_service import leaderboard

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

POST_TABLES = frozenset({"posts", "post_likes", "comments"})

OnChange = Callable[[Any], Any]


# ---------------------------------------------------------------------------
# Session — the authenticated member this synchronizer works for
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AccountSession:
    account_id: str
    family_id: str | None = None


# ---------------------------------------------------------------------------
# LiveSubscription — resync loop + disposer
# ---------------------------------------------------------------------------
class LiveSubscription:
    """A running view subscription.  Call it (or :meth:`dispose`) to stop.

    Once disposal returns, ``on_change`` is never invoked again and the
    underlying change-feed subscription has been released.
    """

    def __init__(
        self,
        name: str,
        loader: Callable[[], Any],
        on_change: OnChange,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self.name = name
        self._loader = loader
        self._on_change = on_change
        self._loop = loop
        self._lock = asyncio.Lock()
        self._disposed = False
        self._feed_sub = None

    @property
    def active(self) -> bool:
        return not self._disposed

    def bind(self, feed_sub) -> None:
        self._feed_sub = feed_sub

    def handle_event(self, change: ChangeEvent) -> None:
        """Change-feed handler; safe to call from any thread."""
        if self._disposed:
            return
        if self._loop.is_closed():
            logger.warning("Dropping %s for '%s': event loop closed", change.table, self.name)
            return
        asyncio.run_coroutine_threadsafe(self.resync(), self._loop)

    async def resync(self, *, raise_errors: bool = False) -> None:
        async with self._lock:
            if self._disposed:
                return
            try:
                snapshot = await run_db(self._loader)
            except Exception:
                if raise_errors:
                    raise
                logger.exception("Resync failed for '%s'", self.name)
                return
            if self._disposed:
                return
            try:
                result = self._on_change(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                if raise_errors:
                    raise
                logger.exception("on_change raised for '%s'", self.name)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._feed_sub is not None:
            self._feed_sub.dispose()
        logger.debug("Live subscription '%s' disposed", self.name)

    __call__ = dispose

    def __repr__(self) -> str:
        return f"<LiveSubscription {self.name!r} active={self.active}>"


# ---------------------------------------------------------------------------
# FeedSynchronizer
# ---------------------------------------------------------------------------
class FeedSynchronizer:
    """Owns the live subscriptions opened on behalf of one session.

    Usage::

        sync = FeedSynchronizer(engine, feed, AccountSession("acct-1", "fam-1"))
        dispose = await sync.subscribe_posts("fam-1", render_posts)
        ...
        dispose()
    """

    def __init__(
        self,
        engine: Engine,
        feed: ChangeFeed,
        session: AccountSession | None = None,
    ) -> None:
        self._engine = engine
        self._feed = feed
        self._session = session
        self._live: list[LiveSubscription] = []

    @property
    def session(self) -> AccountSession | None:
        return self._session

    @property
    def active_subscriptions(self) -> list[LiveSubscription]:
        return [s for s in self._live if s.active]

    # -------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------
    async def subscribe_posts(self, family_id: str, on_change: OnChange) -> LiveSubscription:
        """Deliver the family feed now and after every post/like/comment change."""
        return await self._subscribe(
            f"posts:{family_id}",
            POST_TABLES,
            partial(load_posts, self._engine, family_id),
            on_change,
            family_id=family_id,
        )

    async def subscribe_notifications(
        self, family_id: str, account_id: str, on_change: OnChange,
    ) -> LiveSubscription:
        """Deliver the account's notifications (own + broadcast) on change."""
        return await self._subscribe(
            f"notifications:{family_id}:{account_id}",
            {"notifications"},
            partial(load_notifications, self._engine, family_id, account_id),
            on_change,
            family_id=family_id,
        )

    async def subscribe_profile(self, account_id: str, on_change: OnChange) -> LiveSubscription:
        """Deliver the account's profile (or None once it is gone) on change."""
        return await self._subscribe(
            f"profile:{account_id}",
            {"accounts"},
            partial(find_profile, self._engine, account_id),
            on_change,
            row_id=account_id,
        )

    async def subscribe_leaderboard(self, family_id: str, on_change: OnChange) -> LiveSubscription:
        """Deliver the family's top scorers whenever a member's row changes."""
        return await self._subscribe(
            f"leaderboard:{family_id}",
            {"accounts"},
            partial(leaderboard, self._engine, family_id),
            on_change,
            family_id=family_id,
        )

    # -------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------
    def on_session_change(self, session: AccountSession | None) -> None:
        """Adopt a new session, tearing down everything opened for the old one."""
        if session == self._session:
            return
        self.dispose_all()
        logger.info(
            "Session changed: %s → %s",
            self._session.account_id if self._session else None,
            session.account_id if session else None,
        )
        self._session = session

    def dispose_all(self) -> None:
        for live in self._live:
            live.dispose()
        self._live.clear()

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    async def _subscribe(
        self,
        name: str,
        tables,
        loader: Callable[[], Any],
        on_change: OnChange,
        *,
        family_id: str | None = None,
        row_id: str | None = None,
    ) -> LiveSubscription:
        loop = asyncio.get_running_loop()
        live = LiveSubscription(name, loader, on_change, loop)
        # Subscribe before the first fetch so no change slips between them.
        live.bind(self._feed.subscribe(
            tables, live.handle_event, family_id=family_id, row_id=row_id, name=name,
        ))
        self._live = [s for s in self._live if s.active]
        self._live.append(live)
        try:
            await live.resync(raise_errors=True)
        except BaseException:
            live.dispose()
            raise
        return live
