"""
faithful_city.engine.changefeed — Row Change Feed over PG LISTEN/NOTIFY
========================================================================

Services announce every write with :func:`notify_change`.  On PostgreSQL
the announcement is a ``pg_notify`` issued inside the writing transaction,
so listeners only hear about rows that were actually committed.  A
background thread LISTENs on :data:`CHANGE_CHANNEL` and fans each event out
to the matching :class:`Subscription` handlers.

Consumers never inspect the payload beyond routing: an event only means
"something in this table, for this family, changed, fetch again".

On other dialects (SQLite in dev and tests) there is no NOTIFY.  The event
is parked on the session and dispatched in-process right after commit to
every feed started on the same engine; a rollback discards it.
"""

from __future__ import annotations

import json
import logging
import random
import select as _select
import threading
import weakref
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from sqlalchemy import event, text
from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# The PG channel every row change is published on
CHANGE_CHANNEL = "faithful_changes"

# Allowlist of tables accepted by notify_change() and subscribe().
WATCHED_TABLES: frozenset[str] = frozenset({
    "accounts",
    "families",
    "posts",
    "post_likes",
    "comments",
    "media",
    "notifications",
})

CHANGE_OPS: frozenset[str] = frozenset({"INSERT", "UPDATE", "DELETE"})

_PENDING_KEY = "faithful_pending_changes"

# Feeds started on a non-PostgreSQL engine, dispatched to after commit.
_local_feeds: weakref.WeakSet[ChangeFeed] = weakref.WeakSet()
_local_lock = threading.Lock()


# ---------------------------------------------------------------------------
# ChangeEvent — the NOTIFY payload
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChangeEvent:
    table: str
    op: str
    family_id: str | None = None
    row_id: str | None = None

    def to_payload(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_payload(cls, raw: str) -> ChangeEvent | None:
        """Parse a NOTIFY payload, returning None (and logging) if malformed."""
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Invalid change payload (not JSON): %s", raw)
            return None
        if not isinstance(data, dict) or data.get("table") not in WATCHED_TABLES:
            logger.warning("Change payload for unknown table: %s", raw)
            return None
        return cls(
            table=data["table"],
            op=str(data.get("op", "UPDATE")),
            family_id=data.get("family_id"),
            row_id=data.get("row_id"),
        )


# ---------------------------------------------------------------------------
# Subscription — one handler bound to a (tables, family, row) filter
# ---------------------------------------------------------------------------
class Subscription:
    """Handle returned by :meth:`ChangeFeed.subscribe`.

    ``family_id`` / ``row_id`` of ``None`` match any value.  After
    :meth:`dispose` returns, the handler is never called again.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        tables: frozenset[str],
        handler: Callable[[ChangeEvent], None],
        *,
        family_id: str | None = None,
        row_id: str | None = None,
        name: str = "",
    ) -> None:
        self.tables = tables
        self.family_id = family_id
        self.row_id = row_id
        self.name = name or ",".join(sorted(tables))
        self._feed = feed
        self._handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def matches(self, change: ChangeEvent) -> bool:
        if change.table not in self.tables:
            return False
        if self.family_id is not None and change.family_id != self.family_id:
            return False
        if self.row_id is not None and change.row_id != self.row_id:
            return False
        return True

    def deliver(self, change: ChangeEvent) -> None:
        if self._active:
            self._handler(change)

    def dispose(self) -> None:
        """Stop delivery and detach from the feed.  Idempotent."""
        if not self._active:
            return
        self._active = False
        self._feed._remove(self)
        logger.debug("Subscription '%s' disposed", self.name)

    def __repr__(self) -> str:
        return f"<Subscription {self.name!r} family={self.family_id} active={self._active}>"


# ---------------------------------------------------------------------------
# ChangeFeed — subscription registry + LISTEN thread
# ---------------------------------------------------------------------------
class ChangeFeed:
    """Thread-safe registry of change subscriptions fed by PG NOTIFY.

    Usage:
        feed = ChangeFeed(engine)
        feed.start_listener()

        sub = feed.subscribe({"posts", "post_likes"}, on_event, family_id=fid)
        ...
        sub.dispose()
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

        self._listener_healthy: bool = False
        self._listener_failed: bool = False
        self._listener_thread: threading.Thread | None = None
        self._shutdown_event = threading.Event()

    # -------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------
    def subscribe(
        self,
        tables: Iterable[str],
        handler: Callable[[ChangeEvent], None],
        *,
        family_id: str | None = None,
        row_id: str | None = None,
        name: str = "",
    ) -> Subscription:
        wanted = frozenset(tables)
        unknown = wanted - WATCHED_TABLES
        if not wanted or unknown:
            raise ValueError(
                f"Invalid tables for subscription: {sorted(unknown) or '(none)'}. "
                f"Allowed: {sorted(WATCHED_TABLES)}"
            )
        sub = Subscription(
            self, wanted, handler, family_id=family_id, row_id=row_id, name=name,
        )
        with self._lock:
            self._subscriptions.append(sub)
        logger.debug("Subscription '%s' opened", sub.name)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            try:
                self._subscriptions.remove(sub)
            except ValueError:
                pass

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def dispatch(self, raw_payload: str) -> None:
        """Route a raw NOTIFY payload to matching subscriptions."""
        change = ChangeEvent.from_payload(raw_payload)
        if change is not None:
            self.handle_event(change)

    def handle_event(self, change: ChangeEvent) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(change)]
        for sub in targets:
            try:
                sub.deliver(change)
            except Exception:
                logger.exception(
                    "Error delivering %s on '%s' to '%s'",
                    change.op, change.table, sub.name,
                )

    # -------------------------------------------------------------------
    # Listener lifecycle
    # -------------------------------------------------------------------
    @property
    def listener_healthy(self) -> bool:
        """Return True if events are currently being received."""
        return self._listener_healthy and not self._listener_failed

    @property
    def listener_failed(self) -> bool:
        """Return True if the listener exhausted reconnect attempts."""
        return self._listener_failed

    def start_listener(self) -> None:
        """Begin receiving change events for this feed's engine.

        PostgreSQL gets a background LISTEN thread using a raw psycopg2
        connection + ``select()``, with exponential backoff + jitter on
        reconnect and a circuit breaker after repeated failures.  Any other
        dialect registers the feed for in-process post-commit dispatch.
        """
        if self._engine.dialect.name != "postgresql":
            with _local_lock:
                _local_feeds.add(self)
            self._listener_healthy = True
            logger.info(
                "Change feed using in-process dispatch (%s)", self._engine.dialect.name,
            )
            return

        import psycopg2

        max_backoff = 60.0
        base_backoff = 1.0
        max_reconnect_attempts = 10

        def _listen_thread() -> None:
            # str(engine.url) masks the password; psycopg2 needs the real one.
            raw_url = self._engine.url.render_as_string(hide_password=False)
            dsn = raw_url.replace("postgresql+psycopg2://", "postgresql://")
            attempt = 0

            while not self._shutdown_event.is_set():
                conn = None
                try:
                    conn = psycopg2.connect(dsn)
                    conn.set_isolation_level(0)  # autocommit
                    cur = conn.cursor()
                    cur.execute(f"LISTEN {CHANGE_CHANNEL};")
                    logger.info("PG LISTEN started on channel '%s'", CHANGE_CHANNEL)

                    attempt = 0
                    self._listener_healthy = True

                    while not self._shutdown_event.is_set():
                        if _select.select([conn], [], [], 5.0) == ([], [], []):
                            continue
                        conn.poll()
                        while conn.notifies:
                            notify = conn.notifies.pop(0)
                            payload = notify.payload or ""
                            logger.debug("NOTIFY received: %s", payload)
                            self.dispatch(payload)

                except Exception:
                    self._listener_healthy = False
                    attempt += 1

                    if attempt >= max_reconnect_attempts:
                        logger.critical(
                            "PG LISTEN exhausted %d retries. "
                            "Live updates disabled.",
                            max_reconnect_attempts,
                        )
                        self._listener_failed = True
                        break

                    backoff = min(base_backoff * (2 ** (attempt - 1)), max_backoff)
                    wait = backoff + random.uniform(0, backoff * 0.5)
                    logger.exception(
                        "PG LISTEN connection lost (attempt %d/%d). "
                        "Reconnecting in %.1fs…",
                        attempt, max_reconnect_attempts, wait,
                    )
                    if self._shutdown_event.wait(timeout=wait):
                        break
                finally:
                    if conn is not None:
                        try:
                            conn.close()
                        except Exception:
                            logger.debug("Error closing LISTEN connection", exc_info=True)

        thread = threading.Thread(target=_listen_thread, daemon=True, name="pg-change-listener")
        self._listener_thread = thread
        thread.start()
        logger.info("PG change listener thread started")

    def stop_listener(self) -> None:
        """Signal the listener to stop and wait for the thread to exit."""
        self._shutdown_event.set()
        with _local_lock:
            _local_feeds.discard(self)
        if self._listener_thread is not None and self._listener_thread.is_alive():
            self._listener_thread.join(timeout=5)
            logger.info("PG change listener thread stopped")
        self._listener_healthy = False


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------
def notify_change(
    session: Session,
    table: str,
    op: str,
    *,
    family_id: str | None = None,
    row_id: str | None = None,
) -> None:
    """Publish a row change within the current transaction.

    Delivery happens on commit and never on rollback.

    Raises
    ------
    ValueError
        If *table* is not in :data:`WATCHED_TABLES` or *op* is unknown.
    """
    if table not in WATCHED_TABLES:
        raise ValueError(
            f"Invalid table name for NOTIFY: '{table}'. "
            f"Allowed: {sorted(WATCHED_TABLES)}"
        )
    if op not in CHANGE_OPS:
        raise ValueError(f"Invalid change op: '{op}'")

    change = ChangeEvent(table=table, op=op, family_id=family_id, row_id=row_id)
    if session.get_bind().dialect.name == "postgresql":
        session.execute(
            text("SELECT pg_notify(:channel, :payload)"),
            {"channel": CHANGE_CHANNEL, "payload": change.to_payload()},
        )
    else:
        session.info.setdefault(_PENDING_KEY, []).append(change)


@event.listens_for(Session, "after_commit")
def _dispatch_local_changes(session: Session) -> None:
    pending: list[ChangeEvent] | None = session.info.pop(_PENDING_KEY, None)
    if not pending:
        return
    bind = session.bind
    with _local_lock:
        feeds = [f for f in _local_feeds if f._engine is bind]
    for feed in feeds:
        for change in pending:
            feed.handle_event(change)


@event.listens_for(Session, "after_rollback")
def _discard_local_changes(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)
