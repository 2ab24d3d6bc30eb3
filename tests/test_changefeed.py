"""
tests/test_changefeed.py — ChangeFeed Unit Tests
=================================================

Tests payload parsing, subscription filters and disposal, notify_change
allowlist validation, and in-process post-commit dispatch on SQLite.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from faithful_city.database.engine import get_session
from faithful_city.engine.changefeed import (
    WATCHED_TABLES,
    ChangeEvent,
    ChangeFeed,
    notify_change,
)


@pytest.fixture
def feed():
    """A ChangeFeed on a mock engine (no listener, no DB)."""
    return ChangeFeed(MagicMock())


class TestChangeEventPayload:
    def test_round_trips_through_json(self):
        change = ChangeEvent("posts", "INSERT", family_id="fam-1", row_id="p-1")
        assert ChangeEvent.from_payload(change.to_payload()) == change

    def test_invalid_json_returns_none(self):
        assert ChangeEvent.from_payload("not json{") is None

    def test_unknown_table_returns_none(self):
        assert ChangeEvent.from_payload(json.dumps({"table": "secrets", "op": "INSERT"})) is None

    def test_missing_op_defaults_to_update(self):
        change = ChangeEvent.from_payload(json.dumps({"table": "media"}))
        assert change is not None
        assert change.op == "UPDATE"
        assert change.family_id is None


class TestSubscriptionRouting:
    def test_routes_to_matching_table(self, feed):
        posts_handler, media_handler = MagicMock(), MagicMock()
        feed.subscribe({"posts"}, posts_handler)
        feed.subscribe({"media"}, media_handler)

        feed.handle_event(ChangeEvent("posts", "INSERT", "fam-1"))

        posts_handler.assert_called_once()
        media_handler.assert_not_called()

    def test_family_filter(self, feed):
        handler = MagicMock()
        feed.subscribe({"posts", "comments"}, handler, family_id="fam-1")

        feed.handle_event(ChangeEvent("comments", "INSERT", "fam-2"))
        handler.assert_not_called()

        feed.handle_event(ChangeEvent("comments", "INSERT", "fam-1"))
        handler.assert_called_once()

    def test_row_filter(self, feed):
        handler = MagicMock()
        feed.subscribe({"accounts"}, handler, row_id="acct-1")

        feed.handle_event(ChangeEvent("accounts", "UPDATE", "fam-1", "acct-2"))
        feed.handle_event(ChangeEvent("accounts", "UPDATE", "fam-1", "acct-1"))

        assert handler.call_count == 1
        assert handler.call_args.args[0].row_id == "acct-1"

    def test_dispatch_parses_raw_payload(self, feed):
        handler = MagicMock()
        feed.subscribe({"notifications"}, handler)
        feed.dispatch(ChangeEvent("notifications", "INSERT", "fam-1").to_payload())
        handler.assert_called_once()

    def test_malformed_payload_is_ignored(self, feed):
        handler = MagicMock()
        feed.subscribe({"posts"}, handler)
        feed.dispatch("garbage")
        handler.assert_not_called()

    def test_failing_handler_does_not_block_others(self, feed):
        broken = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        feed.subscribe({"posts"}, broken)
        feed.subscribe({"posts"}, healthy)

        feed.handle_event(ChangeEvent("posts", "DELETE", "fam-1"))

        healthy.assert_called_once()


class TestSubscriptionValidation:
    def test_rejects_empty_table_set(self, feed):
        with pytest.raises(ValueError, match="Invalid tables"):
            feed.subscribe(set(), MagicMock())

    def test_rejects_unknown_table(self, feed):
        with pytest.raises(ValueError, match="quiz_attempts"):
            feed.subscribe({"posts", "quiz_attempts"}, MagicMock())


class TestDispose:
    def test_disposed_subscription_receives_nothing(self, feed):
        handler = MagicMock()
        sub = feed.subscribe({"posts"}, handler)
        assert feed.subscription_count == 1

        sub.dispose()

        assert not sub.active
        assert feed.subscription_count == 0
        feed.handle_event(ChangeEvent("posts", "INSERT", "fam-1"))
        handler.assert_not_called()

    def test_dispose_is_idempotent(self, feed):
        sub = feed.subscribe({"posts"}, MagicMock())
        sub.dispose()
        sub.dispose()
        assert feed.subscription_count == 0


class TestNotifyChangeValidation:
    def test_rejects_unknown_table(self):
        with pytest.raises(ValueError, match="Invalid table name"):
            notify_change(MagicMock(), "users; DROP TABLE posts", "INSERT")

    def test_rejects_unknown_op(self):
        with pytest.raises(ValueError, match="Invalid change op"):
            notify_change(MagicMock(), "posts", "TRUNCATE")

    def test_watched_tables_cover_every_live_view(self):
        assert {"posts", "post_likes", "comments", "notifications", "accounts"} <= WATCHED_TABLES

    def test_postgres_issues_pg_notify(self):
        session = MagicMock()
        session.get_bind.return_value.dialect.name = "postgresql"

        notify_change(session, "posts", "INSERT", family_id="fam-1", row_id="p-1")

        session.execute.assert_called_once()
        params = session.execute.call_args.args[1]
        assert params["channel"] == "faithful_changes"
        assert json.loads(params["payload"]) == {
            "table": "posts", "op": "INSERT", "family_id": "fam-1", "row_id": "p-1",
        }


class TestLocalDispatch:
    """On SQLite, events are delivered in-process after commit."""

    def test_delivered_after_commit_only(self, db_engine):
        feed = ChangeFeed(db_engine)
        feed.start_listener()
        handler = MagicMock()
        feed.subscribe({"posts"}, handler, family_id="fam-1")
        try:
            with get_session(db_engine) as session:
                notify_change(session, "posts", "INSERT", family_id="fam-1", row_id="p-1")
                handler.assert_not_called()
            handler.assert_called_once_with(ChangeEvent("posts", "INSERT", "fam-1", "p-1"))
        finally:
            feed.stop_listener()

    def test_rollback_discards_pending(self, db_engine):
        feed = ChangeFeed(db_engine)
        feed.start_listener()
        handler = MagicMock()
        feed.subscribe({"posts"}, handler)
        try:
            with pytest.raises(RuntimeError):
                with get_session(db_engine) as session:
                    notify_change(session, "posts", "INSERT", family_id="fam-1")
                    raise RuntimeError("abort")
            handler.assert_not_called()
        finally:
            feed.stop_listener()

    def test_stopped_feed_receives_nothing(self, db_engine):
        feed = ChangeFeed(db_engine)
        feed.start_listener()
        handler = MagicMock()
        feed.subscribe({"media"}, handler)
        feed.stop_listener()

        with get_session(db_engine) as session:
            notify_change(session, "media", "INSERT", family_id="fam-1")

        handler.assert_not_called()

    def test_other_engine_feeds_are_not_woken(self, db_engine, file_engine):
        feed = ChangeFeed(file_engine)
        feed.start_listener()
        handler = MagicMock()
        feed.subscribe({"posts"}, handler)
        try:
            with get_session(db_engine) as session:
                notify_change(session, "posts", "INSERT", family_id="fam-1")
            handler.assert_not_called()
        finally:
            feed.stop_listener()


class TestListenerHealth:
    def test_local_listener_reports_healthy(self, db_engine):
        feed = ChangeFeed(db_engine)
        assert not feed.listener_healthy
        feed.start_listener()
        assert feed.listener_healthy
        assert not feed.listener_failed
        feed.stop_listener()
        assert not feed.listener_healthy
