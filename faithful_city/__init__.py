"""
Faithful City — A Family Community Hub
=======================================
Families share announcements, discussions, and prayer requests, trade
photos and audio, receive notifications, and compete on a Bible trivia
leaderboard.  Every view a member sees is kept live by resyncing from the
database whenever the change feed reports activity in their family.

Package layout::

    faithful_city/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Limits, point table, notification copy
    ├── errors.py          # Domain error taxonomy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models (9 tables)
    │   └── seed.py        # Starter quiz bank
    ├── engine/
    │   ├── changefeed.py  # PG LISTEN/NOTIFY change feed + subscriptions
    │   ├── quiz.py        # Grading, score/streak transitions, round state
    │   └── views.py       # Detached read models handed to callers
    ├── services/
    │   ├── profile_service.py       # Accounts, families, admin promotion
    │   ├── feed_service.py          # Posts, likes, comments
    │   ├── feed_sync.py             # Live subscriptions (resync on change)
    │   ├── media_service.py         # Upload + listing
    │   ├── storage.py               # Object storage backends
    │   ├── notification_service.py  # Notification fanout
    │   └── quiz_service.py          # Answers, scoring, leaderboard
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine, config, JWT identity
        └── routes/        # REST + WebSocket endpoints
"""

__version__ = "0.1.0"
