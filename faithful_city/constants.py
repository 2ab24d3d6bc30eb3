"""
faithful_city.constants — Shared Constants
===========================================

Single source of truth for page sizes, the quiz point table, and the copy
used by notification fanout.  Import from here instead of duplicating in
services and routes.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Page sizes
# ---------------------------------------------------------------------------
FEED_LIMIT = 50
NOTIFICATION_LIMIT = 20
LEADERBOARD_LIMIT = 10
QUESTION_POOL_SIZE = 50

# ---------------------------------------------------------------------------
# Family governance
# ---------------------------------------------------------------------------
MAX_FAMILY_ADMINS = 2

# ---------------------------------------------------------------------------
# Quiz scoring — points per difficulty tier
# ---------------------------------------------------------------------------
POINTS_BY_DIFFICULTY: dict[str, int] = {
    "easy": 10,
    "medium": 20,
    "hard": 30,
}

# ---------------------------------------------------------------------------
# Notification copy
# ---------------------------------------------------------------------------
ANNOUNCEMENT_TITLE = "New Announcement"
ANNOUNCEMENT_PREVIEW_CHARS = 100
MEDIA_UPLOADED_TITLE = "New Media Uploaded"
