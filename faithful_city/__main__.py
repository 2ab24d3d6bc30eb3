"""
faithful_city.__main__ — Entry point for ``python -m faithful_city``
====================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml, or $FAITHFUL_CONFIG (infrastructure settings).
3. Create the SQLAlchemy engine, ensure tables exist, seed the quiz bank.
4. Serve the API with uvicorn (the app starts the change listener).

Run with::

    python -m faithful_city
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from faithful_city.config import load_config
from faithful_city.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("faithful_city")


def main() -> None:
    """Bootstrap the database and run the API server."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Infrastructure config.
    try:
        cfg = load_config()
    except (FileNotFoundError, KeyError) as exc:
        logger.critical("Invalid configuration: %s", exc)
        sys.exit(1)
    logger.info("Starting %s on port %d", cfg.community_name, cfg.api_port)

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)
    engine.dispose()

    # 4. API.
    uvicorn.run("faithful_city.api.main:app", host="0.0.0.0", port=cfg.api_port)


if __name__ == "__main__":
    main()
