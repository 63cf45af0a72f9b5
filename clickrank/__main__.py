"""
clickrank.__main__ — Entry point for ``python -m clickrank``
=============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine, ensure tables exist, seed the catalog.
4. Warm the catalog cache and log what was loaded.
5. Serve the HTTP API on ``api_port`` (blocking).

Run with::

    python -m clickrank            # bootstrap + serve
    python -m clickrank --init     # bootstrap only
"""

from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv

from clickrank.config import load_config
from clickrank.database.engine import create_db_engine, init_db
from clickrank.engine.cache import CatalogCache
from clickrank.services.ledger import SqlLedger

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("clickrank")


def main(argv: list[str] | None = None) -> None:
    """Bootstrap the database and run the clickrank API."""
    argv = sys.argv[1:] if argv is None else argv

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    try:
        cfg = load_config()
    except (FileNotFoundError, KeyError) as exc:
        logger.critical("Invalid configuration: %s", exc)
        sys.exit(1)
    logger.info("Config loaded — %s on port %d", cfg.app_name, cfg.api_port)

    # 3. Database (schema + default catalog, idempotent).
    engine = create_db_engine()
    init_db(engine)

    # 4. Catalog.
    catalog = CatalogCache(SqlLedger(engine))
    catalog.load_all()

    if "--init" in argv:
        logger.info("Database initialised.")
        return

    # 5. Serve (blocks until Ctrl+C or SIGTERM).
    import uvicorn

    logger.info("Starting clickrank API…")
    try:
        uvicorn.run("clickrank.api.main:app", host="0.0.0.0", port=cfg.api_port,
                    log_config=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
