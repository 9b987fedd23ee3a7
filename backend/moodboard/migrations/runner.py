"""Migration runner.

Applies the versioned Alembic scripts in backend/alembic/versions to the
configured database and logs the outcome once per run. The scripts live
beside the package in the source checkout and are not part of the wheel;
set ALEMBIC_DIR to point an installed copy at them.

Usage:
    python -m moodboard.migrations.runner            # upgrade to head
    python -m moodboard.migrations.runner 0002_create_images
"""
from __future__ import annotations

import os
import sys
import time
from pathlib import Path

from alembic import command
from alembic.config import Config
from loguru import logger

ALEMBIC_DIR = Path(os.getenv("ALEMBIC_DIR") or Path(__file__).resolve().parents[2] / "alembic")


def alembic_config(database_url: str, script_location: str | Path | None = None) -> Config:
    location = Path(script_location or ALEMBIC_DIR)
    if not (location / "env.py").is_file():
        raise FileNotFoundError(f"alembic scripts not found at {location}; set ALEMBIC_DIR")
    cfg = Config()
    cfg.set_main_option("script_location", str(location))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def run_migrations(database_url: str | None = None, revision: str = "head") -> None:
    if database_url is None:
        from ..settings import settings
        database_url = settings.DATABASE_URL
    start = time.time()
    try:
        command.upgrade(alembic_config(database_url), revision)
    except Exception as e:
        logger.exception({"type": "migration_failed", "revision": revision, "error": str(e)})
        raise
    logger.info({"type": "migration_ok", "revision": revision, "ms": round((time.time() - start) * 1000, 2)})


if __name__ == "__main__":
    run_migrations(revision=sys.argv[1] if len(sys.argv) > 1 else "head")
