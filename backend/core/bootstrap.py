from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine

import models  # noqa: F401  (registers every table on Base.metadata)
from core.database import table_exists
from models.base import Base


logger = logging.getLogger(__name__)


PLACEMENT_TABLES = ("shows", "episodes", "episode_inventory", "scheduled_spots", "bulk_commit_records")

_INDEX_STATEMENTS = [
    "CREATE INDEX IF NOT EXISTS idx_episode_inventory_episode_status ON episode_inventory (episode_id, status);",
    "CREATE INDEX IF NOT EXISTS idx_scheduled_spots_show_date ON scheduled_spots (show_id, air_date);",
    "CREATE INDEX IF NOT EXISTS idx_scheduled_spots_campaign ON scheduled_spots (campaign_id);",
]


def missing_tables(engine: Engine) -> list[str]:
    return [t for t in PLACEMENT_TABLES if not table_exists(engine, t)]


def ensure_placement_schema(engine: Engine) -> list[str]:
    """Create any missing placement tables and indexes. Idempotent across deploys."""

    missing = missing_tables(engine)
    if missing:
        logger.info("Creating placement tables: %s", ", ".join(missing))
    Base.metadata.create_all(engine, checkfirst=True)

    with engine.begin() as conn:
        for s in _INDEX_STATEMENTS:
            conn.execute(text(s))
    return missing
