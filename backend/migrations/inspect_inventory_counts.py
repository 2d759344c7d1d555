from __future__ import annotations

"""Print row counts for the placement tables and the inventory status breakdown.

Run:
  python backend/migrations/inspect_inventory_counts.py
"""

import sys
from pathlib import Path

# Allow running this script from any working directory.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select

from core.bootstrap import missing_tables
from core.database import ENGINE, SessionLocal
from models import BulkCommitRecord, Episode, EpisodeInventory, ScheduledSpot, Show


def main() -> int:
    missing = missing_tables(ENGINE)
    if missing:
        raise SystemExit(f"Missing tables: {', '.join(missing)} (run migrations/001_create_placement_tables.py --yes)")

    with SessionLocal() as db:
        counts = {
            model.__tablename__: db.execute(select(func.count()).select_from(model)).scalar_one()
            for model in (Show, Episode, EpisodeInventory, ScheduledSpot, BulkCommitRecord)
        }
        by_status = dict(
            db.execute(
                select(EpisodeInventory.status, func.count()).group_by(EpisodeInventory.status).order_by(EpisodeInventory.status)
            ).all()
        )

    print(counts)
    print({"inventory_by_status": by_status})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
