from __future__ import annotations

"""Seed demo shows, episodes and open inventory for local development.

Idempotent: shows are matched by name and existing episodes are left alone.

Run:
  python backend/migrations/dev_seed_inventory.py --yes [--start 2025-01-06] [--weeks 4]
"""

import argparse
import sys
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path

# Allow running this script from any working directory.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import select

from core.bootstrap import ensure_placement_schema
from core.database import ENGINE, SessionLocal
from models.episode import Episode
from models.episode_inventory import EpisodeInventory
from models.show import Show
from placement.candidates import js_weekday
from placement.types import PLACEMENT_TYPES


@dataclass(frozen=True)
class ShowSpec:
    name: str
    pre_roll_rate: float | None
    mid_roll_rate: float | None
    post_roll_rate: float | None
    # 0=Sunday .. 6=Saturday
    air_days: tuple[int, ...]
    # Placement types seeded as HELD instead of OPEN.
    held: tuple[str, ...] = ()


SHOWS: list[ShowSpec] = [
    ShowSpec("Morning Markets", 120.0, 180.0, 90.0, (1, 2, 3, 4, 5)),
    ShowSpec("Tech Weekly", 200.0, 260.0, 150.0, (2, 4)),
    ShowSpec("Weekend Stories", 80.0, 110.0, 60.0, (0, 6), held=("mid-roll",)),
    # No post-roll rate: committing post-roll against this show fails with MISSING_RATE.
    ShowSpec("Late Night Live", 150.0, 210.0, None, (1, 3, 5)),
]


def _get_or_create_show(db, spec: ShowSpec) -> Show:
    show = db.execute(select(Show).where(Show.name == spec.name)).scalars().first()
    if show is None:
        show = Show(name=spec.name, is_active=True)
        db.add(show)
    show.pre_roll_rate = spec.pre_roll_rate
    show.mid_roll_rate = spec.mid_roll_rate
    show.post_roll_rate = spec.post_roll_rate
    db.flush()
    return show


def seed(start: date, weeks: int) -> dict[str, int]:
    counts = {"shows": 0, "episodes": 0, "slots": 0}
    end = start + timedelta(days=7 * weeks - 1)

    with SessionLocal() as db:
        for spec in SHOWS:
            show = _get_or_create_show(db, spec)
            counts["shows"] += 1

            existing = set(
                db.execute(
                    select(Episode.air_date)
                    .where(Episode.show_id == show.id)
                    .where(Episode.air_date >= start)
                    .where(Episode.air_date <= end)
                ).scalars()
            )

            number = 1
            cur = start
            while cur <= end:
                if js_weekday(cur) in spec.air_days:
                    if cur not in existing:
                        ep = Episode(show_id=show.id, air_date=cur, title=f"{spec.name} #{number}", episode_number=number)
                        db.add(ep)
                        db.flush()
                        for pt in PLACEMENT_TYPES:
                            db.add(
                                EpisodeInventory(
                                    episode_id=ep.id,
                                    placement_type=pt,
                                    status="HELD" if pt in spec.held else "OPEN",
                                )
                            )
                            counts["slots"] += 1
                        counts["episodes"] += 1
                    number += 1
                cur += timedelta(days=1)

        db.commit()
    return counts


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--yes", action="store_true", help="Actually apply changes")
    parser.add_argument("--start", type=date.fromisoformat, default=None, help="First day to seed (default: next Monday)")
    parser.add_argument("--weeks", type=int, default=4)
    args = parser.parse_args()

    start = args.start
    if start is None:
        today = date.today()
        start = today + timedelta(days=(7 - today.weekday()) % 7 or 7)

    if not args.yes:
        print("Dry run. Re-run with --yes to apply.")
        print(f"Would seed {len(SHOWS)} shows from {start.isoformat()} for {args.weeks} weeks.")
        for spec in SHOWS:
            print(f"- {spec.name}: days={list(spec.air_days)} held={list(spec.held)}")
        return

    ensure_placement_schema(ENGINE)
    counts = seed(start, args.weeks)
    print(f"OK: shows={counts['shows']} new_episodes={counts['episodes']} new_slots={counts['slots']}")


if __name__ == "__main__":
    main()
