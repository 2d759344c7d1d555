from __future__ import annotations

"""Create the placement tables (shows, episodes, inventory, spots, commit records) and their indexes.

Safe to run multiple times (create_all + IF NOT EXISTS).

Run:
  python -m migrations.001_create_placement_tables --yes

Or:
  python backend/migrations/001_create_placement_tables.py --yes
"""

import argparse
import sys
from pathlib import Path

# Allow running this script from any working directory.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from core.bootstrap import PLACEMENT_TABLES, ensure_placement_schema, missing_tables
from core.database import ENGINE


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--yes", action="store_true", help="Actually apply changes")
    args = parser.parse_args()

    missing = missing_tables(ENGINE)
    if not args.yes:
        print("Dry run. Re-run with --yes to apply.")
        print(f"Tables: {', '.join(PLACEMENT_TABLES)}")
        print(f"Missing: {', '.join(missing) if missing else '(none)'}")
        return

    created = ensure_placement_schema(ENGINE)
    print(f"OK: created {len(created)} tables, verified {len(PLACEMENT_TABLES)}.")


if __name__ == "__main__":
    main()
