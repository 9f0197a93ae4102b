#!/usr/bin/env python3
"""Insert the launch sports (table tennis, table football) if missing."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rallyelo.db.session import get_session
from rallyelo.sports.seed import DEFAULT_SPORTS, seed_sports


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the sports table")
    parser.add_argument(
        "--only",
        action="append",
        default=None,
        help="Seed only this sport id (repeatable)",
    )
    args = parser.parse_args()

    sports = DEFAULT_SPORTS
    if args.only:
        known = {s["id"] for s in DEFAULT_SPORTS}
        unknown = sorted(set(args.only) - known)
        if unknown:
            print(f"Unknown sport id(s): {', '.join(unknown)}", file=sys.stderr)
            return 1
        sports = tuple(s for s in DEFAULT_SPORTS if s["id"] in args.only)

    with get_session() as session:
        created = seed_sports(session, sports)

    if created:
        print(f"Created sports: {', '.join(created)}")
    else:
        print("All sports already present.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
