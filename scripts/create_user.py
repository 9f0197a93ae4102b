#!/usr/bin/env python3
"""Create or update a user, e.g. to bootstrap the first admin."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rallyelo.db.session import get_session
from rallyelo.repositories.users import create_or_update_user


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or update a user")
    parser.add_argument("--intra-id", type=int, required=True, help="OAuth provider user id")
    parser.add_argument("--login", required=True, help="Login name")
    parser.add_argument("--display-name", default="", help="Display name (defaults to login)")
    parser.add_argument("--campus", default=None, help="Campus name")
    parser.add_argument(
        "--admin",
        action="store_true",
        help="Grant admin rights",
    )
    args = parser.parse_args()

    try:
        with get_session() as session:
            user = create_or_update_user(
                session,
                intra_id=args.intra_id,
                login=args.login,
                display_name=args.display_name,
                campus=args.campus,
                is_admin=True if args.admin else None,
            )
            print(f"User ready: id={user.id}, login={user.login}, admin={user.is_admin}")
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
