#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from menuboard.core.database import SessionLocal, engine  # noqa: E402
from menuboard.services.owners import ensure_users_table, upsert_owner  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or refresh a shop owner account.")
    parser.add_argument("--email", required=True, help="Owner email")
    parser.add_argument("--password", help="Owner password (required for a new owner)")
    parser.add_argument("--name", required=True, help="Owner display name")
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    try:
        ensure_users_table(engine)
    except RuntimeError as exc:
        print(str(exc))
        return 1

    db = SessionLocal()
    try:
        owner, created = upsert_owner(db, email=args.email, name=args.name, password=args.password)
    except ValueError as exc:
        print(str(exc))
        return 1
    finally:
        db.close()

    action = "created" if created else "updated"
    print(f"Owner {action}: id={owner.id} email={owner.email}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
