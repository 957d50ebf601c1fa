"""Register a user from the command line.

Usage:
  python scripts/create_user.py --firstname Ann --lastname Lee --email ann@example.com --password '...'

Prints the generated username. Intended for local/dev.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from taskboard.auth.session import register
from taskboard.config import load_config
from taskboard.db import connect, init_db
from taskboard.errors import AppError


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--firstname", default="")
    ap.add_argument("--lastname", default="")
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    try:
        with connect(cfg.DB_DSN) as conn:
            u = register(
                conn,
                cfg,
                firstname=args.firstname,
                lastname=args.lastname,
                email=args.email,
                password=args.password,
            )
    except AppError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
