# marketboard/tasks.py
"""Maintenance commands, meant for cron.

Usage:
    python -m marketboard.tasks expire      # approved listings past expires_at -> expired
    python -m marketboard.tasks init-db     # create tables
"""
import argparse
import logging
import sys

from .config import settings
from .db import SessionLocal, init_db
from .errors import StoreError
from .services.listings import expire_due_listings

logger = logging.getLogger("marketboard.tasks")


def cmd_expire(args) -> int:
    db = SessionLocal()
    try:
        n = expire_due_listings(db)
    except StoreError as e:
        logger.error("expiry sweep failed: %s", e)
        return 1
    finally:
        db.close()
    print(f"expired {n} listing(s)")
    return 0


def cmd_init_db(args) -> int:
    init_db()
    print("tables created")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="python -m marketboard.tasks", description="Marketboard maintenance")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("expire", help="expire approved listings whose expires_at has passed").set_defaults(func=cmd_expire)
    sub.add_parser("init-db", help="create database tables").set_defaults(func=cmd_init_db)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
