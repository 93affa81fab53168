#!/usr/bin/env python3
"""
Re-hash a user's password with bcrypt.
Usage: hash_user_password.py <identifier> <password>, where identifier is an email, user id or username.
Exits non-zero when no user matches.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from marketplace.api.api_config import get_api_config
from marketplace.api.db_access import DatabaseClient
from marketplace.api.services.user_service import UserService
from marketplace.common.logging import configure_logging


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set a user's password to a fresh bcrypt hash")
    parser.add_argument("identifier", help="email, user id or username")
    parser.add_argument("password")
    return parser.parse_args()


def main() -> None:
    configure_logging()
    args = parse_args()

    config = get_api_config()
    service = UserService(config=config, db=DatabaseClient(database_url=config.database_url))
    if not service.set_password(identifier=args.identifier, password=args.password):
        print(f"No user found for {args.identifier!r}.", file=sys.stderr)
        sys.exit(1)
    print(f"Password updated for {args.identifier}.")


if __name__ == "__main__":
    main()
