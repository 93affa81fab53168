#!/usr/bin/env python3
"""
Create marketplace tables and install stored procedures.
Run it directly against the configured DATABASE_URL; it is safe to re-run.
Procedures are installed on PostgreSQL only; other databases rely on the inline query fallbacks.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from marketplace.common.db import engine, test_connection
from marketplace.common.ddl import apply_procedures, apply_schema_ddl
from marketplace.common.logging import configure_logging


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply marketplace DDL and stored procedures")
    parser.add_argument("--skip-procedures", action="store_true")
    return parser.parse_args()


def main() -> None:
    configure_logging()
    args = parse_args()

    if not test_connection():
        print("Database is unreachable. Check DATABASE_URL.", file=sys.stderr)
        sys.exit(1)

    apply_schema_ddl(engine)
    procedures_applied = False if args.skip_procedures else apply_procedures(engine)
    print(
        json.dumps(
            {
                "dialect": engine.dialect.name,
                "tables_applied": True,
                "procedures_applied": procedures_applied,
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    main()
