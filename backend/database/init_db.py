"""
Apply schema.sql and check that every table the services rely on exists.

Run from the project root:
    python -m backend.database.init_db
"""

import logging
import sys
from pathlib import Path

from backend.database.db_connection import get_db

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"
REQUIRED_TABLES = ["users", "projects", "project_votes", "project_comments"]


def apply_schema() -> None:
    """Execute schema.sql in a single transaction."""
    sql = SCHEMA_PATH.read_text(encoding="utf-8")
    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(sql)


def missing_tables() -> list:
    """Return the names of required tables that do not exist."""
    missing = []
    with get_db() as conn:
        with conn.cursor() as cur:
            for table in REQUIRED_TABLES:
                cur.execute("SELECT to_regclass(%s);", (table,))
                if cur.fetchone()[0] is None:
                    missing.append(table)
    return missing


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")

    logging.info(f"Applying {SCHEMA_PATH.name}")
    apply_schema()

    missing = missing_tables()
    for table in REQUIRED_TABLES:
        status = "MISSING" if table in missing else "Found"
        logging.info(f" - {table}: {status}")

    if missing:
        logging.error(f"Schema check FAILED: {', '.join(missing)}")
        return 1

    logging.info("Schema check passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
