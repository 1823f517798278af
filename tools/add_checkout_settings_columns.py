#!/usr/bin/env python3
"""
add_checkout_settings_columns.py

Small helper to add the checkout calculator columns (`preferred_doubles`,
`show_only_preferred`, `last_target`) to the `settings` table of an existing
SQLite DB (`darts.db`). It checks PRAGMA table_info first so columns are never
added twice, and prints a concise status.

Usage:
  python tools/add_checkout_settings_columns.py [--db /path/to/darts.db]

Column defaults come from the `checkout` module, so run it with the project
installed (`pip install -e .`). If --db is omitted the script looks for
`darts.db` in the project root (one level up from this script).
"""

from __future__ import annotations

import argparse
import os
import sqlite3
import sys
from typing import Optional

from checkout import DEFAULT_PREFERRED_DOUBLES, DEFAULT_TARGET

TABLE = "settings"

# column name -> column definition used in ALTER TABLE ... ADD COLUMN
COLUMNS = {
    "preferred_doubles": f"preferred_doubles VARCHAR(255) DEFAULT '{','.join(DEFAULT_PREFERRED_DOUBLES)}'",
    "show_only_preferred": "show_only_preferred INTEGER DEFAULT 0",
    "last_target": f"last_target INTEGER DEFAULT {DEFAULT_TARGET}",
}


def has_column(conn: sqlite3.Connection, table: str, col: str) -> bool:
    """Look `col` up among the column names SQLite reports for `table`."""
    cur = conn.execute(f"PRAGMA table_info('{table}')")
    return col in [r[1] for r in cur.fetchall()]


def add_column(conn: sqlite3.Connection, table: str, column_sql: str) -> None:
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column_sql}")
    conn.commit()


def missing_columns(conn: sqlite3.Connection, table: str = TABLE) -> list[str]:
    return [name for name in COLUMNS if not has_column(conn, table, name)]


def default_db_path() -> str:
    script_dir = os.path.dirname(os.path.abspath(__file__))
    return os.path.normpath(os.path.join(script_dir, "..", "darts.db"))


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Add checkout settings columns to darts.db if missing")
    p.add_argument("--db", help="Path to darts.db (SQLite). If omitted a default in the project is used.")
    return p.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    db_path = args.db or default_db_path()

    if not os.path.exists(db_path):
        print(f"ERROR: database file not found at: {db_path}", file=sys.stderr)
        return 2

    try:
        conn = sqlite3.connect(db_path)
    except sqlite3.Error as e:
        print(f"ERROR: failed to open database '{db_path}': {e}", file=sys.stderr)
        return 3

    try:
        try:
            todo = missing_columns(conn)
        except sqlite3.DatabaseError as e:
            print(f"ERROR: failed to read database '{db_path}': {e}", file=sys.stderr)
            return 3
        if not todo:
            print(f"No action needed: checkout columns already exist on '{TABLE}' table.")
            return 0

        for name in todo:
            print(f"Adding column '{name}' to '{TABLE}' table...")
            try:
                add_column(conn, TABLE, COLUMNS[name])
            except sqlite3.OperationalError as e:
                print("ERROR: failed to run ALTER TABLE:", e, file=sys.stderr)
                print(
                    "Common causes: database file is locked, the file is read-only, "
                    "the table does not exist, or it is not a valid SQLite database.",
                    file=sys.stderr,
                )
                return 5
            if not has_column(conn, TABLE, name):
                print(f"ERROR: ALTER TABLE executed but '{name}' not visible afterwards.", file=sys.stderr)
                return 4

        print(f"Success: added {', '.join(todo)} to '{TABLE}' table.")
        return 0
    finally:
        conn.close()


if __name__ == "__main__":
    sys.exit(main())
