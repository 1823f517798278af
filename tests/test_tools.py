import os
import sqlite3
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "tools")))
import add_checkout_settings_columns as tool  # noqa: E402
from checkout import DEFAULT_PREFERRED_DOUBLES, DEFAULT_TARGET  # noqa: E402


def _make_db(path, columns="id INTEGER PRIMARY KEY, updated_at DATETIME"):
    conn = sqlite3.connect(path)
    conn.execute(f"CREATE TABLE settings ({columns})")
    conn.execute("INSERT INTO settings (id) VALUES (1)")
    conn.commit()
    conn.close()


def test_adds_missing_columns(tmp_path, capsys):
    db_path = str(tmp_path / "darts.db")
    _make_db(db_path)

    assert tool.main(["--db", db_path]) == 0
    assert "Success" in capsys.readouterr().out

    conn = sqlite3.connect(db_path)
    try:
        assert tool.missing_columns(conn) == []
        row = conn.execute("SELECT preferred_doubles, show_only_preferred, last_target FROM settings").fetchone()
        assert row == (",".join(DEFAULT_PREFERRED_DOUBLES), 0, DEFAULT_TARGET)
    finally:
        conn.close()


def test_nothing_to_do(tmp_path, capsys):
    db_path = str(tmp_path / "darts.db")
    _make_db(
        db_path,
        "id INTEGER PRIMARY KEY, preferred_doubles VARCHAR(255), show_only_preferred INTEGER, last_target INTEGER",
    )
    assert tool.main(["--db", db_path]) == 0
    assert "No action needed" in capsys.readouterr().out


def test_partial_columns(tmp_path):
    db_path = str(tmp_path / "darts.db")
    _make_db(db_path, "id INTEGER PRIMARY KEY, last_target INTEGER")
    conn = sqlite3.connect(db_path)
    try:
        assert tool.missing_columns(conn) == ["preferred_doubles", "show_only_preferred"]
    finally:
        conn.close()
    assert tool.main(["--db", db_path]) == 0


def test_missing_file(tmp_path, capsys):
    assert tool.main(["--db", str(tmp_path / "nope.db")]) == 2
    assert "not found" in capsys.readouterr().err


def test_missing_table_fails_alter(tmp_path):
    db_path = str(tmp_path / "darts.db")
    sqlite3.connect(db_path).close()
    assert tool.main(["--db", db_path]) == 5


def test_not_a_database(tmp_path):
    db_path = tmp_path / "darts.db"
    db_path.write_bytes(b"this is definitely not sqlite" * 10)
    assert tool.main(["--db", str(db_path)]) == 3
