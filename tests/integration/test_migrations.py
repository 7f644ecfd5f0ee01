import sqlite3

import pytest

from trackflow.adapters.sqlite.migrator import SQLiteMigrator


@pytest.fixture
def temp_db_path(tmp_path):
    return str(tmp_path / "test_db.sqlite")


@pytest.fixture
def migrations_dir():
    # Real directory, so the shipped SQL is exercised too
    return "migrations"


def test_migrator_creates_migration_table(temp_db_path, migrations_dir):
    SQLiteMigrator(temp_db_path, migrations_dir).run_migrations()

    conn = sqlite3.connect(temp_db_path)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='_migrations'")
    assert cursor.fetchone() is not None
    conn.close()


def test_migrator_applies_initial(temp_db_path, migrations_dir):
    applied = SQLiteMigrator(temp_db_path, migrations_dir).run_migrations()
    assert applied == ["001_initial.sql"]

    conn = sqlite3.connect(temp_db_path)
    tables = {
        row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    }
    assert {"sites", "events", "payments"} <= tables

    cursor = conn.execute("SELECT filename FROM _migrations WHERE filename='001_initial.sql'")
    assert cursor.fetchone() is not None
    conn.close()


def test_migrator_is_idempotent(temp_db_path, migrations_dir):
    migrator = SQLiteMigrator(temp_db_path, migrations_dir)

    migrator.run_migrations()
    assert migrator.run_migrations() == []
    assert migrator.pending() == []

    conn = sqlite3.connect(temp_db_path)
    cursor = conn.execute("SELECT count(*) FROM _migrations WHERE filename='001_initial.sql'")
    assert cursor.fetchone()[0] == 1
    conn.close()


def test_pending_on_fresh_database(temp_db_path, migrations_dir):
    assert SQLiteMigrator(temp_db_path, migrations_dir).pending() == ["001_initial.sql"]


def test_down_section_is_not_run(tmp_path, temp_db_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_t.sql").write_text("CREATE TABLE t (id INTEGER);\n-- Down\nDROP TABLE t;\n")

    SQLiteMigrator(temp_db_path, str(migrations)).run_migrations()

    conn = sqlite3.connect(temp_db_path)
    assert conn.execute("SELECT name FROM sqlite_master WHERE name='t'").fetchone() is not None
    conn.close()


def test_broken_migration_raises(tmp_path, temp_db_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_bad.sql").write_text("CREATE TABLE (;\n")

    migrator = SQLiteMigrator(temp_db_path, str(migrations))
    with pytest.raises(RuntimeError, match="001_bad.sql"):
        migrator.run_migrations()
    assert migrator.pending() == ["001_bad.sql"]
