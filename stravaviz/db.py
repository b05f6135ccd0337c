import sqlite3
from pathlib import Path

SCHEMA_SQL = """\
-- Durable key/value records (the activity archive lives under one fixed key)
CREATE TABLE IF NOT EXISTS archive (
    key                 TEXT PRIMARY KEY,
    value               TEXT NOT NULL,
    updated_at          TEXT DEFAULT (datetime('now'))
);

-- Sync state tracking
CREATE TABLE IF NOT EXISTS sync_state (
    id                  INTEGER PRIMARY KEY,
    source              TEXT NOT NULL UNIQUE,
    last_sync_at        TEXT,
    metadata_json       TEXT
);
"""

DEFAULT_DB_PATH = Path.home() / "stravaviz" / "data" / "stravaviz.db"


def get_db_path(config=None):
    """Resolve the database path from config or fall back to default."""
    if config and "paths" in config and "db" in config["paths"]:
        return Path(config["paths"]["db"])
    return DEFAULT_DB_PATH


def get_connection(config=None):
    """Return a sqlite3 connection using the configured db path."""
    db_path = get_db_path(config)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def ensure_schema(conn):
    conn.executescript(SCHEMA_SQL)
    conn.commit()


def init_db(config=None):
    """Create all tables."""
    conn = get_connection(config)
    ensure_schema(conn)
    conn.close()
    db_path = get_db_path(config)
    print(f"Database initialized at {db_path}")
    return db_path
