"""SQLite persistence: connections, schema, and transactions."""
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Sequence

from errors import StorageError
from log import get_logger

logger = get_logger("nungdict.storage")

DB_PATH = Path(os.environ.get("NUNGDICT_DB_PATH", Path(__file__).parent / "nungdict.db"))

# Stay well under SQLite's bound-parameter limit for IN (...) batches
IN_CLAUSE_BATCH = 500

SCHEMA = """
    CREATE TABLE IF NOT EXISTS discussion_nodes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        subject_key TEXT NOT NULL,
        author_id TEXT,
        content TEXT NOT NULL,
        like_count INTEGER NOT NULL DEFAULT 0 CHECK (like_count >= 0),
        parent_id INTEGER REFERENCES discussion_nodes(id) ON DELETE CASCADE,
        depth INTEGER NOT NULL DEFAULT 1,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_nodes_subject_parent ON discussion_nodes(subject_key, parent_id);
    CREATE INDEX IF NOT EXISTS idx_nodes_parent ON discussion_nodes(parent_id, created_at);

    CREATE TABLE IF NOT EXISTS discussion_likes (
        node_id INTEGER NOT NULL REFERENCES discussion_nodes(id) ON DELETE CASCADE,
        user_id TEXT NOT NULL,
        created_at REAL NOT NULL,
        PRIMARY KEY (node_id, user_id)
    );

    CREATE TABLE IF NOT EXISTS discussion_reports (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        node_id INTEGER NOT NULL,
        reporter_id TEXT NOT NULL,
        reason TEXT,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'resolved', 'dismissed')),
        reviewed_by TEXT,
        reviewed_at REAL,
        action_taken TEXT,
        created_at REAL NOT NULL,
        UNIQUE (node_id, reporter_id)
    );
    CREATE INDEX IF NOT EXISTS idx_reports_status ON discussion_reports(status, created_at);

    CREATE TABLE IF NOT EXISTS contributions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        word TEXT NOT NULL,
        translation TEXT NOT NULL,
        phonetic TEXT,
        notes TEXT,
        source_lang TEXT NOT NULL DEFAULT 'vi',
        target_lang TEXT NOT NULL,
        region TEXT,
        contributor_id TEXT,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'approved', 'rejected')),
        reviewed_by TEXT,
        reviewed_at REAL,
        created_at REAL NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_contributions_word ON contributions(target_lang, word);
"""


def get_db() -> sqlite3.Connection:
    try:
        conn = sqlite3.connect(str(DB_PATH))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
    except sqlite3.Error as e:
        raise StorageError(f"Cannot open database: {e}") from e
    return conn


def init_db():
    with transaction() as conn:
        conn.executescript(SCHEMA)
    logger.info("Database ready", extra={"component": "storage", "detail": str(DB_PATH)})


@contextmanager
def transaction(immediate: bool = False) -> Iterator[sqlite3.Connection]:
    """Yield a connection inside one transaction.

    Commits on success, rolls back on any exception. sqlite3 errors leave as
    StorageError; domain errors raised by the caller pass through unchanged.
    `immediate=True` takes the write lock up front so read-then-write
    sequences cannot interleave with another writer.
    """
    conn = get_db()
    try:
        if immediate:
            conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error("Storage failure", exc_info=True, extra={"component": "storage"})
        raise StorageError(str(e)) from e
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def batched(ids: Sequence[int], size: int = IN_CLAUSE_BATCH) -> Iterator[List[int]]:
    for start in range(0, len(ids), size):
        yield list(ids[start:start + size])


def placeholders(count: int) -> str:
    return ",".join("?" * count)
