"""
SQLite foundation - connection handling, schema setup and migrations.
SQLite is the single canonical backend for records and their embeddings.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional

from .config import SCHEMA_VERSION, SQLITE_TIMEOUT_SEC, ensure_db_directory, get_db_path
from .errors import DimensionMismatch, MalformedEmbedding, StorageError
from ..vector import codec

from util.logging import logger

REQUIRED_TABLES = ['JournalEntries', 'ChatMessages', 'StoreMeta']


@contextmanager
def get_db(db_path: str = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    conn = sqlite3.connect(db_path or get_db_path(), timeout=SQLITE_TIMEOUT_SEC)
    try:
        yield conn
    finally:
        conn.close()


def _create_tables(cursor: sqlite3.Cursor):
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS JournalEntries (
            id TEXT PRIMARY KEY,
            text TEXT NOT NULL,
            mood TEXT NOT NULL,
            date INTEGER NOT NULL,       -- microseconds since epoch, UTC
            intensity INTEGER NOT NULL,
            embedding TEXT               -- JSON float array, NULL when not embedded
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS ChatMessages (
            id TEXT PRIMARY KEY,
            chatId TEXT NOT NULL,        -- not a foreign key, orphans are tolerated
            text TEXT NOT NULL,
            isUser INTEGER NOT NULL,
            date INTEGER NOT NULL,
            isStarred INTEGER NOT NULL,
            embedding TEXT
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS StoreMeta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    ''')

    # Create indexes for scans by conversation and date range
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_journal_date ON JournalEntries(date)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_chat_chat_id_date ON ChatMessages(chatId, date)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_chat_date ON ChatMessages(date)')


def _table_names(cursor: sqlite3.Cursor):
    cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
    return {row[0] for row in cursor.fetchall()}


def get_meta(cursor: sqlite3.Cursor, key: str) -> Optional[str]:
    cursor.execute("SELECT value FROM StoreMeta WHERE key = ?", (key,))
    row = cursor.fetchone()
    return row[0] if row else None


def set_meta(cursor: sqlite3.Cursor, key: str, value: str):
    cursor.execute("INSERT OR REPLACE INTO StoreMeta (key, value) VALUES (?, ?)", (key, value))


def init_db(db_path: str = None, embedding_dim: int = 512) -> int:
    """
    Initialize the database, migrating older layouts to the current schema.

    Args:
        db_path: SQLite file path, defaults to DB_PATH
        embedding_dim: Store-wide embedding dimension

    Returns:
        The schema version the file was found at before migrating (0 for a new file)
    """
    db_path = db_path or get_db_path()
    ensure_db_directory(db_path)

    with get_db(db_path) as conn:
        # WAL lets readers proceed while the single writer commits
        conn.execute("PRAGMA journal_mode=WAL")
        conn.isolation_level = None
        cursor = conn.cursor()

        found_version = cursor.execute("PRAGMA user_version").fetchone()[0]
        if found_version == 0 and {'JournalEntries', 'ChatMessages'} & _table_names(cursor):
            # Tables without a version stamp were written by the mobile app
            found_version = 1

        if found_version > SCHEMA_VERSION:
            raise StorageError("open", f"database schema version {found_version} is newer than supported {SCHEMA_VERSION}")

        cursor.execute("BEGIN IMMEDIATE")
        try:
            if found_version == 0:
                _create_tables(cursor)
                set_meta(cursor, "embedding_dim", str(embedding_dim))
                logger.log_migration("create", 0, SCHEMA_VERSION, {"db_path": db_path, "embedding_dim": embedding_dim})
            elif found_version == 1:
                migrate_v1_to_v2(cursor, embedding_dim)

            reconcile_embedding_dim(cursor, embedding_dim)
            cursor.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            cursor.execute("COMMIT")
        except Exception:
            cursor.execute("ROLLBACK")
            raise

    return found_version


def migrate_v1_to_v2(cursor: sqlite3.Cursor, embedding_dim: int):
    """
    Migrate the mobile app layout: whole-second dates and packed float32
    embedding blobs become microsecond dates and JSON embedding text.
    Blobs that cannot be decoded, or have the wrong length, become NULL.
    """
    tables = _table_names(cursor)
    for table in ('JournalEntries', 'ChatMessages'):
        if table in tables:
            cursor.execute(f"ALTER TABLE {table} RENAME TO {table}_v1")

    _create_tables(cursor)

    converted = 0
    dropped = 0

    if 'JournalEntries' in tables:
        rows = cursor.execute("SELECT id, text, mood, date, intensity, embedding FROM JournalEntries_v1").fetchall()
        for record_id, text, mood, date, intensity, embedding in rows:
            embedding_text = _migrate_embedding(embedding, embedding_dim)
            converted += embedding_text is not None
            dropped += embedding is not None and embedding_text is None
            cursor.execute(
                "INSERT INTO JournalEntries (id, text, mood, date, intensity, embedding) VALUES (?, ?, ?, ?, ?, ?)",
                (record_id, text, mood, int(date) * 1_000_000, intensity, embedding_text)
            )
        cursor.execute("DROP TABLE JournalEntries_v1")

    if 'ChatMessages' in tables:
        rows = cursor.execute("SELECT id, chatId, text, isUser, date, isStarred, embedding FROM ChatMessages_v1").fetchall()
        for record_id, chat_id, text, is_user, date, is_starred, embedding in rows:
            embedding_text = _migrate_embedding(embedding, embedding_dim)
            converted += embedding_text is not None
            dropped += embedding is not None and embedding_text is None
            cursor.execute(
                "INSERT INTO ChatMessages (id, chatId, text, isUser, date, isStarred, embedding) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (record_id, chat_id, text, is_user, int(date) * 1_000_000, is_starred, embedding_text)
            )
        cursor.execute("DROP TABLE ChatMessages_v1")

    set_meta(cursor, "embedding_dim", str(embedding_dim))
    logger.log_migration("v1_to_v2", 1, 2, {"embeddings_converted": converted, "embeddings_dropped": dropped})


def _migrate_embedding(raw, embedding_dim: int) -> Optional[str]:
    if raw is None:
        return None
    try:
        vector = codec.decode(raw)
        codec.validate_dimension(vector, embedding_dim)
        return codec.encode(vector)
    except (MalformedEmbedding, DimensionMismatch):
        return None


def reconcile_embedding_dim(cursor: sqlite3.Cursor, embedding_dim: int) -> bool:
    """
    Clear every embedding when the store was built with a different dimension.

    Returns:
        True if embeddings were cleared and need re-embedding
    """
    stored = get_meta(cursor, "embedding_dim")
    if stored is not None and int(stored) == embedding_dim:
        return False

    if stored is not None:
        cleared = 0
        for table in ('JournalEntries', 'ChatMessages'):
            cursor.execute(f"UPDATE {table} SET embedding = NULL WHERE embedding IS NOT NULL")
            cleared += cursor.rowcount
        logger.log_migration("embedding_dim", int(stored), embedding_dim, {"embeddings_cleared": cleared})

    set_meta(cursor, "embedding_dim", str(embedding_dim))
    return stored is not None


def health_check(db_path: str = None):
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            table_names = _table_names(cursor)

            # Check if required tables exist
            if all(table in table_names for table in REQUIRED_TABLES):
                return True
            else:
                return False
    except sqlite3.Error:
        return False
