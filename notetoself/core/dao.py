"""
Document store - durable CRUD for journal entries and chat messages.
Each put() is one INSERT OR REPLACE, so a record and its embedding land together.
"""

import sqlite3
import uuid
from datetime import datetime
from typing import Dict, Iterable, Iterator, Optional, Union

from pydantic import ValidationError

from .config import get_db_path, get_embedding_dim
from .db import get_db, health_check, init_db
from .errors import DimensionMismatch, MalformedEmbedding, StorageError
from .schema import ChatMessageRecord, JournalRecord, RecordType, from_micros, to_micros
from ..vector import codec
from ..vector.types import EmbeddedRow

from util.logging import logger

Record = Union[JournalRecord, ChatMessageRecord]
RecordId = Union[uuid.UUID, str]

_COLUMNS = {
    RecordType.JOURNAL: "id, text, mood, date, intensity, embedding",
    RecordType.CHAT: "id, chatId, text, isUser, date, isStarred, embedding",
}

# SQLite's default limit on bound parameters is 999
_IN_CHUNK = 500


def _normalize_id(record_id: RecordId) -> Optional[str]:
    try:
        return str(record_id if isinstance(record_id, uuid.UUID) else uuid.UUID(str(record_id)))
    except ValueError:
        return None


class DocumentStore:
    """
    SQLite-backed store for JournalRecord and ChatMessageRecord.

    Construct one per process and pass it to the index, writer and retrieval
    service. Every operation opens its own short-lived connection, so the
    store itself holds no state beyond its path and embedding dimension.
    """

    def __init__(self, db_path: str = None, embedding_dim: int = None):
        self.db_path = db_path or get_db_path()
        self.embedding_dim = embedding_dim or get_embedding_dim()
        try:
            init_db(self.db_path, self.embedding_dim)
        except sqlite3.Error as e:
            logger.error(f"Failed to open store at '{self.db_path}': {e}")
            raise StorageError("open", str(e)) from e

    # Writes

    def put(self, record: Record) -> None:
        """
        Upsert a record by id.

        An embedding with the wrong dimension (or that cannot be encoded) is
        stored as NULL rather than rejected; the record itself is always written.

        Raises:
            StorageError: if the write fails
        """
        record_type = record.record_type
        embedding_text = self._encode_for_write(record)

        if record_type is RecordType.JOURNAL:
            sql = ("INSERT OR REPLACE INTO JournalEntries (id, text, mood, date, intensity, embedding) "
                   "VALUES (?, ?, ?, ?, ?, ?)")
            params = (str(record.id), record.text, record.mood.value, to_micros(record.created_at),
                      record.intensity, embedding_text)
        else:
            sql = ("INSERT OR REPLACE INTO ChatMessages (id, chatId, text, isUser, date, isStarred, embedding) "
                   "VALUES (?, ?, ?, ?, ?, ?, ?)")
            params = (str(record.id), str(record.chat_id), record.text, int(record.is_user),
                      to_micros(record.created_at), int(record.is_starred), embedding_text)

        try:
            with get_db(self.db_path) as conn:
                conn.execute(sql, params)
                conn.commit()
        except sqlite3.Error as e:
            logger.log_store_operation("put", record.id, record_type.table, {"error": str(e)[:100]}, status="failed")
            raise StorageError("put", str(e)) from e

        logger.log_store_operation("put", record.id, record_type.table, {"embedded": embedding_text is not None})

    def _encode_for_write(self, record: Record) -> Optional[str]:
        if record.embedding is None:
            return None
        try:
            codec.validate_dimension(record.embedding, self.embedding_dim)
            return codec.encode(record.embedding)
        except DimensionMismatch as e:
            logger.log_vector_operation("dimension_mismatch", record.id, {
                "expected": e.expected,
                "actual": e.actual,
                "action": "stored_without_embedding"
            }, status="rejected")
        except MalformedEmbedding as e:
            logger.log_vector_operation("malformed", record.id, {"error": str(e)[:100]}, status="rejected")
        return None

    def delete(self, record_id: RecordId, record_type: RecordType = None) -> bool:
        """
        Delete a record and its embedding.

        Returns:
            True if a record was deleted, False if no such record exists
        """
        key = _normalize_id(record_id)
        if key is None:
            return False

        record_types = [record_type] if record_type else list(RecordType)
        try:
            with get_db(self.db_path) as conn:
                for candidate in record_types:
                    cursor = conn.execute(f"DELETE FROM {candidate.table} WHERE id = ?", (key,))
                    if cursor.rowcount > 0:
                        conn.commit()
                        logger.log_store_operation("delete", key, candidate.table)
                        return True
        except sqlite3.Error as e:
            raise StorageError("delete", str(e)) from e

        logger.log_store_operation("delete", key, "any" if record_type is None else record_type.table, status="not_found")
        return False

    # Reads

    def get(self, record_id: RecordId, record_type: RecordType = None) -> Optional[Record]:
        """Get a record by id, or None if it does not exist."""
        key = _normalize_id(record_id)
        if key is None:
            return None

        record_types = [record_type] if record_type else list(RecordType)
        try:
            with get_db(self.db_path) as conn:
                for candidate in record_types:
                    row = conn.execute(
                        f"SELECT {_COLUMNS[candidate]} FROM {candidate.table} WHERE id = ?", (key,)
                    ).fetchone()
                    if row:
                        return self._row_to_record(candidate, row)
        except sqlite3.Error as e:
            raise StorageError("get", str(e)) from e
        return None

    def get_many(self, record_ids: Iterable[RecordId], record_type: RecordType) -> Dict[uuid.UUID, Record]:
        """
        Get several records of one type.

        Missing ids are simply absent from the result, and so are rows that
        cannot be decoded (logged and skipped).
        """
        keys = [key for key in (_normalize_id(r) for r in record_ids) if key is not None]
        found = {}
        try:
            with get_db(self.db_path) as conn:
                for start in range(0, len(keys), _IN_CHUNK):
                    chunk = keys[start:start + _IN_CHUNK]
                    placeholders = ", ".join("?" for _ in chunk)
                    rows = conn.execute(
                        f"SELECT {_COLUMNS[record_type]} FROM {record_type.table} WHERE id IN ({placeholders})",
                        chunk
                    ).fetchall()
                    for record in self._decode_rows(record_type, rows):
                        found[record.id] = record
        except sqlite3.Error as e:
            raise StorageError("get_many", str(e)) from e
        return found

    def scan(self, record_type: RecordType, chat_id: RecordId = None,
             start: datetime = None, end: datetime = None,
             starred: bool = None) -> Iterator[Record]:
        """
        Lazily iterate records of one type, oldest first.

        Args:
            record_type: Which collection to scan
            chat_id: Only messages of this conversation (chat messages only)
            start: Inclusive lower bound on created_at
            end: Exclusive upper bound on created_at
            starred: Only starred (True) or unstarred (False) messages

        Each call re-reads the current state of the store. Rows that cannot
        be decoded are logged and skipped.

        Raises:
            ValueError: if chat_id or starred is used with journal entries
        """
        if record_type is RecordType.JOURNAL and (chat_id is not None or starred is not None):
            raise ValueError("chat_id and starred filters apply to chat messages only")

        clauses = []
        params = []
        if chat_id is not None:
            clauses.append("chatId = ?")
            params.append(_normalize_id(chat_id) or str(chat_id))
        if start is not None:
            clauses.append("date >= ?")
            params.append(to_micros(start))
        if end is not None:
            clauses.append("date < ?")
            params.append(to_micros(end))
        if starred is not None:
            clauses.append("isStarred = ?")
            params.append(int(starred))

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"SELECT {_COLUMNS[record_type]} FROM {record_type.table}{where} ORDER BY date ASC, id ASC"

        return self._scan_rows(record_type, sql, params)

    def _scan_rows(self, record_type: RecordType, sql: str, params) -> Iterator[Record]:
        try:
            with get_db(self.db_path) as conn:
                yield from self._decode_rows(record_type, conn.execute(sql, params))
        except sqlite3.Error as e:
            raise StorageError("scan", str(e)) from e

    def all_with_embedding(self, record_type: RecordType) -> Iterator[EmbeddedRow]:
        """
        Lazily iterate (id, created_at, vector) for every embedded record of a type.
        Records with NULL, malformed or wrongly sized embeddings are skipped.
        """
        sql = f"SELECT id, date, embedding FROM {record_type.table} WHERE embedding IS NOT NULL"
        try:
            with get_db(self.db_path) as conn:
                for record_id, date, raw in conn.execute(sql):
                    vector = self._decode_for_read(record_id, raw)
                    if vector is not None:
                        yield EmbeddedRow(uuid.UUID(record_id), from_micros(date), vector)
        except sqlite3.Error as e:
            raise StorageError("all_with_embedding", str(e)) from e

    def count(self, record_type: RecordType, embedded_only: bool = False) -> int:
        """Count records of a type, optionally only those carrying an embedding."""
        where = " WHERE embedding IS NOT NULL" if embedded_only else ""
        try:
            with get_db(self.db_path) as conn:
                return conn.execute(f"SELECT COUNT(*) FROM {record_type.table}{where}").fetchone()[0]
        except sqlite3.Error as e:
            raise StorageError("count", str(e)) from e

    def health_check(self) -> bool:
        return health_check(self.db_path)

    # Row mapping

    def _decode_for_read(self, record_id: str, raw):
        if raw is None:
            return None
        try:
            vector = codec.decode(raw)
            codec.validate_dimension(vector, self.embedding_dim)
            return vector
        except (MalformedEmbedding, DimensionMismatch) as e:
            # Corrupt embeddings degrade to "not embedded"
            logger.log_vector_operation("decode", record_id, {"error": str(e)[:100]}, status="degraded")
            return None

    def _decode_rows(self, record_type: RecordType, rows) -> Iterator[Record]:
        for row in rows:
            try:
                yield self._row_to_record(record_type, row)
            except StorageError:
                # Already logged; one corrupt row must not hide the rest
                continue

    def _row_to_record(self, record_type: RecordType, row) -> Record:
        try:
            if record_type is RecordType.JOURNAL:
                record_id, text, mood, date, intensity, raw = row
                vector = self._decode_for_read(record_id, raw)
                return JournalRecord(
                    id=record_id,
                    text=text,
                    mood=mood,
                    created_at=from_micros(date),
                    intensity=intensity,
                    embedding=vector.tolist() if vector is not None else None
                )

            record_id, chat_id, text, is_user, date, is_starred, raw = row
            vector = self._decode_for_read(record_id, raw)
            return ChatMessageRecord(
                id=record_id,
                chat_id=chat_id,
                text=text,
                is_user=bool(is_user),
                created_at=from_micros(date),
                is_starred=bool(is_starred),
                embedding=vector.tolist() if vector is not None else None
            )
        except (ValidationError, TypeError, ValueError) as e:
            logger.log_store_operation("decode", row[0], record_type.table, {"error": str(e)[:100]}, status="failed")
            raise StorageError("decode", f"row {row[0]} in {record_type.table} is corrupt: {e}") from e
