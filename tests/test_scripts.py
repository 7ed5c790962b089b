"""
Tests for the rebuild_index and migrate_store command-line scripts.
"""

import sqlite3
import struct
import uuid
from unittest.mock import patch

import pytest

from notetoself.core.dao import DocumentStore
from notetoself.core.schema import ChatMessageRecord, JournalRecord, Mood, RecordType
from notetoself.vector.embeddings import DeterministicHashEmbedding
from scripts.migrate_store import main as migrate_main
from scripts.rebuild_index import main as rebuild_main

DIM = 16


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Use the hash embedder at the test dimension."""
    monkeypatch.setenv("EMBED_PROVIDER", "hash")
    monkeypatch.setenv("EMBEDDING_DIM", str(DIM))


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "scripts.db")


def test_rebuild_index_embeds_missing_records(capfd, db_path):
    store = DocumentStore(db_path, embedding_dim=DIM)
    journal = JournalRecord(text="written while offline", mood=Mood.CONTENT)
    chat = ChatMessageRecord(chat_id=uuid.uuid4(), text="also offline", is_user=True)
    store.put(journal)
    store.put(chat)

    updated = rebuild_main(["--db", db_path])

    captured = capfd.readouterr()
    assert "Starting embedding rebuild..." in captured.out
    assert "Found 1 journal records, 0 with embeddings" in captured.out
    assert "✓ Embedded 2 records" in captured.out
    assert updated == 2
    assert store.count(RecordType.JOURNAL, embedded_only=True) == 1
    assert store.count(RecordType.CHAT, embedded_only=True) == 1


def test_rebuild_index_single_type(capfd, db_path):
    store = DocumentStore(db_path, embedding_dim=DIM)
    store.put(JournalRecord(text="journal", mood=Mood.CALM))
    store.put(ChatMessageRecord(chat_id=uuid.uuid4(), text="chat", is_user=False))

    assert rebuild_main(["--db", db_path, "--type", "chat"]) == 1
    assert store.count(RecordType.JOURNAL, embedded_only=True) == 0


def test_rebuild_index_force(db_path):
    store = DocumentStore(db_path, embedding_dim=DIM)
    rebuild_main(["--db", db_path])
    store.put(JournalRecord(text="first", mood=Mood.CALM))
    rebuild_main(["--db", db_path])

    assert rebuild_main(["--db", db_path]) == 0
    assert rebuild_main(["--db", db_path, "--force"]) == 1


def test_migrate_store_reports_legacy_upgrade(capfd, db_path):
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE JournalEntries (id TEXT PRIMARY KEY, text TEXT, mood TEXT, "
                 "date INTEGER, intensity INTEGER, embedding BLOB)")
    conn.execute("INSERT INTO JournalEntries VALUES (?, ?, ?, ?, ?, ?)",
                 (str(uuid.uuid4()), "legacy", "happy", 1700000000, 2, struct.pack(f"<{DIM}f", *([0.5] * DIM))))
    conn.commit()
    conn.close()

    found_version = migrate_main(["--db", db_path])

    captured = capfd.readouterr()
    assert found_version == 1
    assert "✅ Migrated store from schema version 1 to 2" in captured.out
    assert "JournalEntries: 1 records, 1 with embeddings" in captured.out
    assert "ChatMessages: 0 records, 0 with embeddings" in captured.out


def test_migrate_store_current_version(capfd, db_path):
    DocumentStore(db_path, embedding_dim=DIM)

    assert migrate_main(["--db", db_path]) == 2
    assert "already at schema version 2" in capfd.readouterr().out


def test_migrate_store_refuses_newer_schema(db_path):
    DocumentStore(db_path, embedding_dim=DIM)
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA user_version = 99")
    conn.close()

    with pytest.raises(SystemExit) as exc_info:
        migrate_main(["--db", db_path])
    assert exc_info.value.code == 2


def test_rebuild_index_refuses_mismatched_provider(capfd, db_path):
    """A provider of another dimension aborts before the store is reopened."""
    store = DocumentStore(db_path, embedding_dim=DIM)
    store.put(JournalRecord(text="already embedded", mood=Mood.HAPPY, embedding=[0.25] * DIM))

    with patch("scripts.rebuild_index.get_embedding_provider", return_value=DeterministicHashEmbedding(dimension=8)):
        with pytest.raises(SystemExit) as exc_info:
            rebuild_main(["--db", db_path])

    assert exc_info.value.code == 1
    assert "store expects 16" in capfd.readouterr().out
    assert store.count(RecordType.JOURNAL, embedded_only=True) == 1
