#!/usr/bin/env python3
"""
Store migration script.

Opens a note-to-self database, upgrading the mobile app layout (whole-second
dates, packed float32 embeddings) to the current schema in one transaction.
Opening a store migrates it anyway; this script makes the step explicit and
reports what happened.
"""

import argparse
import sqlite3
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from notetoself.core.config import SCHEMA_VERSION, get_db_path, get_embedding_dim
from notetoself.core.db import health_check, init_db
from notetoself.core.errors import StorageError
from notetoself.core.schema import RecordType
from notetoself.core.dao import DocumentStore


def main(argv=None):
    parser = argparse.ArgumentParser(description="Migrate a note-to-self store to the current schema")
    parser.add_argument("--db", default=None, help=f"Path to the store (default: {get_db_path()})")
    parser.add_argument("--dim", type=int, default=None, help="Embedding dimension (default: EMBEDDING_DIM)")
    args = parser.parse_args(argv)

    db_path = args.db or get_db_path()
    embedding_dim = args.dim or get_embedding_dim()

    print(f"Migrating store at {db_path}...")
    try:
        found_version = init_db(db_path, embedding_dim)
    except (StorageError, sqlite3.Error) as e:
        print(f"❌ Migration error: {e}")
        sys.exit(2)

    if not health_check(db_path):
        print("❌ Migration failed: required tables are missing")
        sys.exit(1)

    if found_version == SCHEMA_VERSION:
        print(f"✅ Store already at schema version {SCHEMA_VERSION}")
    elif found_version == 0:
        print(f"✅ Created new store at schema version {SCHEMA_VERSION}")
    else:
        print(f"✅ Migrated store from schema version {found_version} to {SCHEMA_VERSION}")

    store = DocumentStore(db_path, embedding_dim)
    for record_type in RecordType:
        total = store.count(record_type)
        embedded = store.count(record_type, embedded_only=True)
        print(f"  {record_type.table}: {total} records, {embedded} with embeddings")

    return found_version


if __name__ == "__main__":
    main()
