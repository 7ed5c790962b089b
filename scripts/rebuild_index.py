#!/usr/bin/env python3
"""
Embedding rebuild utility.
Recomputes embeddings for records stored without one, e.g. after an embedding
dimension change cleared them or while the embedder was unavailable.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from notetoself.core.config import get_db_path, get_embedding_dim, get_embedding_provider
from notetoself.core.dao import DocumentStore
from notetoself.core.errors import StorageError
from notetoself.core.schema import RecordType
from notetoself.core.writer import MemoryWriter


def main(argv=None):
    """Re-embed records that have no embedding (or all records with --force)."""
    parser = argparse.ArgumentParser(description="Rebuild note-to-self embeddings")
    parser.add_argument("--db", default=None, help=f"Path to the store (default: {get_db_path()})")
    parser.add_argument(
        "--type",
        choices=[t.value for t in RecordType],
        default=None,
        help="Only rebuild journal entries or chat messages"
    )
    parser.add_argument("--force", action="store_true", help="Re-embed every record, not only missing ones")
    args = parser.parse_args(argv)

    embedding_dim = get_embedding_dim()
    embedder = get_embedding_provider(embedding_dim)
    # Opening the store at another dimension would clear every embedding
    if embedder.get_dimension() != embedding_dim:
        print(f"ERROR: Embedding provider produces {embedder.get_dimension()}-dim vectors, "
              f"store expects {embedding_dim}. Set EMBEDDING_DIM or EMBED_MODEL_NAME to match.")
        sys.exit(1)

    try:
        store = DocumentStore(args.db, embedding_dim=embedding_dim)
    except StorageError as e:
        print(f"ERROR: Could not open store: {e}")
        sys.exit(1)

    print("Starting embedding rebuild...")
    record_type = RecordType(args.type) if args.type else None
    for candidate in ([record_type] if record_type else list(RecordType)):
        total = store.count(candidate)
        embedded = store.count(candidate, embedded_only=True)
        print(f"Found {total} {candidate.value} records, {embedded} with embeddings")

    writer = MemoryWriter(store, embedder)
    try:
        updated = writer.reembed_missing(record_type, force=args.force)
    except StorageError as e:
        print(f"ERROR: Rebuild failed: {e}")
        sys.exit(2)

    print(f"✓ Embedded {updated} records")
    return updated


if __name__ == "__main__":
    main()
