"""
Store configuration - environment driven, read once at import.
Accessor functions re-read the environment so tests can override per case.
"""

import os
from pathlib import Path

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/notetoself.db")
SQLITE_TIMEOUT_SEC = float(os.getenv("SQLITE_TIMEOUT_SEC", "5.0"))

# Debug flag is now a function to be dynamic
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Embedding configuration - EMBEDDING_DIM is fixed for the lifetime of a store file
EMBEDDING_DIM = int(os.getenv("EMBEDDING_DIM", "512"))
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence_transformers
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")

# Output dimension of common sentence-transformers models, checked by validate_config()
KNOWN_MODEL_DIMENSIONS = {
    "all-MiniLM-L6-v2": 384,
    "all-MiniLM-L12-v2": 384,
    "paraphrase-MiniLM-L6-v2": 384,
    "all-mpnet-base-v2": 768,
    "multi-qa-mpnet-base-dot-v1": 768,
    "distiluse-base-multilingual-cased-v2": 512,
}

# Retrieval configuration
RETRIEVAL_JOURNAL_K = int(os.getenv("RETRIEVAL_JOURNAL_K", "3"))
RETRIEVAL_CHAT_K = int(os.getenv("RETRIEVAL_CHAT_K", "5"))
CONTEXT_SNIPPET_CHARS = int(os.getenv("CONTEXT_SNIPPET_CHARS", "100"))
CONTEXT_MAX_CHARS = int(os.getenv("CONTEXT_MAX_CHARS", "2000"))

# Privacy configuration
PII_FILTER_ENABLED = os.getenv("PII_FILTER_ENABLED", "true").lower() == "true"

# Current on-disk schema version (PRAGMA user_version)
SCHEMA_VERSION = 2

# Version string
VERSION = "0.3.0"


def get_db_path() -> str:
    """Get the configured database path."""
    return os.getenv("DB_PATH", DB_PATH)


def get_embedding_dim() -> int:
    """Get the store-wide embedding dimension."""
    return int(os.getenv("EMBEDDING_DIM", str(EMBEDDING_DIM)))


def get_retrieval_defaults():
    """Get (journal_k, chat_k) defaults for context retrieval."""
    return (
        int(os.getenv("RETRIEVAL_JOURNAL_K", str(RETRIEVAL_JOURNAL_K))),
        int(os.getenv("RETRIEVAL_CHAT_K", str(RETRIEVAL_CHAT_K))),
    )


def get_context_limits():
    """Get (snippet_chars, max_chars) bounds for a rendered context block."""
    return (
        int(os.getenv("CONTEXT_SNIPPET_CHARS", str(CONTEXT_SNIPPET_CHARS))),
        int(os.getenv("CONTEXT_MAX_CHARS", str(CONTEXT_MAX_CHARS))),
    )


def is_pii_filter_enabled() -> bool:
    """Check if PII filtering of context snippets is enabled."""
    return os.getenv("PII_FILTER_ENABLED", "true" if PII_FILTER_ENABLED else "false").lower() == "true"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or get_db_path()).parent.mkdir(parents=True, exist_ok=True)


def get_embedding_provider(dimension: int = None):
    """Get configured embedding provider implementation."""
    dimension = dimension or get_embedding_dim()
    provider = os.getenv("EMBED_PROVIDER", EMBED_PROVIDER)

    if provider == "sentence_transformers":
        from ..vector.embeddings import SentenceTransformerEmbedding
        # A model with a different output size is refused rather than used
        return SentenceTransformerEmbedding(os.getenv("EMBED_MODEL_NAME", EMBED_MODEL_NAME), dimension=dimension)
    else:
        # Default to the deterministic provider for unknown providers
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=dimension)


def validate_config():
    """Validate store configuration and return any issues."""
    issues = []

    if get_embedding_dim() < 1:
        issues.append("EMBEDDING_DIM must be >= 1")

    if os.getenv("EMBED_PROVIDER", EMBED_PROVIDER) not in ["hash", "sentence_transformers"]:
        issues.append(f"Invalid EMBED_PROVIDER: {os.getenv('EMBED_PROVIDER')}")

    if os.getenv("EMBED_PROVIDER", EMBED_PROVIDER) == "sentence_transformers":
        model_name = os.getenv("EMBED_MODEL_NAME", EMBED_MODEL_NAME)
        model_dim = KNOWN_MODEL_DIMENSIONS.get(model_name)
        if model_dim is not None and model_dim != get_embedding_dim():
            issues.append(f"EMBED_MODEL_NAME {model_name} produces {model_dim}-dim vectors but EMBEDDING_DIM is {get_embedding_dim()}")

    journal_k, chat_k = get_retrieval_defaults()
    if journal_k < 0 or chat_k < 0:
        issues.append("RETRIEVAL_JOURNAL_K and RETRIEVAL_CHAT_K must be >= 0")

    snippet_chars, max_chars = get_context_limits()
    if snippet_chars < 4:
        issues.append("CONTEXT_SNIPPET_CHARS must be >= 4")
    if max_chars < snippet_chars:
        issues.append("CONTEXT_MAX_CHARS must be >= CONTEXT_SNIPPET_CHARS")

    return issues
