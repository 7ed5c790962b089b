"""
Tests for environment-driven configuration.
"""

from notetoself.core.config import (
    get_context_limits,
    get_db_path,
    get_embedding_dim,
    get_retrieval_defaults,
    is_pii_filter_enabled,
    validate_config,
)


def test_defaults(monkeypatch):
    for name in ("DB_PATH", "EMBEDDING_DIM", "RETRIEVAL_JOURNAL_K", "RETRIEVAL_CHAT_K",
                 "CONTEXT_SNIPPET_CHARS", "CONTEXT_MAX_CHARS", "PII_FILTER_ENABLED", "EMBED_PROVIDER"):
        monkeypatch.delenv(name, raising=False)

    assert get_db_path() == "./data/notetoself.db"
    assert get_embedding_dim() == 512
    assert get_retrieval_defaults() == (3, 5)
    assert get_context_limits() == (100, 2000)
    assert is_pii_filter_enabled() is True
    assert validate_config() == []


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DB_PATH", "/tmp/other.db")
    monkeypatch.setenv("EMBEDDING_DIM", "384")
    monkeypatch.setenv("RETRIEVAL_JOURNAL_K", "1")
    monkeypatch.setenv("CONTEXT_MAX_CHARS", "500")
    monkeypatch.setenv("PII_FILTER_ENABLED", "false")

    assert get_db_path() == "/tmp/other.db"
    assert get_embedding_dim() == 384
    assert get_retrieval_defaults()[0] == 1
    assert get_context_limits()[1] == 500
    assert is_pii_filter_enabled() is False


def test_validate_config_reports_issues(monkeypatch):
    monkeypatch.setenv("EMBEDDING_DIM", "0")
    monkeypatch.setenv("EMBED_PROVIDER", "faiss")
    monkeypatch.setenv("CONTEXT_SNIPPET_CHARS", "300")
    monkeypatch.setenv("CONTEXT_MAX_CHARS", "200")

    issues = validate_config()

    assert "EMBEDDING_DIM must be >= 1" in issues
    assert "Invalid EMBED_PROVIDER: faiss" in issues
    assert "CONTEXT_MAX_CHARS must be >= CONTEXT_SNIPPET_CHARS" in issues


def test_validate_config_flags_model_dimension_mismatch(monkeypatch):
    monkeypatch.setenv("EMBED_PROVIDER", "sentence_transformers")
    monkeypatch.setenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
    monkeypatch.setenv("EMBEDDING_DIM", "512")

    message = "EMBED_MODEL_NAME all-MiniLM-L6-v2 produces 384-dim vectors but EMBEDDING_DIM is 512"
    assert message in validate_config()

    monkeypatch.setenv("EMBEDDING_DIM", "384")
    assert not any("EMBED_MODEL_NAME" in issue for issue in validate_config())
