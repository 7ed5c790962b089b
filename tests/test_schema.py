"""
Tests for record models and context block formatting.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from notetoself.core.privacy import filter_pii
from notetoself.core.schema import (
    ChatMessageRecord,
    ContextBlock,
    ContextItem,
    JournalRecord,
    Mood,
    RecordType,
    SourceType,
    from_micros,
    to_micros,
    truncate_snippet,
)

NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


def test_journal_record_defaults():
    record = JournalRecord(text="hello", mood="happy")

    assert isinstance(record.id, uuid.UUID)
    assert record.mood is Mood.HAPPY
    assert record.intensity == 2
    assert record.embedding is None
    assert record.created_at.tzinfo is not None
    assert record.record_type is RecordType.JOURNAL
    assert RecordType.JOURNAL.table == "JournalEntries"
    assert RecordType.CHAT.table == "ChatMessages"


@pytest.mark.parametrize("fields", [
    {"text": "x", "mood": "ecstatic"},
    {"text": "x", "mood": "happy", "intensity": 4},
    {"text": "x", "mood": "happy", "embedding": [0.1, float("nan")]},
])
def test_journal_record_validation(fields):
    with pytest.raises(ValidationError):
        JournalRecord(**fields)


def test_records_are_immutable():
    record = ChatMessageRecord(chat_id=uuid.uuid4(), text="hi", is_user=True)

    with pytest.raises(ValidationError):
        record.text = "changed"

    starred = record.model_copy(update={"is_starred": True})
    assert starred.is_starred and not record.is_starred
    assert starred.id == record.id


def test_naive_datetimes_are_utc():
    record = JournalRecord(text="x", mood="calm", created_at=datetime(2024, 1, 1, 8, 0))

    assert record.created_at == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


def test_micros_conversion_is_exact():
    value = datetime(2031, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

    assert from_micros(to_micros(value)) == value
    assert to_micros(datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)) == 1_000_000


def test_context_item_age():
    item = ContextItem(id=uuid.uuid4(), text="t", source_type=SourceType.INSIGHT, date=NOW - timedelta(days=3, hours=5))

    assert item.age_in_days(NOW) == 3
    # Future dates do not produce negative ages
    assert item.age_in_days(NOW - timedelta(days=10)) == 0


def test_truncate_snippet():
    assert truncate_snippet("short", 100) == "short"
    assert truncate_snippet("  many   spaces\nand lines ", 100) == "many spaces and lines"
    assert truncate_snippet("abcdefghij", 8) == "abcde..."


def test_empty_block_renders_empty_string():
    block = ContextBlock()

    assert block.is_empty
    assert block.render() == ""


def test_render_drops_dangling_headers():
    journal = JournalRecord(text="j" * 40, mood=Mood.HAPPY, created_at=NOW)
    chat = ChatMessageRecord(chat_id=uuid.uuid4(), text="c" * 40, is_user=False, created_at=NOW)
    block = ContextBlock(
        journal_items=[ContextItem.from_journal(journal)],
        chat_groups={chat.chat_id: [ContextItem.from_chat(chat)]}
    )

    full = block.render(now=NOW)
    first_line_budget = len("\n".join(full.split("\n")[:2]))
    # Room for the journal section and a chat header, but no chat item
    text = block.render(max_chars=first_line_budget + 40, now=NOW)

    assert text.split("\n") == full.split("\n")[:2]
    assert "Assistant:" in full


def test_render_applies_redaction_to_snippets():
    journal = JournalRecord(text="secret plan", mood=Mood.CALM, created_at=NOW)
    block = ContextBlock(journal_items=[ContextItem.from_journal(journal)])

    text = block.render(redact=lambda s: s.replace("secret", "[X]"), now=NOW)

    assert text.endswith("[X] plan")
    assert "today" in text


def test_render_redacts_before_truncating():
    """An identifier straddling the snippet cut is still redacted."""
    journal = JournalRecord(text="Write to someone@example.com about the move", mood=Mood.CALM, created_at=NOW)
    block = ContextBlock(journal_items=[ContextItem.from_journal(journal)])

    text = block.render(snippet_chars=20, redact=filter_pii, now=NOW)
    snippet = text.split("\n")[1].split(") ", 1)[1]

    assert "example" not in text
    assert snippet.startswith("Write to [EMAIL]")
    assert len(snippet) <= 20


def test_render_snippet_stays_within_limit_after_redaction():
    journal = JournalRecord(text="x", mood=Mood.CALM, created_at=NOW)
    block = ContextBlock(journal_items=[ContextItem.from_journal(journal)])

    text = block.render(snippet_chars=10, redact=lambda s: s + " expanded by redaction", now=NOW)
    snippet = text.split("\n")[1].split(") ", 1)[1]

    assert snippet.endswith("...")
    assert len(snippet) <= 10
