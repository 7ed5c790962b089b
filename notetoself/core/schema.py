"""
Record models for journal entries, chat messages and derived context items.
Persisted records are immutable; use model_copy(update=...) and put() to change one.
"""

import math
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Mood(str, Enum):
    HAPPY = "happy"
    NEUTRAL = "neutral"
    SAD = "sad"
    EXCITED = "excited"
    STRESSED = "stressed"
    CONTENT = "content"
    ANXIOUS = "anxious"
    CALM = "calm"
    DEPRESSED = "depressed"
    RELAXED = "relaxed"
    ANGRY = "angry"
    BORED = "bored"
    ALERT = "alert"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class RecordType(str, Enum):
    """Selects the record collection (and table) an operation targets."""
    JOURNAL = "journal"
    CHAT = "chat"

    @property
    def table(self) -> str:
        return "JournalEntries" if self is RecordType.JOURNAL else "ChatMessages"


class SourceType(str, Enum):
    JOURNAL_ENTRY = "journal_entry"
    CHAT_MESSAGE = "chat_message"
    INSIGHT = "insight"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_micros(value: datetime) -> int:
    """Exact microseconds since the Unix epoch."""
    return (_as_utc(value) - _EPOCH) // timedelta(microseconds=1)


def from_micros(micros: int) -> datetime:
    return _EPOCH + timedelta(microseconds=micros)


class _StoredRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    text: str
    created_at: datetime = Field(default_factory=utc_now)
    embedding: Optional[List[float]] = None

    @field_validator('created_at')
    @classmethod
    def created_at_is_utc(cls, v):
        return _as_utc(v)

    @field_validator('embedding')
    @classmethod
    def embedding_must_be_finite(cls, v):
        if v is not None and not all(math.isfinite(x) for x in v):
            raise ValueError('embedding must contain only finite numbers')
        return v

    @property
    def record_type(self) -> RecordType:
        raise NotImplementedError


class JournalRecord(_StoredRecord):
    mood: Mood
    intensity: int = 2

    @field_validator('intensity')
    @classmethod
    def intensity_must_be_valid(cls, v):
        if v not in (1, 2, 3):
            raise ValueError('intensity must be one of: [1, 2, 3]')
        return v

    @property
    def record_type(self) -> RecordType:
        return RecordType.JOURNAL


class ChatMessageRecord(_StoredRecord):
    chat_id: uuid.UUID
    is_user: bool
    is_starred: bool = False

    @property
    def record_type(self) -> RecordType:
        return RecordType.CHAT


class ContextItem(BaseModel):
    """Normalized projection of a record used only to assemble AI context."""
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    text: str
    source_type: SourceType
    date: datetime
    mood: Optional[Mood] = None
    mood_intensity: Optional[int] = None
    is_starred: bool = False
    related_chat_id: Optional[uuid.UUID] = None
    is_user: Optional[bool] = None
    distance: Optional[float] = None

    @classmethod
    def from_journal(cls, record: JournalRecord, distance: float = None) -> "ContextItem":
        return cls(
            id=record.id,
            text=record.text,
            source_type=SourceType.JOURNAL_ENTRY,
            date=record.created_at,
            mood=record.mood,
            mood_intensity=record.intensity,
            distance=distance,
        )

    @classmethod
    def from_chat(cls, record: ChatMessageRecord, distance: float = None) -> "ContextItem":
        return cls(
            id=record.id,
            text=record.text,
            source_type=SourceType.CHAT_MESSAGE,
            date=record.created_at,
            is_starred=record.is_starred,
            related_chat_id=record.chat_id,
            is_user=record.is_user,
            distance=distance,
        )

    def age_in_days(self, now: datetime = None) -> int:
        """Whole days between the item's date and now; computed on every call."""
        now = _as_utc(now) if now is not None else utc_now()
        return max((now - _as_utc(self.date)).days, 0)


class ContextBlock(BaseModel):
    """Retrieved context, grouped as journal items and chat items keyed by chat id."""

    journal_items: List[ContextItem] = Field(default_factory=list)
    chat_groups: Dict[uuid.UUID, List[ContextItem]] = Field(default_factory=dict)

    @property
    def chat_items(self) -> List[ContextItem]:
        return [item for group in self.chat_groups.values() for item in group]

    @property
    def item_count(self) -> int:
        return len(self.journal_items) + len(self.chat_items)

    @property
    def is_empty(self) -> bool:
        return self.item_count == 0

    def render(self, snippet_chars: int = 100, max_chars: int = 2000,
               redact: Callable[[str], str] = None, now: datetime = None) -> str:
        """
        Format the block as prompt text for the chat assistant.

        Every item carries an explicit date, its age and, where present, mood,
        intensity and a STARRED marker so the prompt can weight recency and
        importance. Each snippet is cut to `snippet_chars` and whole lines are
        dropped from the end until the block fits in `max_chars`.

        Returns:
            The formatted text, or "" for an empty block
        """
        if self.is_empty:
            return ""

        lines = []
        if self.journal_items:
            lines.append("Relevant journal entries:")
            for item in self.journal_items:
                lines.append("- " + _format_item(item, snippet_chars, redact, now))

        if self.chat_groups:
            lines.append("Relevant past conversations:")
            for chat_id, items in self.chat_groups.items():
                lines.append(f"Conversation {str(chat_id)[:8]}:")
                for item in items:
                    lines.append("  - " + _format_item(item, snippet_chars, redact, now))

        while lines and len("\n".join(lines)) > max_chars:
            lines.pop()
        # Don't leave a dangling section header
        while lines and not lines[-1].lstrip().startswith("- "):
            lines.pop()
        return "\n".join(lines)


def truncate_snippet(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:max(limit - 3, 0)].rstrip() + "..."


# Extra text redacted past the snippet limit, so an identifier straddling the cut is still caught
_REDACT_MARGIN = 200


def _format_item(item: ContextItem, snippet_chars: int, redact, now) -> str:
    text = " ".join(item.text.split())
    if redact is not None:
        text = redact(text[:snippet_chars + _REDACT_MARGIN])
    snippet = truncate_snippet(text, snippet_chars)

    age = item.age_in_days(now)
    age_label = "today" if age == 0 else ("1 day ago" if age == 1 else f"{age} days ago")
    parts = [f"[{_as_utc(item.date).strftime('%Y-%m-%d')}, {age_label}]"]

    if item.is_starred:
        parts.append("STARRED")
    if item.mood is not None:
        parts.append(f"Mood: {item.mood.display_name} (intensity {item.mood_intensity})")
    if item.is_user is not None:
        parts.append("User:" if item.is_user else "Assistant:")

    parts.append(snippet)
    return " ".join(parts)
