"""
Record creation and maintenance.
Embedding is best effort: the record is always written, with no embedding if none could be produced.
"""

from datetime import datetime
from typing import List, Optional, Union

from .dao import DocumentStore, Record, RecordId
from .errors import DimensionMismatch, MalformedEmbedding
from .schema import ChatMessageRecord, JournalRecord, Mood, RecordType
from ..vector import codec

from util.logging import logger


class MemoryWriter:
    """
    Creates and updates journal entries and chat messages in a DocumentStore.

    Storage failures propagate as StorageError; embedding failures never do.
    """

    def __init__(self, store: DocumentStore, embedder):
        self.store = store
        self.embedder = embedder

    def embed(self, text: str) -> Optional[List[float]]:
        """Embed `text`, returning None when the text is blank or no valid vector is available."""
        if not text or not text.strip():
            return None

        try:
            vector = self.embedder.embed_text(text)
        except Exception as e:
            # A broken embedder must not block saving the user's text
            logger.log_embedding_failure("embedder_error", text, {"error": str(e)[:100]})
            return None

        if vector is None:
            logger.log_embedding_failure("no_vector", text)
            return None

        try:
            vector = codec.ensure_finite(codec.as_vector(vector))
            codec.validate_dimension(vector, self.store.embedding_dim)
        except (DimensionMismatch, MalformedEmbedding) as e:
            logger.log_embedding_failure(type(e).__name__, text, {"error": str(e)[:100]})
            return None
        return vector.tolist()

    def save_journal_entry(self, text: str, mood: Union[Mood, str], intensity: int = 2,
                           created_at: datetime = None) -> JournalRecord:
        fields = {"text": text, "mood": mood, "intensity": intensity, "embedding": self.embed(text)}
        if created_at is not None:
            fields["created_at"] = created_at
        record = JournalRecord(**fields)
        self.store.put(record)
        return record

    def save_chat_message(self, chat_id: RecordId, text: str, is_user: bool,
                          created_at: datetime = None, is_starred: bool = False) -> ChatMessageRecord:
        fields = {
            "chat_id": chat_id,
            "text": text,
            "is_user": is_user,
            "is_starred": is_starred,
            "embedding": self.embed(text),
        }
        if created_at is not None:
            fields["created_at"] = created_at
        record = ChatMessageRecord(**fields)
        self.store.put(record)
        return record

    def set_starred(self, message_id: RecordId, starred: bool) -> Optional[ChatMessageRecord]:
        """Star or unstar a chat message. Returns the updated record, or None if it does not exist."""
        record = self.store.get(message_id, RecordType.CHAT)
        if record is None:
            return None
        updated = record.model_copy(update={"is_starred": starred})
        self.store.put(updated)
        return updated

    def edit_journal_text(self, entry_id: RecordId, text: str) -> Optional[JournalRecord]:
        """
        Replace the text of a journal entry.

        The embedding is left as it was and describes the previous text until
        reembed_missing(force=True) is run.
        """
        record = self.store.get(entry_id, RecordType.JOURNAL)
        if record is None:
            return None
        updated = record.model_copy(update={"text": text})
        self.store.put(updated)
        return updated

    def reembed_missing(self, record_type: RecordType = None, force: bool = False) -> int:
        """
        Compute embeddings for records that have none (or for every record with force=True).

        Returns:
            Number of records whose embedding was written
        """
        record_types = [record_type] if record_type else list(RecordType)
        updated = 0
        for candidate in record_types:
            # Materialize first so the scan's connection is closed before writing
            pending: List[Record] = [
                record for record in self.store.scan(candidate)
                if force or record.embedding is None
            ]
            for record in pending:
                vector = self.embed(record.text)
                if vector is None:
                    continue
                self.store.put(record.model_copy(update={"embedding": vector}))
                updated += 1

            logger.log_vector_operation("reembed", candidate.value, {
                "candidates": len(pending),
                "force": force
            })
        return updated