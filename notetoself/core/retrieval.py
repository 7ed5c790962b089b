"""
Retrieval service - turns free text into a bounded context block for the chat prompt.
Best effort: every failure degrades to less (or no) context and is only logged.
"""

import asyncio
import uuid
from typing import Callable, Dict, List, Optional

from .config import get_context_limits, get_retrieval_defaults, is_pii_filter_enabled
from .errors import DimensionMismatch, EmbeddingUnavailable, MalformedEmbedding
from .privacy import filter_pii
from .schema import ContextBlock, ContextItem, RecordType
from ..vector import codec
from ..vector.index import VectorIndex

from util.logging import logger


class RetrievalService:
    """
    Assembles retrieval-augmented context from journal entries and chat messages.

    Args:
        store: DocumentStore to search
        embedder: Any IEmbeddingProvider (embed_text(text) -> vector or None)
        index: VectorIndex over `store`, built on demand if omitted
        journal_k / chat_k: Default result counts per collection
        snippet_chars / max_chars: Bounds for rendered context text
        pii_filter: Snippet scrubber; defaults to filter_pii when enabled in config
    """

    def __init__(self, store, embedder, index: VectorIndex = None,
                 journal_k: int = None, chat_k: int = None,
                 snippet_chars: int = None, max_chars: int = None,
                 pii_filter: Optional[Callable[[str], str]] = None):
        default_journal_k, default_chat_k = get_retrieval_defaults()
        default_snippet, default_max = get_context_limits()

        self.store = store
        self.embedder = embedder
        self.index = index or VectorIndex(store)
        self.journal_k = default_journal_k if journal_k is None else journal_k
        self.chat_k = default_chat_k if chat_k is None else chat_k
        self.snippet_chars = default_snippet if snippet_chars is None else snippet_chars
        self.max_chars = default_max if max_chars is None else max_chars
        if pii_filter is None and is_pii_filter_enabled():
            pii_filter = filter_pii
        self.pii_filter = pii_filter

    def embed_query(self, query_text: str):
        """
        Embed query text and validate its shape.

        Raises:
            EmbeddingUnavailable: blank text, embedder returned None, or embedder failed
            DimensionMismatch: embedder returned a vector of the wrong length
        """
        if not query_text or not query_text.strip():
            raise EmbeddingUnavailable("query text is empty")

        try:
            vector = self.embedder.embed_text(query_text)
        except Exception as e:
            # The embedder is an external collaborator; any failure means no vector
            raise EmbeddingUnavailable(f"embedder failed: {e}") from e

        if vector is None:
            raise EmbeddingUnavailable("embedder returned no vector")

        try:
            vector = codec.ensure_finite(codec.as_vector(vector))
        except MalformedEmbedding as e:
            raise EmbeddingUnavailable(str(e)) from e
        codec.validate_dimension(vector, self.index.embedding_dim)
        return vector

    def retrieve_context(self, query_text: str, journal_k: int = None, chat_k: int = None) -> ContextBlock:
        """
        Retrieve the journal entries and chat messages most similar to `query_text`.

        Never raises: an unavailable embedding yields an empty block, and a
        failed search of one collection leaves only that group empty.
        """
        journal_k = self.journal_k if journal_k is None else journal_k
        chat_k = self.chat_k if chat_k is None else chat_k

        try:
            vector = self.embed_query(query_text)
        except (EmbeddingUnavailable, DimensionMismatch) as e:
            logger.log_embedding_failure(type(e).__name__, query_text or "", {"error": str(e)[:100]})
            logger.log_retrieval(query_text or "", 0, 0, status="degraded", details={"reason": type(e).__name__})
            return ContextBlock()

        return self._search(query_text, vector, journal_k, chat_k)

    async def retrieve_context_async(self, query_text: str, journal_k: int = None, chat_k: int = None) -> ContextBlock:
        """
        Async variant of retrieve_context; embedding and store I/O run in worker threads.

        Cancelling the awaiting task abandons the result. Retrieval never
        writes, so an abandoned call cannot leave the store inconsistent.
        """
        return await asyncio.to_thread(self.retrieve_context, query_text, journal_k, chat_k)

    def render_context(self, query_text: str, journal_k: int = None, chat_k: int = None) -> str:
        """Retrieve and format context text for the prompt builder ("" when nothing matched)."""
        block = self.retrieve_context(query_text, journal_k, chat_k)
        return self.render(block)

    def render(self, block: ContextBlock) -> str:
        return block.render(self.snippet_chars, self.max_chars, redact=self.pii_filter)

    def _search(self, query_text: str, vector, journal_k: int, chat_k: int) -> ContextBlock:
        journal_items: List[ContextItem] = []
        chat_groups: Dict[uuid.UUID, List[ContextItem]] = {}
        failures = []

        try:
            for result in self.index.query(vector, RecordType.JOURNAL, journal_k):
                journal_items.append(ContextItem.from_journal(result.record, result.distance))
        except Exception as e:
            # Similarity search must never break the chat flow
            failures.append(f"journal: {str(e)[:100]}")

        try:
            for result in self.index.query(vector, RecordType.CHAT, chat_k):
                item = ContextItem.from_chat(result.record, result.distance)
                chat_groups.setdefault(item.related_chat_id, []).append(item)
        except Exception as e:
            failures.append(f"chat: {str(e)[:100]}")

        block = ContextBlock(journal_items=journal_items, chat_groups=chat_groups)
        logger.log_retrieval(
            query_text,
            len(journal_items),
            len(block.chat_items),
            status="degraded" if failures else "success",
            details={"failures": failures} if failures else None
        )
        return block
