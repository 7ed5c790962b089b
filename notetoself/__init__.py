"""
Note-to-self memory store - journal entries and chat messages with embeddings,
similarity search and context assembly for the chat assistant.
"""

from .core.config import VERSION as __version__

__all__ = ['__version__']
