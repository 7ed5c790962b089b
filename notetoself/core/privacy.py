"""
PII filtering for retrieved context.
Snippets are scrubbed before they are placed in a prompt; stored records are never modified.
"""

import re
from typing import List, Tuple

# Texts longer than this are returned untouched to bound regex work
MAX_FILTER_CHARS = 5000

# Order matters: card numbers before phone numbers, both before bare ids
_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), "[EMAIL]"),
    (re.compile(r'\bhttps?://\S+|\bwww\.\S+', re.IGNORECASE), "[URL]"),
    (re.compile(r'\b\d{4}[- ]?\d{4}[- ]?\d{4}[- ]?\d{4}\b'), "[CARD]"),
    (re.compile(r'\b\d{3}-\d{2}-\d{4}\b'), "[ID]"),
    (re.compile(r'(?<!\w)(?:\+\d{1,3}[ .-]?)?(?:\(\d{3}\)|\d{3})[ .-]?\d{3}[ .-]?\d{4}\b'), "[PHONE]"),
    (re.compile(r'\b\d{10,}\b'), "[ID]"),
]

# Capitalised words introduced by a relationship noun are taken to be names
_RELATION_NAME = re.compile(
    r"\b([Mm]y (?:friend|wife|husband|partner|boyfriend|girlfriend|boss|manager|coworker|colleague|"
    r"mom|mother|dad|father|sister|brother|son|daughter|therapist|doctor|neighbou?r)"
    r"(?:,)? )([A-Z][a-z]+(?: [A-Z][a-z]+)?)"
)
_INTRODUCED_NAME = re.compile(r"\b((?:named|called) )([A-Z][a-z]+(?: [A-Z][a-z]+)?)")


def filter_pii(text: str) -> str:
    """
    Replace personal identifiers in `text` with placeholders.

    Emails, URLs, card numbers, SSN-like ids, phone numbers and long digit
    runs are matched by pattern; person names are caught when introduced by a
    relationship ("my friend Sam") or by "named"/"called".
    """
    if not text or len(text) > MAX_FILTER_CHARS:
        return text

    filtered = text
    for pattern, placeholder in _PATTERNS:
        filtered = pattern.sub(placeholder, filtered)

    filtered = _RELATION_NAME.sub(lambda m: m.group(1) + "[NAME]", filtered)
    filtered = _INTRODUCED_NAME.sub(lambda m: m.group(1) + "[NAME]", filtered)
    return filtered
