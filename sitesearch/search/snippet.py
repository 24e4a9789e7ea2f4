"""
Snippet generation: a window of page text around the first query hit with
every query word highlighted.
"""

import re
from typing import Iterable, List, Optional, Pattern

HIGHLIGHT_OPEN = '<b>'
HIGHLIGHT_CLOSE = '</b>'
ELLIPSIS = '...'


def _unique_words(words: Iterable[str]) -> List[str]:
    seen = []
    for word in words:
        word = (word or '').strip()
        if word and word.lower() not in (w.lower() for w in seen):
            seen.append(word)
    return seen


def _words_pattern(words: List[str]) -> Optional[Pattern]:
    if not words:
        return None
    # Longest first so that a word never loses to its own prefix
    ordered = sorted(words, key=len, reverse=True)
    return re.compile('|'.join(re.escape(word) for word in ordered), re.IGNORECASE)


def highlight(text: str, words: Iterable[str]) -> str:
    """Wrap every case-insensitive occurrence of ``words`` in ``<b>`` tags, keeping the original casing."""
    pattern = _words_pattern(_unique_words(words))
    if pattern is None or not text:
        return text or ''
    return pattern.sub(lambda match: f"{HIGHLIGHT_OPEN}{match.group(0)}{HIGHLIGHT_CLOSE}", text)


def find_anchor(text: str, words: Iterable[str]) -> int:
    """Position of the earliest case-insensitive occurrence of any word, or 0."""
    lowered = text.lower()
    positions = [lowered.find(word.lower()) for word in _unique_words(words)]
    positions = [pos for pos in positions if pos != -1]
    return min(positions) if positions else 0


def build_snippet(text: str, query_words: Iterable[str], snippet_length: int = 200) -> str:
    """
    Build a highlighted snippet of ``text``.

    A window of ``snippet_length`` characters is centered on the first query
    hit and widened to whole words. Ellipses mark text cut off on either side.

    Args:
        text: Cleaned page text
        query_words: Query lemmas and raw query words
        snippet_length: Target window length in characters

    Returns:
        Snippet with highlighted words, or an empty string for empty text
    """
    if not text:
        return ''

    words = _unique_words(query_words)
    anchor = find_anchor(text, words)

    start = max(0, anchor - snippet_length // 2)
    end = min(len(text), start + snippet_length)

    while start > 0 and not text[start - 1].isspace():
        start -= 1
    while end < len(text) and not text[end].isspace():
        end += 1

    snippet = highlight(text[start:end], words)

    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(text):
        snippet = snippet + ELLIPSIS
    return snippet
