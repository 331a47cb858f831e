"""Shallow keyword extraction for topic threads."""

import re
from typing import List

STOP_WORDS = frozenset({
    "a", "an", "the", "and", "but", "or", "nor", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "about", "i", "you", "he", "she", "it", "we",
    "they", "me", "him", "her", "us", "them", "my", "your", "his", "its",
    "our", "their", "is", "am", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "can", "must", "this", "that", "these", "those",
    "what", "which", "who", "whom", "whose", "when", "where", "why", "how",
    "all", "each", "every", "both", "few", "more", "most", "other", "some",
    "such", "no", "not", "only", "own", "same", "so", "than", "too", "very",
    "just", "also",
})

_NON_LETTERS = re.compile(r"[^a-z\s]")


def extract_keywords(content: str) -> List[str]:
    """
    Lowercase, drop everything but letters and whitespace, and keep tokens
    longer than two characters that are not stopwords. Repeats are kept.
    """
    if not content:
        return []
    cleaned = _NON_LETTERS.sub("", content.lower())
    return [
        word for word in cleaned.split()
        if len(word) > 2 and word not in STOP_WORDS
    ]
