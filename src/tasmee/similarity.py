"""Word- and string-level fuzzy comparison for Arabic transcriptions.

ASR errors on a correctly recited word are usually one or two character
substitutions or insertions, so two words count as the same word when their
normalized edit similarity clears ``WORD_MATCH_THRESHOLD``. Very short words
(particles like "من", "في") must match exactly.
"""

from Levenshtein import distance

from tasmee.config import WORD_MATCH_THRESHOLD
from tasmee.normalizer import normalize_arabic


def levenshtein(a: str, b: str) -> int:
    """Unit-cost edit distance (insert, delete, substitute) between *a* and *b*."""
    return distance(a, b)


def similarity(a: str, b: str) -> float:
    """``1 - distance / max(len)``; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def tokens_match(w1: str, w2: str, threshold: float = WORD_MATCH_THRESHOLD) -> bool:
    """Compare two already-normalized words."""
    if not w1 or not w2:
        return False
    if w1 == w2:
        return True
    # Very short words require an exact match
    if len(w1) <= 2 or len(w2) <= 2:
        return False
    return similarity(w1, w2) >= threshold


def words_match(w1: str, w2: str, threshold: float = WORD_MATCH_THRESHOLD) -> bool:
    """Check if two Arabic words match, tolerating ASR errors."""
    return tokens_match(normalize_arabic(w1), normalize_arabic(w2), threshold)
