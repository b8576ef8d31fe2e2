"""Score transcribed words against candidate windows and rank the survivors.

Each window gets four signals:

- sequence match: fuzzy LCS length over the longer word list (also the
  reported accuracy),
- overlap: exact-word set intersection over the larger set, an order-blind
  sanity check,
- edit score: holistic character-level Levenshtein similarity of the joined
  strings,
- alignment: rewards position-for-position matches, earlier ones weighted
  higher.

Confidence blends the first three; ranking blends confidence, accuracy and
alignment.
"""

from dataclasses import dataclass

from tasmee.aligner import lcs
from tasmee.config import CONFIDENCE_WEIGHTS, RANK_WEIGHTS, WORD_MATCH_THRESHOLD
from tasmee.similarity import levenshtein, tokens_match
from tasmee.windows import Window


@dataclass(frozen=True)
class MatchResult:
    window_index: int
    sura: int
    start_verse: int
    end_verse: int
    confidence: float
    accuracy: float
    matched_words: int
    total_words: int
    alignment_score: float
    rank_score: float = 0.0

    @property
    def reference(self) -> str:
        if self.start_verse == self.end_verse:
            return f"{self.sura}:{self.start_verse}"
        return f"{self.sura}:{self.start_verse}-{self.end_verse}"

    def __repr__(self):
        return (
            f"MatchResult({self.reference}, "
            f"conf={self.confidence:.3f}, acc={self.accuracy:.3f}, "
            f"words={self.matched_words}/{self.total_words}, "
            f"align={self.alignment_score:.3f})"
        )


def overlap_score(transcribed: list[str], window: list[str]) -> float:
    t, w = set(transcribed), set(window)
    largest = max(len(t), len(w))
    if largest == 0:
        return 0.0
    return len(t & w) / largest


def edit_score(transcribed: list[str], window: list[str]) -> float:
    joined_t = " ".join(transcribed)
    joined_w = " ".join(window)
    longest = max(len(joined_t), len(joined_w))
    if longest == 0:
        return 0.0
    return 1.0 - levenshtein(joined_t, joined_w) / longest


def alignment_score(
    transcribed: list[str],
    window: list[str],
    threshold: float = WORD_MATCH_THRESHOLD,
) -> float:
    """Mean positional weight of the words that line up at the same index."""
    min_len = min(len(transcribed), len(window))
    total = 0.0
    matches = 0
    for i in range(min_len):
        if tokens_match(transcribed[i], window[i], threshold):
            total += (min_len - i) / min_len  # earlier matches score higher
            matches += 1
    return total / matches if matches else 0.0


def rank_score(
    confidence: float,
    accuracy: float,
    alignment: float,
    weights: tuple[float, float, float] = RANK_WEIGHTS,
) -> float:
    wc, wa, wl = weights
    return confidence * wc + accuracy * wa + alignment * wl


def score_window(
    transcribed: list[str],
    window: Window,
    window_index: int = 0,
    threshold: float = WORD_MATCH_THRESHOLD,
    confidence_weights: tuple[float, float, float] = CONFIDENCE_WEIGHTS,
    rank_weights: tuple[float, float, float] = RANK_WEIGHTS,
) -> MatchResult:
    words = list(window.words)
    total = max(len(transcribed), len(words))

    matched = len(lcs(transcribed, words, threshold))
    sequence = matched / total if total else 0.0
    overlap = overlap_score(transcribed, words)
    edit = edit_score(transcribed, words)
    alignment = alignment_score(transcribed, words, threshold)

    ws, wo, we = confidence_weights
    confidence = sequence * ws + overlap * wo + edit * we

    return MatchResult(
        window_index=window_index,
        sura=window.sura,
        start_verse=window.start_verse,
        end_verse=window.end_verse,
        confidence=confidence,
        accuracy=sequence,
        matched_words=matched,
        total_words=total,
        alignment_score=alignment,
        rank_score=rank_score(confidence, sequence, alignment, rank_weights),
    )


def score_windows(
    transcribed: list[str],
    windows: tuple[Window, ...] | list[Window],
    threshold: float = WORD_MATCH_THRESHOLD,
    confidence_weights: tuple[float, float, float] = CONFIDENCE_WEIGHTS,
    rank_weights: tuple[float, float, float] = RANK_WEIGHTS,
) -> list[MatchResult]:
    """Score every window, in generation order."""
    return [
        score_window(transcribed, w, i, threshold, confidence_weights, rank_weights)
        for i, w in enumerate(windows)
    ]


def rank_candidates(scored: list[MatchResult], confidence_threshold: float) -> list[MatchResult]:
    """Windows clearing *confidence_threshold*, best first.

    The sort is stable, so equally ranked windows keep generation order and
    the earliest generated one wins.
    """
    candidates = [r for r in scored if r.confidence >= confidence_threshold]
    candidates.sort(key=lambda r: r.rank_score, reverse=True)
    return candidates
