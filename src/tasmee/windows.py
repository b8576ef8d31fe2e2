"""Candidate verse spans around the reading cursor.

The reciter may be ahead of, behind, or exactly at the expected verse, so
every utterance is scored against overlapping spans of 1..window_size verses
starting anywhere within ``radius`` verses of the cursor. Generation order
(start verse ascending, then span length ascending) is also the tie-break
order when two windows rank equally.
"""

import logging
from dataclasses import dataclass

from tasmee.config import MIN_SEARCH_RADIUS
from tasmee.normalizer import normalize_arabic
from tasmee.quran_db import Sura

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Window:
    sura: int
    start_verse: int
    end_verse: int
    text: str
    normalized_text: str
    words: tuple[str, ...]

    @property
    def verse_count(self) -> int:
        return self.end_verse - self.start_verse + 1

    @property
    def reference(self) -> str:
        if self.start_verse == self.end_verse:
            return f"{self.sura}:{self.start_verse}"
        return f"{self.sura}:{self.start_verse}-{self.end_verse}"


def search_radius(window_size: int, min_radius: int = MIN_SEARCH_RADIUS) -> int:
    return max(min_radius, window_size * 2)


def build_windows(
    sura: Sura,
    current_position: int,
    window_size: int,
    min_radius: int = MIN_SEARCH_RADIUS,
) -> tuple[Window, ...]:
    """All spans of 1..window_size verses starting within the search radius."""
    radius = search_radius(window_size, min_radius)
    first = max(1, current_position - radius)
    last = min(len(sura), current_position + radius)

    windows = []
    for start in range(first, last + 1):
        for span in range(1, window_size + 1):
            end = start + span - 1
            if end > len(sura):
                break
            text = " ".join(v.text for v in sura.verses[start - 1:end])
            normalized = normalize_arabic(text)
            windows.append(
                Window(
                    sura=sura.index,
                    start_verse=start,
                    end_verse=end,
                    text=text,
                    normalized_text=normalized,
                    words=tuple(normalized.split()),
                )
            )

    log.debug(
        "Built %d windows for sura %d, verses %d..%d (cursor %d, size %d)",
        len(windows), sura.index, first, last, current_position, window_size,
    )
    return tuple(windows)
