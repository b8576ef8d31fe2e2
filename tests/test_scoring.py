import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from quran_samples import FATIHA, IKHLAS
from tasmee.normalizer import tokenize
from tasmee.quran_db import QuranDB
from tasmee.scoring import (
    alignment_score,
    edit_score,
    overlap_score,
    rank_candidates,
    score_window,
    score_windows,
)
from tasmee.windows import Window, build_windows

db = QuranDB.from_suras({1: FATIHA, 112: IKHLAS})


def _window(sura: int, start: int, end: int) -> Window:
    windows = build_windows(db.get_sura(sura), start, end - start + 1)
    return next(w for w in windows if (w.start_verse, w.end_verse) == (start, end))


def test_verse_against_itself_is_perfect():
    for ayah, text in enumerate(FATIHA, start=1):
        result = score_window(tokenize(text), _window(1, ayah, ayah))
        assert result.accuracy == 1.0
        assert result.confidence == pytest.approx(1.0)
        assert result.matched_words == result.total_words


def test_overlap_score():
    assert overlap_score(["a", "b"], ["b", "c", "d"]) == pytest.approx(1 / 3)
    assert overlap_score([], []) == 0.0


def test_edit_score():
    assert edit_score(["abc"], ["abd"]) == pytest.approx(2 / 3)
    assert edit_score([], []) == 0.0


def test_alignment_rewards_early_matches():
    words = ["قل", "هو", "الله", "احد"]
    assert alignment_score(words, words) == pytest.approx((1 + 0.75 + 0.5 + 0.25) / 4)
    assert alignment_score(["قل", "x", "y"], words) == pytest.approx(1.0)
    assert alignment_score(["x", "y", "الله"], words) == pytest.approx(1 / 3)
    assert alignment_score(["x"], words) == 0.0


def test_skipped_word_scores():
    result = score_window(["قل", "الله", "احد"], _window(112, 1, 1))
    assert result.matched_words == 3
    assert result.total_words == 4
    assert result.accuracy == pytest.approx(0.75)
    # 0.5 * 0.75 + 0.3 * 0.75 + 0.2 * (1 - 3/14)
    assert result.confidence == pytest.approx(0.5 * 0.75 + 0.3 * 0.75 + 0.2 * (11 / 14))
    assert result.alignment_score == pytest.approx(1.0)
    assert result.rank_score == pytest.approx(
        0.4 * result.confidence + 0.4 * 0.75 + 0.2 * 1.0
    )


def test_window_reference_carried_through():
    result = score_window(tokenize(IKHLAS[1]), _window(112, 2, 2), window_index=7)
    assert result.window_index == 7
    assert (result.sura, result.start_verse, result.end_verse) == (112, 2, 2)
    assert result.reference == "112:2"


def test_exact_window_ranks_first():
    windows = build_windows(db.get_sura(1), 1, 3)
    words = tokenize(FATIHA[0] + " " + FATIHA[1])
    ranked = rank_candidates(score_windows(words, windows), 0.7)
    assert (ranked[0].start_verse, ranked[0].end_verse) == (1, 2)
    assert ranked[0].confidence >= 0.7


def test_threshold_filters_candidates():
    windows = build_windows(db.get_sura(1), 1, 3)
    assert rank_candidates(score_windows(["xyz", "abc"], windows), 0.5) == []


def test_ties_keep_generation_order():
    text = "قل هو الله احد"
    words = tuple(text.split())
    windows = (
        Window(sura=112, start_verse=1, end_verse=1, text=text, normalized_text=text, words=words),
        Window(sura=112, start_verse=4, end_verse=4, text=text, normalized_text=text, words=words),
    )
    ranked = rank_candidates(score_windows(list(words), windows), 0.7)
    assert [r.window_index for r in ranked] == [0, 1]
    assert ranked[0].start_verse == 1
