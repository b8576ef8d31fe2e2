import json
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from quran_samples import FATIHA, GARBAGE, TWO_VERSES, UTHMANI_ROWS
from tasmee.config import EngineConfig
from tasmee.errors import PositionError, SuraNotFoundError
from tasmee.quran_db import QuranDB
from tasmee.session import MatchEvent, NoMatchEvent, RecitationEngine

two = RecitationEngine(QuranDB.from_suras(TWO_VERSES))
fatiha = RecitationEngine(QuranDB.from_suras({1: FATIHA, 2: ["الم"]}))


def _fail(engine, session, times):
    events = []
    for _ in range(times):
        session, event = engine.process_utterance(session, GARBAGE)
        events.append(event)
    return session, events


def test_initialize_defaults():
    s = two.initialize(1)
    assert s.current_position == 1
    assert s.window_size == 3
    assert s.confidence_threshold == 0.7
    assert s.consecutive_failures == 0
    assert s.is_active
    assert s.history == ()
    assert [(w.start_verse, w.end_verse) for w in s.windows] == [(1, 1), (1, 2), (2, 2)]


def test_initialize_unknown_sura():
    with pytest.raises(SuraNotFoundError):
        two.initialize(42)
    with pytest.raises(LookupError):
        two.initialize(42)


def test_initialize_rejects_bad_start_and_window():
    with pytest.raises(PositionError):
        two.initialize(1, start_verse=3)
    with pytest.raises(ValueError):
        two.initialize(1, window_size=0)
    with pytest.raises(ValueError):
        two.initialize(1, window_size=6)
    with pytest.raises(ValueError):
        two.initialize(1, window_size=2.5)


def test_single_verse_match_advances_cursor():
    s = two.initialize(1, 1)
    s, event = two.process_utterance(s, "بسم الله الرحمن الرحيم")
    assert isinstance(event, MatchEvent)
    assert event.match.start_verse == 1 and event.match.end_verse == 1
    assert event.match.accuracy == 1.0
    assert event.match.confidence >= 0.7
    assert s.current_position == 2
    assert event.current_position == 2
    assert s.last_successful_match == event.match
    assert s.history == (event.match,)
    assert not event.sura_complete


def test_garbage_three_times_triggers_recovery():
    s = two.initialize(1, 1)
    s, events = _fail(two, s, 3)
    assert all(isinstance(e, NoMatchEvent) for e in events)
    assert [e.consecutive_failures for e in events] == [1, 2, 3]
    assert [e.recovered for e in events] == [False, False, True]
    assert s.confidence_threshold == pytest.approx(0.6)
    assert s.window_size == 4
    assert s.current_position == 1


def test_no_recovery_before_third_failure():
    s = two.initialize(1, 1)
    s, _ = _fail(two, s, 2)
    assert s.consecutive_failures == 2
    assert s.confidence_threshold == 0.7
    assert s.window_size == 3


def test_concatenated_verses_match_as_one_span():
    s = two.initialize(1, 1)
    s, event = two.process_utterance(s, "بسم الله الرحمن الرحيم الحمد لله رب العالمين")
    assert isinstance(event, MatchEvent)
    assert (event.match.start_verse, event.match.end_verse) == (1, 2)
    assert s.current_position == 3
    assert event.sura_complete
    assert event.quran_complete


def test_failures_reset_on_match():
    s = two.initialize(1, 1)
    s, _ = _fail(two, s, 2)
    s, event = two.process_utterance(s, "بسم الله الرحمن الرحيم")
    assert isinstance(event, MatchEvent)
    assert s.consecutive_failures == 0


def test_failures_increment_once_per_miss():
    s = two.initialize(1, 1)
    for expected in range(1, 3):
        s, event = two.process_utterance(s, GARBAGE)
        assert s.consecutive_failures == expected
        assert event.consecutive_failures == expected


def test_recovery_rewinds_to_last_match():
    s = fatiha.initialize(1, 1)
    s, _ = fatiha.process_utterance(s, FATIHA[0])
    s, _ = fatiha.process_utterance(s, FATIHA[1])
    assert s.current_position == 3
    s, _ = _fail(fatiha, s, 3)
    assert s.current_position == 2
    assert s.windows[0].start_verse == 1


def test_recovery_floor_and_cap():
    s = two.initialize(1, 1)
    s, events = _fail(two, s, 6)
    assert s.confidence_threshold == pytest.approx(0.5)
    assert s.window_size == 5
    assert [e.recovered for e in events] == [False, False, True, True, True, True]


def test_jump_resets_threshold_and_failures():
    s = fatiha.initialize(1, 1)
    s, _ = _fail(fatiha, s, 4)
    assert s.confidence_threshold < 0.7
    s = fatiha.jump_to_position(s, 5)
    assert s.current_position == 5
    assert s.confidence_threshold == 0.7
    assert s.consecutive_failures == 0
    s, event = fatiha.process_utterance(s, FATIHA[4])
    assert event.match.start_verse == 5


def test_jump_outside_sura():
    s = fatiha.initialize(1, 1)
    with pytest.raises(PositionError):
        fatiha.jump_to_position(s, 8)


def test_reset_session_keeps_position():
    s = fatiha.initialize(1, 4)
    s, _ = _fail(fatiha, s, 3)
    position = s.current_position
    s = fatiha.reset_session(s)
    assert s.current_position == position
    assert s.consecutive_failures == 0
    assert s.confidence_threshold == 0.7
    assert s.window_size == 3


def test_empty_transcription_is_noop():
    s = two.initialize(1, 1)
    for text in ["", "   ", "َ ُ"]:
        after, event = two.process_utterance(s, text)
        assert event is None
        assert after is s


def test_inactive_session_is_noop():
    s = two.stop_session(two.initialize(1, 1))
    after, event = two.process_utterance(s, "بسم الله الرحمن الرحيم")
    assert event is None
    assert after is s
    assert not after.is_active


def test_each_verse_in_turn():
    s = fatiha.initialize(1, 1)
    for ayah, text in enumerate(FATIHA, start=1):
        s, event = fatiha.process_utterance(s, text)
        assert isinstance(event, MatchEvent), ayah
        assert (event.match.start_verse, event.match.end_verse) == (ayah, ayah)
    assert event.sura_complete
    # sura 2 still follows
    assert not event.quran_complete


def test_sessions_are_immutable_values():
    s0 = fatiha.initialize(1, 1)
    s1, _ = fatiha.process_utterance(s0, FATIHA[0])
    s2, _ = fatiha.process_utterance(s1, FATIHA[1])
    assert s0.history == ()
    assert len(s1.history) == 1
    assert len(s2.history) == 2
    assert s2.history[0] == s1.history[0]


def test_session_stats():
    s = fatiha.initialize(1, 1)
    s, _ = fatiha.process_utterance(s, FATIHA[0])
    s, _ = fatiha.process_utterance(s, GARBAGE)
    stats = fatiha.session_stats(s)
    assert stats.sura == 1
    assert stats.current_position == 2
    assert stats.total_matches == 1
    assert stats.average_confidence == pytest.approx(1.0)
    assert stats.consecutive_failures == 1
    assert stats.confidence_threshold == 0.7
    assert stats.window_size == 3
    assert stats.is_active
    assert not stats.is_complete


def test_custom_config():
    engine = RecitationEngine(
        QuranDB.from_suras(TWO_VERSES),
        EngineConfig(max_failures=1, default_window_size=2),
    )
    s = engine.initialize(1)
    assert s.window_size == 2
    s, event = engine.process_utterance(s, GARBAGE)
    assert event.recovered
    assert s.window_size == 3


def _uthmani_engine(tmp_path):
    path = tmp_path / "quran.json"
    path.write_text(json.dumps(UTHMANI_ROWS, ensure_ascii=False), encoding="utf-8")
    return RecitationEngine(QuranDB.from_json(path))


def test_opening_verse_matches_without_bismillah(tmp_path):
    engine = _uthmani_engine(tmp_path)
    s = engine.initialize(112)
    s, event = engine.process_utterance(s, "قل هو الله احد")
    assert isinstance(event, MatchEvent)
    assert (event.match.start_verse, event.match.end_verse) == (1, 1)
    assert event.match.accuracy == 1.0
    assert s.current_position == 2


def test_uthmani_sura_recited_plainly(tmp_path):
    engine = _uthmani_engine(tmp_path)
    s = engine.initialize(112)
    events = []
    for text in ["قل هو الله احد", "الله الصمد", "لم يلد ولم يولد", "ولم يكن له كفوا احد"]:
        s, event = engine.process_utterance(s, text)
        events.append(event)

    assert all(isinstance(e, MatchEvent) for e in events)
    assert [e.match.start_verse for e in events] == [1, 2, 3, 4]
    assert all(e.match.accuracy == 1.0 for e in events)
    last = events[-1].match
    assert (last.matched_words, last.total_words) == (5, 5)
    assert events[-1].sura_complete
