"""
RecitationEngine — the session state machine that drives verse alignment.

A ``Session`` is an immutable value. Every transition takes the current
session and returns a new one; ``process_utterance`` additionally returns an
event (``MatchEvent`` or ``NoMatchEvent``) for the caller to render or
forward. The engine holds only the corpus and its config, so one engine can
serve any number of independent sessions.

Lifecycle::

    initialize -> process_utterance* -> stop_session
                   |  match:    cursor = end_verse + 1, failures = 0
                   |  no match: failures += 1, recovery at the limit
                 jump_to_position / reset_session at any time
"""

import logging
from dataclasses import dataclass, field, replace

from tasmee.config import EngineConfig
from tasmee.errors import PositionError
from tasmee.normalizer import tokenize
from tasmee.quran_db import QuranDB
from tasmee.scoring import MatchResult, rank_candidates, score_windows
from tasmee.windows import Window, build_windows

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    sura: int
    current_position: int  # next verse expected
    window_size: int
    confidence_threshold: float
    windows: tuple[Window, ...] = ()
    history: tuple[MatchResult, ...] = ()
    last_successful_match: MatchResult | None = None
    consecutive_failures: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class MatchEvent:
    match: MatchResult
    transcription: str
    current_position: int
    sura_complete: bool = False
    quran_complete: bool = False
    runners_up: tuple[MatchResult, ...] = field(default=(), repr=False)


@dataclass(frozen=True)
class NoMatchEvent:
    transcription: str
    consecutive_failures: int
    best_confidence: float
    confidence_threshold: float
    recovered: bool = False


@dataclass(frozen=True)
class SessionStats:
    sura: int
    current_position: int
    total_matches: int
    average_confidence: float
    consecutive_failures: int
    confidence_threshold: float
    window_size: int
    is_active: bool
    is_complete: bool


class RecitationEngine:
    """Align transcribed utterances against one corpus."""

    def __init__(self, corpus: QuranDB, config: EngineConfig | None = None):
        self.corpus = corpus
        self.config = config or EngineConfig()

    # -- helpers ---------------------------------------------------------

    def _check_position(self, sura: int, ayah: int) -> None:
        count = len(self.corpus.get_sura(sura))
        if not 1 <= ayah <= count:
            raise PositionError(sura, ayah, count)

    def _rebuild(self, session: Session) -> Session:
        windows = build_windows(
            self.corpus.get_sura(session.sura),
            session.current_position,
            session.window_size,
            self.config.min_radius,
        )
        return replace(session, windows=windows)

    def is_complete(self, session: Session) -> bool:
        """True once the cursor has moved past the last verse of the sura."""
        return session.current_position > len(self.corpus.get_sura(session.sura))

    # -- transitions -----------------------------------------------------

    def initialize(
        self,
        sura: int,
        start_verse: int = 1,
        window_size: int | None = None,
    ) -> Session:
        """Start a practice run. Raises SuraNotFoundError for an unknown sura."""
        cfg = self.config
        if window_size is None:
            window_size = cfg.default_window_size
        if not isinstance(window_size, int) or not 1 <= window_size <= cfg.max_window_size:
            raise ValueError(
                f"window_size must be between 1 and {cfg.max_window_size}, got {window_size}"
            )
        self._check_position(sura, start_verse)

        session = self._rebuild(
            Session(
                sura=sura,
                current_position=start_verse,
                window_size=window_size,
                confidence_threshold=cfg.default_threshold,
            )
        )
        log.info(
            "Session initialized: sura %d from ayah %d, %d windows",
            sura, start_verse, len(session.windows),
        )
        return session

    def process_utterance(
        self, session: Session, transcription: str
    ) -> tuple[Session, MatchEvent | NoMatchEvent | None]:
        """Score one transcription against the session's windows.

        Returns the next session and the event it produced. Inactive sessions
        and transcriptions that normalize to nothing leave the session
        untouched and produce no event.
        """
        if not session.is_active:
            log.warning("Utterance ignored: session is not active")
            return session, None

        words = tokenize(transcription)
        if not words:
            log.info("Empty transcription, nothing to match")
            return session, None

        cfg = self.config
        scored = score_windows(
            words,
            session.windows,
            cfg.word_threshold,
            cfg.confidence_weights,
            cfg.rank_weights,
        )
        candidates = rank_candidates(scored, session.confidence_threshold)

        if candidates:
            return self._on_match(session, transcription, candidates)

        best_confidence = max((r.confidence for r in scored), default=0.0)
        return self._on_no_match(session, transcription, best_confidence)

    def _on_match(
        self, session: Session, transcription: str, candidates: list[MatchResult]
    ) -> tuple[Session, MatchEvent]:
        best = candidates[0]
        session = self._rebuild(
            replace(
                session,
                current_position=best.end_verse + 1,
                history=session.history + (best,),
                last_successful_match=best,
                consecutive_failures=0,
            )
        )
        sura_complete = self.is_complete(session)
        quran_complete = (
            sura_complete
            and self.corpus.get_next_verse(session.sura, best.end_verse) is None
        )
        log.info(
            "MATCH  %s  conf=%.3f acc=%.3f align=%.3f  -> ayah %d",
            best.reference, best.confidence, best.accuracy,
            best.alignment_score, session.current_position,
        )
        for i, r in enumerate(candidates[1:4], 1):
            log.debug("  #%d  %s  rank=%.3f conf=%.3f", i, r.reference, r.rank_score, r.confidence)
        if sura_complete:
            log.info("Sura %d complete", session.sura)

        return session, MatchEvent(
            match=best,
            transcription=transcription,
            current_position=session.current_position,
            sura_complete=sura_complete,
            quran_complete=quran_complete,
            runners_up=tuple(candidates[1:4]),
        )

    def _on_no_match(
        self, session: Session, transcription: str, best_confidence: float
    ) -> tuple[Session, NoMatchEvent]:
        cfg = self.config
        failures = session.consecutive_failures + 1
        session = replace(session, consecutive_failures=failures)
        log.info(
            "NO MATCH (best %.3f below %.2f), %d consecutive",
            best_confidence, session.confidence_threshold, failures,
        )

        recovered = failures >= cfg.max_failures
        if recovered:
            session = self._recover(session)

        return session, NoMatchEvent(
            transcription=transcription,
            consecutive_failures=failures,
            best_confidence=best_confidence,
            confidence_threshold=session.confidence_threshold,
            recovered=recovered,
        )

    def _recover(self, session: Session) -> Session:
        """Lower the bar, widen the search and rewind to the last known-good verse."""
        cfg = self.config
        threshold = round(
            max(cfg.min_threshold, session.confidence_threshold - cfg.threshold_step), 6
        )
        window_size = min(cfg.max_window_size, session.window_size + 1)
        last = session.last_successful_match
        position = last.start_verse if last else 1

        session = self._rebuild(
            replace(
                session,
                confidence_threshold=threshold,
                window_size=window_size,
                current_position=position,
            )
        )
        log.info(
            "Recovery: threshold=%.2f, window_size=%d, position=%d",
            threshold, window_size, position,
        )
        return session

    def jump_to_position(self, session: Session, ayah: int) -> Session:
        """Manual skip/rewind. Clears failures and restores the default threshold."""
        self._check_position(session.sura, ayah)
        session = self._rebuild(
            replace(
                session,
                current_position=ayah,
                consecutive_failures=0,
                confidence_threshold=self.config.default_threshold,
            )
        )
        log.info("Jumped to ayah %d", ayah)
        return session

    def reset_session(self, session: Session) -> Session:
        """Restore default failures, threshold and window size; keep the cursor.

        Used after a long silence so a widened search radius does not carry
        over into the next stretch of recitation.
        """
        cfg = self.config
        session = self._rebuild(
            replace(
                session,
                consecutive_failures=0,
                confidence_threshold=cfg.default_threshold,
                window_size=cfg.default_window_size,
            )
        )
        log.info("Session reset at ayah %d", session.current_position)
        return session

    def stop_session(self, session: Session) -> Session:
        log.info("Session stopped at ayah %d", session.current_position)
        return replace(session, is_active=False)

    def session_stats(self, session: Session) -> SessionStats:
        history = session.history
        return SessionStats(
            sura=session.sura,
            current_position=session.current_position,
            total_matches=len(history),
            average_confidence=(
                sum(m.confidence for m in history) / len(history) if history else 0.0
            ),
            consecutive_failures=session.consecutive_failures,
            confidence_threshold=session.confidence_threshold,
            window_size=session.window_size,
            is_active=session.is_active,
            is_complete=self.is_complete(session),
        )


def match_to_dict(match: MatchResult) -> dict:
    return {
        "surah": match.sura,
        "ayah": match.start_verse,
        "ayah_end": match.end_verse,
        "confidence": round(match.confidence, 3),
        "accuracy": round(match.accuracy, 3),
        "matched_words": match.matched_words,
        "total_words": match.total_words,
        "alignment_score": round(match.alignment_score, 3),
    }


def event_to_dict(event: MatchEvent | NoMatchEvent) -> dict:
    """JSON-ready message for a transport."""
    if isinstance(event, MatchEvent):
        return {
            "type": "verse_match",
            **match_to_dict(event.match),
            "current_position": event.current_position,
            "sura_complete": event.sura_complete,
            "quran_complete": event.quran_complete,
        }
    return {
        "type": "no_match",
        "text": event.transcription,
        "consecutive_failures": event.consecutive_failures,
        "confidence": round(event.best_confidence, 3),
        "threshold": event.confidence_threshold,
        "recovered": event.recovered,
    }


def stats_to_dict(stats: SessionStats) -> dict:
    return {
        "surah": stats.sura,
        "current_position": stats.current_position,
        "total_matches": stats.total_matches,
        "average_confidence": round(stats.average_confidence, 3),
        "consecutive_failures": stats.consecutive_failures,
        "confidence_threshold": stats.confidence_threshold,
        "window_size": stats.window_size,
        "is_active": stats.is_active,
        "is_complete": stats.is_complete,
    }
