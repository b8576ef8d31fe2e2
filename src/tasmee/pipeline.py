"""
Recitation pipeline — connects a transcription source to the alignment engine.

Owns one practice run at a time: keeps the current Session, serializes
incoming transcriptions through a FIFO queue so each is fully scored before
the next, and remembers the last few transcriptions for display.

Supports two feeding modes:
  - run_on_text(): pre-transcribed utterances
  - run_on_chunks(): opaque audio blobs plus an injected transcribe_fn;
    a ``None`` item stands for a silence signal from the VAD
"""

import logging
from collections import deque
from typing import Callable, Iterable

from tasmee.config import EngineConfig
from tasmee.quran_db import QuranDB
from tasmee.session import (
    MatchEvent,
    NoMatchEvent,
    RecitationEngine,
    Session,
    SessionStats,
)

log = logging.getLogger(__name__)

MAX_RECENT_TRANSCRIPTIONS = 5
MIN_CHUNK_LOG_PROB = -1.0
MIN_CHUNK_WORDS = 2

Event = MatchEvent | NoMatchEvent


class RecitationPipeline:
    """Session driver for one reciter."""

    def __init__(self, db: QuranDB | None = None, config: EngineConfig | None = None):
        self.db = db or QuranDB.from_json()
        self.engine = RecitationEngine(self.db, config)
        self.session: Session | None = None
        self._queue: deque[str] = deque()
        self._recent: deque[str] = deque(maxlen=MAX_RECENT_TRANSCRIPTIONS)

    @property
    def is_active(self) -> bool:
        return self.session is not None and self.session.is_active

    @property
    def recent_transcriptions(self) -> list[str]:
        """Most recent first."""
        return list(self._recent)

    def start(self, sura: int, start_verse: int = 1, window_size: int | None = None) -> SessionStats:
        self.session = self.engine.initialize(sura, start_verse, window_size)
        self._queue.clear()
        self._recent.clear()
        return self.engine.session_stats(self.session)

    def stop(self) -> SessionStats | None:
        self._queue.clear()
        if self.session is None:
            return None
        self.session = self.engine.stop_session(self.session)
        return self.engine.session_stats(self.session)

    def stats(self) -> SessionStats | None:
        if self.session is None:
            return None
        return self.engine.session_stats(self.session)

    def submit(self, transcription: str) -> None:
        self._queue.append(transcription)

    def drain(self) -> list[Event]:
        """Process every queued transcription in arrival order."""
        events = []
        while self._queue:
            event = self.process(self._queue.popleft())
            if event is not None:
                events.append(event)
        return events

    def process(self, transcription: str) -> Event | None:
        if self.session is None:
            log.warning("No session started, dropping transcription")
            return None
        self._recent.appendleft(transcription)
        self.session, event = self.engine.process_utterance(self.session, transcription)
        return event

    def handle_silence(self) -> SessionStats | None:
        """Long silence: drop the widened search and start fresh at the cursor."""
        if self.session is None:
            return None
        self.session = self.engine.reset_session(self.session)
        return self.engine.session_stats(self.session)

    def jump(self, ayah: int) -> SessionStats:
        if self.session is None:
            raise RuntimeError("No session started")
        self.session = self.engine.jump_to_position(self.session, ayah)
        return self.engine.session_stats(self.session)

    def run_on_text(
        self,
        utterances: list[str],
        sura: int,
        start_verse: int = 1,
        window_size: int | None = None,
    ) -> list[Event]:
        """Start a fresh session and feed it a list of transcriptions.

        Returns:
            Every match / no-match event, in order.
        """
        self.start(sura, start_verse, window_size)
        for text in utterances:
            self.submit(text)
        return self.drain()

    def run_on_chunks(
        self,
        chunks: Iterable[object | None],
        transcribe_fn: Callable[[object], str | dict],
    ) -> list[Event]:
        """Transcribe and align a stream of audio blobs on the current session.

        Supports confidence gating: if transcribe_fn returns a dict with
        "text" and "avg_logprob" keys, chunks with low confidence or too few
        words are skipped. A plain str return is never gated.

        Args:
            chunks: Opaque audio blobs; ``None`` marks detected silence
            transcribe_fn: Function(blob) -> str | dict

        Returns:
            Every match / no-match event, in order.
        """
        events = []
        for chunk in chunks:
            if chunk is None:
                log.info("Silence detected, resetting search")
                self.handle_silence()
                continue

            try:
                raw = transcribe_fn(chunk)
            except Exception:
                log.exception("Transcription failed, skipping chunk")
                continue

            # Handle both str and dict returns from transcribe_fn
            if isinstance(raw, dict):
                text = (raw.get("text") or "").strip()
                avg_logprob = raw.get("avg_logprob", 0.0)
                if avg_logprob < MIN_CHUNK_LOG_PROB or len(text.split()) < MIN_CHUNK_WORDS:
                    log.info("Gated chunk (logprob=%.2f): %s", avg_logprob, text[:60])
                    continue
            else:
                text = str(raw).strip() if raw else ""

            if not text:
                continue

            self.submit(text)
            events.extend(self.drain())

        return events
