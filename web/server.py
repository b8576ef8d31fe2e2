"""
WebSocket backend for live recitation practice.

Receives already-transcribed utterances from the client, aligns them against
QuranDB with one RecitationPipeline per connection, and sends verse_match /
no_match messages back. Audio capture and speech-to-text stay on the client
side of the socket.

Client -> server (JSON):
    {"type": "start", "surah": 1, "ayah": 1, "window_size": 3}
    {"type": "utterance", "text": "..."}
    {"type": "silence"} | {"type": "jump", "ayah": 5} | {"type": "stats"} | {"type": "stop"}
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from tasmee.config import LOG_LEVEL
from tasmee.errors import SuraNotFoundError, TasmeeError
from tasmee.pipeline import RecitationPipeline
from tasmee.quran_db import QuranDB
from tasmee.session import MatchEvent, event_to_dict, stats_to_dict

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
PORT = int(os.getenv("TASMEE_PORT", "8000"))
SURROUNDING_CONTEXT = 2  # verses before/after current

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("tasmee-ws")

# ---------------------------------------------------------------------------
# Globals
# ---------------------------------------------------------------------------
quran_db: QuranDB | None = None


def _get_surrounding_verses(db: QuranDB, surah: int, ayah: int) -> list[dict]:
    """Get surrounding verses for context display."""
    verses = db.get_sura(surah).verses
    result = []
    for v in verses:
        if abs(v.ayah - ayah) <= SURROUNDING_CONTEXT:
            result.append(
                {
                    "surah": v.sura,
                    "ayah": v.ayah,
                    "text": v.text,
                    "is_current": v.ayah == ayah,
                }
            )
    return result


def _handle_message(pipeline: RecitationPipeline, msg: dict) -> list[dict]:
    """Apply one client command; return the messages to send back."""
    if not isinstance(msg, dict):
        return [{"type": "error", "detail": "Expected a JSON object"}]
    kind = msg.get("type")

    if kind == "start":
        stats = pipeline.start(
            int(msg["surah"]),
            int(msg.get("ayah", 1)),
            int(msg["window_size"]) if msg.get("window_size") is not None else None,
        )
        return [{"type": "session_started", **stats_to_dict(stats)}]

    if kind == "utterance":
        text = msg.get("text", "")
        if not pipeline.is_active:
            log.warning("Utterance without an active session")
            return [{"type": "ignored", "reason": "no active session", "text": text}]
        pipeline.submit(text)
        events = pipeline.drain()
        if not events:
            return [{"type": "ignored", "reason": "empty transcription", "text": text}]

        out = []
        for event in events:
            payload = event_to_dict(event)
            if isinstance(event, MatchEvent):
                m = event.match
                payload["verse_text"] = " ".join(
                    v.text for v in quran_db.get_sura(m.sura).verses[m.start_verse - 1:m.end_verse]
                )
                payload["surrounding_verses"] = _get_surrounding_verses(
                    quran_db, m.sura, m.end_verse
                )
                log.info(">>> EMITTED verse_match %s", m.reference)
            out.append(payload)
            if isinstance(event, MatchEvent) and event.sura_complete:
                out.append({"type": "session_complete", **stats_to_dict(pipeline.stats())})
        return out

    if kind == "silence":
        stats = pipeline.handle_silence()
        if stats is None:
            return [{"type": "ignored", "reason": "no active session"}]
        return [{"type": "session_reset", **stats_to_dict(stats)}]

    if kind == "jump":
        stats = pipeline.jump(int(msg["ayah"]))
        return [{"type": "jumped", **stats_to_dict(stats)}]

    if kind == "stats":
        stats = pipeline.stats()
        return [{"type": "stats", **(stats_to_dict(stats) if stats else {})}]

    if kind == "stop":
        stats = pipeline.stop()
        return [{"type": "session_complete", **(stats_to_dict(stats) if stats else {})}]

    return [{"type": "error", "detail": f"Unknown message type: {kind!r}"}]


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(application: FastAPI):
    global quran_db
    if quran_db is None:
        quran_db = QuranDB.from_json()
    log.info("QuranDB loaded: %d verses", quran_db.total_verses)
    yield


app = FastAPI(
    title="Tasmee",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    log.info("Client connected: %s", ws.client)
    pipeline = RecitationPipeline(db=quran_db)

    try:
        while True:
            try:
                msg = await ws.receive_json()
            except ValueError:
                await ws.send_json({"type": "error", "detail": "Invalid JSON"})
                continue

            try:
                replies = _handle_message(pipeline, msg)
            except (TasmeeError, KeyError, TypeError, ValueError, RuntimeError) as exc:
                log.info("Rejected %s: %s", msg, exc)
                replies = [{"type": "error", "detail": str(exc)}]

            for reply in replies:
                await ws.send_json(reply)

    except WebSocketDisconnect:
        log.info("Client disconnected: %s", ws.client)
    except Exception:
        log.exception("WebSocket error")


# ---------------------------------------------------------------------------
# REST API
# ---------------------------------------------------------------------------
@app.get("/api/surah/{surah_num}")
async def get_surah(surah_num: int):
    try:
        sura = quran_db.get_sura(surah_num)
    except SuraNotFoundError:
        raise HTTPException(status_code=404, detail="Surah not found")
    return {
        "surah": sura.index,
        "surah_name": sura.name,
        "surah_name_en": sura.name_en,
        "bismillah": sura.bismillah,
        "verses": [
            {
                "ayah": v.ayah,
                "text": v.text,
            }
            for v in sura.verses
        ],
    }


@app.get("/")
async def _root():
    return {
        "status": "ok",
        "message": "Tasmee recitation backend.",
    }


if __name__ == "__main__":
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=PORT,
        reload=False,
        log_level="info",
    )
