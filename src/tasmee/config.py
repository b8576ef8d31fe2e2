"""Engine defaults and environment overrides.

Paths and log level can be overridden via environment variables:
- TASMEE_QURAN_PATH: corpus JSON file (defaults to <project>/data/quran.json)
- TASMEE_LOG_LEVEL: logging level name for entry points (defaults to INFO)
"""

import os
from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_PATH = Path(os.getenv("TASMEE_QURAN_PATH", str(PROJECT_ROOT / "data" / "quran.json")))
LOG_LEVEL = os.getenv("TASMEE_LOG_LEVEL", "INFO").upper()

# Adaptive threshold
DEFAULT_CONFIDENCE_THRESHOLD = 0.7
MIN_CONFIDENCE_THRESHOLD = 0.5
THRESHOLD_STEP = 0.1

# Candidate windows
DEFAULT_WINDOW_SIZE = 3
MAX_WINDOW_SIZE = 5
MIN_SEARCH_RADIUS = 5

MAX_CONSECUTIVE_FAILURES = 3  # recovery kicks in at this many misses
WORD_MATCH_THRESHOLD = 0.85

# confidence = sequence * w + overlap * w + edit * w
CONFIDENCE_WEIGHTS = (0.5, 0.3, 0.2)
# rank = confidence * w + accuracy * w + alignment * w
RANK_WEIGHTS = (0.4, 0.4, 0.2)


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for one RecitationEngine."""
    default_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    min_threshold: float = MIN_CONFIDENCE_THRESHOLD
    threshold_step: float = THRESHOLD_STEP
    default_window_size: int = DEFAULT_WINDOW_SIZE
    max_window_size: int = MAX_WINDOW_SIZE
    min_radius: int = MIN_SEARCH_RADIUS
    max_failures: int = MAX_CONSECUTIVE_FAILURES
    word_threshold: float = WORD_MATCH_THRESHOLD
    confidence_weights: tuple[float, float, float] = CONFIDENCE_WEIGHTS
    rank_weights: tuple[float, float, float] = RANK_WEIGHTS
