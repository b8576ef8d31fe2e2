"""
Replay benchmark — feed recorded transcript sessions through the engine.

Each sample in the manifest is one practice run: the sura and starting ayah,
the utterances as the transcription service returned them, and the verses
the reciter actually covered. Every engine profile replays every sample and
is scored on recall, precision and exact sequence accuracy.

Usage:
    python -m benchmark.runner                        # all profiles
    python -m benchmark.runner --profile wide         # one profile
    python -m benchmark.runner --category noisy       # filter by category
    python -m benchmark.runner --corpus data/quran-uthmani.xml
"""

import sys
import json
import time
import logging
import argparse
from pathlib import Path
from datetime import datetime

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from tasmee.config import LOG_LEVEL, EngineConfig
from tasmee.pipeline import RecitationPipeline
from tasmee.quran_db import QuranDB
from tasmee.session import MatchEvent

CORPUS_DIR = Path(__file__).parent / "test_corpus"
RESULTS_DIR = Path(__file__).parent / "results"

PROFILES = {
    "default": EngineConfig(),
    "strict-words": EngineConfig(word_threshold=0.9),
    "loose-words": EngineConfig(word_threshold=0.75),
    "wide": EngineConfig(default_window_size=5, min_radius=8),
    "low-floor": EngineConfig(min_threshold=0.4),
}


def load_manifest(path: Path = CORPUS_DIR / "manifest.json") -> list[dict]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return data["samples"]


def load_corpus(path: str | None) -> QuranDB:
    if not path:
        return QuranDB.from_json()
    if path.endswith(".xml"):
        return QuranDB.from_tanzil_xml(Path(path))
    return QuranDB.from_json(Path(path))


def score_sequence(expected: list[dict], predicted: list[dict]) -> dict:
    """Score a predicted verse sequence against expected.

    Uses ordered subsequence matching: a predicted verse counts as a
    recall hit if it matches an expected verse and appears in the
    correct relative order.

    Args:
        expected: [{"surah": int, "ayah": int}, ...]
        predicted: [{"surah": int, "ayah": int, ...}, ...]

    Returns:
        {"recall": float, "precision": float, "sequence_accuracy": float}
    """
    if not expected:
        return {"recall": 1.0, "precision": 1.0, "sequence_accuracy": 1.0}

    if not predicted:
        return {"recall": 0.0, "precision": 0.0, "sequence_accuracy": 0.0}

    # Greedy ordered match: walk through expected, find each in predicted (in order)
    pred_tuples = [(p["surah"], p["ayah"]) for p in predicted]
    exp_tuples = [(e["surah"], e["ayah"]) for e in expected]

    matched = 0
    pred_idx = 0
    matched_pred_indices = set()
    for exp in exp_tuples:
        for j in range(pred_idx, len(pred_tuples)):
            if pred_tuples[j] == exp:
                matched += 1
                matched_pred_indices.add(j)
                pred_idx = j + 1
                break

    recall = matched / len(exp_tuples)
    precision = len(matched_pred_indices) / len(pred_tuples)
    seq_acc = 1.0 if pred_tuples == exp_tuples else 0.0

    return {"recall": recall, "precision": precision, "sequence_accuracy": seq_acc}


def events_to_emissions(events: list) -> list[dict]:
    """Expand match events into one emission per covered verse."""
    emissions = []
    for event in events:
        if not isinstance(event, MatchEvent):
            continue
        m = event.match
        for ayah in range(m.start_verse, m.end_verse + 1):
            emissions.append({"surah": m.sura, "ayah": ayah, "score": m.confidence})
    return emissions


def run_profile(name: str, config: EngineConfig, samples: list[dict], db: QuranDB) -> dict:
    """Replay every sample through a fresh pipeline built with *config*."""
    pipeline = RecitationPipeline(db=db, config=config)

    total_recall = 0.0
    total_precision = 0.0
    total_seq_acc = 0.0
    latencies = []
    per_sample = []

    for sample in samples:
        expected = sample["expected_verses"]
        start = time.perf_counter()
        events = pipeline.run_on_text(
            sample["utterances"],
            sura=sample["surah"],
            start_verse=sample.get("start_ayah", 1),
        )
        elapsed = time.perf_counter() - start
        emissions = events_to_emissions(events)

        scores = score_sequence(expected, emissions)
        total_recall += scores["recall"]
        total_precision += scores["precision"]
        total_seq_acc += scores["sequence_accuracy"]
        latencies.append(elapsed)

        per_sample.append({
            "id": sample["id"],
            "expected": expected,
            "predicted": emissions,
            "recoveries": sum(1 for e in events if getattr(e, "recovered", False)),
            **scores,
            "latency": elapsed,
        })

    n = len(samples)
    return {
        "name": name,
        "recall": total_recall / n if n else 0,
        "precision": total_precision / n if n else 0,
        "sequence_accuracy": total_seq_acc / n if n else 0,
        "total": n,
        "avg_latency": sum(latencies) / n if n else 0,
        "per_sample": per_sample,
    }


def print_table(results: list[dict]):
    print()
    print(f"{'Profile':<20} {'Recall':>8} {'Precision':>10} {'SeqAcc':>8} {'Latency':>10}")
    print("-" * 60)
    for r in results:
        rec = f"{r['recall']:.0%}"
        prec = f"{r['precision']:.0%}"
        seq = f"{r['sequence_accuracy']:.0%}"
        lat = f"{r['avg_latency'] * 1000:.1f}ms"
        print(f"{r['name']:<20} {rec:>8} {prec:>10} {seq:>8} {lat:>10}")
    print()


def save_results(results: list[dict]) -> Path:
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    path = RESULTS_DIR / f"{timestamp}.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(results, f, indent=2, ensure_ascii=False, default=str)
    print(f"Results saved to {path}")
    return path


def main():
    parser = argparse.ArgumentParser(description="Replay transcript sessions through engine profiles")
    parser.add_argument("--profile", type=str, choices=sorted(PROFILES), help="Run only this profile")
    parser.add_argument("--category", type=str, help="Filter samples by category")
    parser.add_argument("--manifest", type=str, default=str(CORPUS_DIR / "manifest.json"))
    parser.add_argument("--corpus", type=str, help="Quran JSON or Tanzil XML (default: TASMEE_QURAN_PATH)")
    args = parser.parse_args()

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s [%(levelname)s] %(message)s")

    samples = load_manifest(Path(args.manifest))
    if args.category:
        samples = [s for s in samples if s.get("category") == args.category]
        print(f"Filtered to {len(samples)} samples in category '{args.category}'")

    db = load_corpus(args.corpus)
    profiles = {args.profile: PROFILES[args.profile]} if args.profile else PROFILES

    print(f"Running {len(profiles)} profile(s) on {len(samples)} sample(s)...")
    results = []
    for name, config in profiles.items():
        print(f"\n>>> {name}")
        result = run_profile(name, config, samples, db)
        results.append(result)
        print(f"    Recall: {result['recall']:.0%}  Precision: {result['precision']:.0%}  SeqAcc: {result['sequence_accuracy']:.0%}")

    print_table(results)
    save_results(results)


if __name__ == "__main__":
    main()
