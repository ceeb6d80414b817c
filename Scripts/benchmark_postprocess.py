from __future__ import annotations

import argparse
import time
from pathlib import Path
from typing import List

import numpy as np

from yolo_track import PipelineConfig, Suppressor, Tracker, YoloDecoder, load_pipeline_config


def _format_timings(stage: str, seconds: List[float]) -> str:
    ms = np.asarray(seconds) * 1000.0
    p50, p90, p95 = np.percentile(ms, [50, 90, 95])
    return f"{stage}: n={ms.size} mean={ms.mean():.3f}ms p50={p50:.3f}ms p90={p90:.3f}ms p95={p95:.3f}ms"


def _synthetic_output(rng: np.random.Generator, n_preds: int, n_classes: int, imgsz: int) -> np.ndarray:
    # Layout (1, 4 + C, N): cx, cy, w, h rows followed by class score rows.
    cxcy = rng.uniform(0, imgsz, size=(2, n_preds))
    wh = rng.uniform(8, imgsz / 3, size=(2, n_preds))
    # Mostly low scores with a sparse set of confident predictions, like a real head.
    scores = rng.uniform(0.0, 0.15, size=(n_classes, n_preds))
    hot = rng.choice(n_preds, size=max(1, n_preds // 100), replace=False)
    scores[rng.integers(0, n_classes, size=hot.size), hot] = rng.uniform(0.3, 0.95, size=hot.size)
    return np.concatenate([cxcy, wh, scores], axis=0)[None, ...].astype(np.float32)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Benchmark decode, class-aware NMS and tracking on synthetic YOLO output tensors."
    )
    parser.add_argument("--config", default=None, help="Optional pipeline config JSON.")
    parser.add_argument("--preds", type=int, default=8400, help="Number of predictions (N).")
    parser.add_argument("--classes", type=int, default=80, help="Number of classes (C).")
    parser.add_argument("--imgsz", type=int, default=640, help="Model input size.")
    parser.add_argument("--frame-width", type=int, default=1280, help="Source frame width.")
    parser.add_argument("--frame-height", type=int, default=720, help="Source frame height.")
    parser.add_argument("--frames", type=int, default=200, help="Frames to time.")
    parser.add_argument("--warmup", type=int, default=10, help="Warmup frames to run but not record.")
    parser.add_argument("--seed", type=int, default=0, help="RNG seed.")
    args = parser.parse_args()

    if args.preds < 1:
        raise ValueError("--preds must be >= 1")
    if args.classes < 1:
        raise ValueError("--classes must be >= 1")
    if args.frames < 1:
        raise ValueError("--frames must be >= 1")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")
    if args.imgsz < 32:
        raise ValueError("--imgsz must be >= 32")

    cfg = load_pipeline_config(Path(args.config)) if args.config else PipelineConfig()
    decoder = YoloDecoder(cfg.decoder, num_labels=len(cfg.class_names))
    suppressor = Suppressor(cfg.class_names, cfg.suppressor, cfg.decoder.rules)
    tracker = Tracker(cfg.tracker)
    frame_size = (int(args.frame_width), int(args.frame_height))

    rng = np.random.default_rng(int(args.seed))
    t_dec: List[float] = []
    t_nms: List[float] = []
    t_trk: List[float] = []
    n_candidates: List[int] = []

    for idx in range(int(args.warmup) + int(args.frames)):
        preds = _synthetic_output(rng, int(args.preds), int(args.classes), int(args.imgsz))
        t0 = time.perf_counter()
        decoded = decoder.decode(preds, frame_size)
        t1 = time.perf_counter()
        dets = suppressor.suppress(decoded.candidates)
        t2 = time.perf_counter()
        _ = tracker.update(dets)
        t3 = time.perf_counter()
        if idx < int(args.warmup):
            continue
        t_dec.append(t1 - t0)
        t_nms.append(t2 - t1)
        t_trk.append(t3 - t2)
        n_candidates.append(len(decoded.candidates))

    for stage, seconds in (("decode", t_dec), ("nms", t_nms), ("track", t_trk)):
        print(_format_timings(stage, seconds))
    print(
        f"frames={len(t_dec)} mean_candidates={np.mean(n_candidates):.1f} "
        f"live_tracks={len(tracker)} next_id={tracker.next_id}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
