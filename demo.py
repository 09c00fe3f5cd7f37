# -*- coding: utf-8 -*-
"""
demo.py
- Analyse a gaze CSV, or record a synthetic session first when none is given
- Synthetic sessions go through SessionLogger + GazeRecorder, then are re-read
  with the logger's own separators
- Dependencies: matplotlib, numpy, pandas, scipy, tqdm
"""
from __future__ import annotations

import argparse
import math
import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np

# ---- make src importable ----
ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from gazetrace.core.clustering import HeatmapConfig
from gazetrace.core.dataset import Point3, PointColumns
from gazetrace.core.engine import AnalysisEngine, EngineConfig, IOParams
from gazetrace.core.errors import GazeTraceError
from gazetrace.core.gaze_source import GazeChannel, GazeRecorder, GazeSample
from gazetrace.core.ingest import read_csv
from gazetrace.core.logsink import LoggerConfig, Pose, SessionLogger
from gazetrace.core.replay import ReplayConfig, TrajectoryReplay

TARGETS = [("Painting", (1.0, 1.6, 3.0)), ("Statue", (-2.0, 1.2, 1.5)), ("Door", (0.0, 1.0, -4.0))]


# ===============================================================
# Synthetic session
# ===============================================================
def record_synthetic_session(out_dir: Path, samples: int = 600, rate_hz: int = 10, seed: int = 42) -> Path:
    """Record a fake session and return the path of its gaze log."""
    rng = np.random.default_rng(seed)
    t0 = datetime.now().replace(microsecond=0)
    step = timedelta(seconds=1.0 / rate_hz)
    now = {"t": t0}

    sink = SessionLogger(LoggerConfig(save_location=out_dir, dataset_prefix="demo", buffer_size=50), clock=lambda: now["t"])
    channel = GazeChannel(maxsize=64)
    with sink:
        recorder = GazeRecorder(sink, caller="demo")
        sink.log_event("session start")
        for i in range(samples):
            now["t"] = t0 + i * step
            angle = 2 * math.pi * i / samples
            pose = Pose(
                position=Point3(3 * math.cos(angle), 1.7, 3 * math.sin(angle)),
                rotation=Point3(0.0, math.degrees(angle) % 360, 0.0),
            )
            name, center = TARGETS[(i // 80) % len(TARGETS)]
            if rng.random() < 0.05:
                channel.put(GazeSample(hit=False, no_user=rng.random() < 0.5))
            else:
                point = Point3(*(float(c + rng.normal(0, 0.03)) for c in center))
                channel.put(GazeSample(hit=True, point=point, object_name=name))
            recorder.drain(channel, origin=pose)
        sink.log_event("session end")
    return sink.file_path(recorder.log_name)


# ===============================================================
# Output roots
# ===============================================================
def ensure_output_roots(result_root: str, meta_root: str) -> None:
    os.makedirs(result_root, exist_ok=True)
    os.makedirs(meta_root, exist_ok=True)
    os.environ.setdefault("GAZETRACE_RESULT_ROOT", result_root)
    os.environ.setdefault("GAZETRACE_META_ROOT", meta_root)


# ===============================================================
# CLI
# ===============================================================
def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="gazetrace demo: CSV or synthetic session -> heatmap, path & table")
    p.add_argument("--csv", type=str, default=None, help="gaze CSV to analyse (synthetic session if omitted)")
    p.add_argument("--delimiter", type=str, default=None, help="field separator (default: ',' or ';' for synthetic logs)")
    p.add_argument("--decimal", type=str, default=".", help="decimal separator")
    p.add_argument("--samples", type=int, default=600, help="synthetic samples")
    p.add_argument("--max-distance", type=float, default=0.05, help="cluster neighbour radius")
    p.add_argument("--min-cluster", type=int, default=5, help="minimum neighbours of a clustered point")
    p.add_argument("--method", choices=["exact", "kdtree"], default="exact")
    p.add_argument("--workers", type=int, default=1)
    p.add_argument("--trail", action="store_true", help="draw the gaze trail")
    p.add_argument("--outfile", type=str, default="demo", help="output base name")
    p.add_argument("--overwrite", action="store_true", help="replace existing outputs")
    p.add_argument("--result-root", type=str, default=str(ROOT / "results"))
    p.add_argument("--meta-root", type=str, default=str(ROOT / "meta"))
    return p.parse_args()


def main() -> None:
    args = parse_args()
    ensure_output_roots(args.result_root, args.meta_root)

    if args.csv:
        source = Path(args.csv)
        delimiter = args.delimiter or ","
    else:
        source = record_synthetic_session(Path(args.result_root) / "sessions", samples=args.samples)
        delimiter = args.delimiter or ";"

    config = EngineConfig(
        heatmap=HeatmapConfig(
            max_point_distance=args.max_distance,
            min_cluster_size=args.min_cluster,
            method=args.method,
            workers=args.workers,
            draw_trail=args.trail,
            draw_close_trail_only=args.trail,
            progress=True,
        ),
        io=IOParams(
            output_filename=args.outfile,
            delimiter=delimiter,
            decimal=args.decimal,
            overwrite=args.overwrite,
        ),
    )
    try:
        stats = AnalysisEngine(config).run(source)
    except GazeTraceError as e:
        print(f"analysis failed: {e}", file=sys.stderr)
        sys.exit(1)
    print(stats)

    if args.csv:
        return

    # replay the first seconds of the recorded session, 10% faster
    dataset = read_csv(source, delimiter=delimiter, decimal=args.decimal)
    replay = TrajectoryReplay(dataset, ReplayConfig(
        milliseconds_column="ms",
        rotate_columns=PointColumns("uMousePos", "vMousePos", "wMousePos"),
        trail_length=5,
    ))
    replay.speed_up()
    for frame in replay.frames(step=0.5):
        if frame.timestamp > 3.0:
            break
        print(f"t={frame.timestamp:5.2f}s row={frame.index:4d} pos={tuple(round(v, 2) for v in frame.position)}")


if __name__ == "__main__":
    main()
