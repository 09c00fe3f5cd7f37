# tests/conftest.py
import os
import sys

import numpy as np
import pytest

import matplotlib
matplotlib.use("Agg")

# put the project's src/ on the import path
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from gazetrace.core.dataset import Dataset  # noqa: E402

SESSION_COLUMNS = (
    "timestamp", "ms",
    "xpos", "ypos", "zpos",
    "upos", "vpos", "wpos",
    "EtPositionX", "EtPositionY", "EtPositionZ",
    "FixatedObjectName",
)


@pytest.fixture(autouse=True)
def patch_output_dirs(monkeypatch, tmp_path):
    """
    Send every artefact of a test into its own temporary directory.
    """
    monkeypatch.setenv("GAZETRACE_RESULT_ROOT", str(tmp_path / "results"))
    monkeypatch.setenv("GAZETRACE_META_ROOT", str(tmp_path / "meta"))


@pytest.fixture
def make_session():
    """
    Factory for a synthetic session: one row per 100 ms, the walker on a
    circle, gaze alternating between two tight clusters.
    """
    def _make(rows: int = 60, seed: int = 42) -> Dataset:
        rng = np.random.default_rng(seed)
        data = []
        for i in range(rows):
            angle = 2 * np.pi * i / max(rows, 1)
            target = (1.0, 1.5, 2.0) if (i // 10) % 2 == 0 else (-1.0, 1.0, -2.0)
            gaze = [float(c + rng.normal(0, 0.005)) for c in target]
            data.append((
                1_700_000_000 + i // 10, (i % 10) * 100,
                float(np.cos(angle)), 1.7, float(np.sin(angle)),
                0.0, float(np.degrees(angle)), 0.0,
                *gaze,
                "A" if (i // 10) % 2 == 0 else "B",
            ))
        return Dataset(SESSION_COLUMNS, data)
    return _make


@pytest.fixture
def four_points() -> Dataset:
    return Dataset(
        ("EtPositionX", "EtPositionY", "EtPositionZ"),
        [(0.0, 0.0, 0.0), (0.0, 0.0, 0.01), (0.0, 0.0, 0.02), (10.0, 10.0, 10.0)],
    )
