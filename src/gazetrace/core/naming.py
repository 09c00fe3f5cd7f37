"""Naming helpers for analysis outputs."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Final

# Roots can be overridden from the environment (tests point them at tmp dirs)
DEFAULT_RESULT_ROOT = str((Path.cwd() / "gazetrace_data" / "output").resolve())

_KIND_DIR_MAP: Final[Dict[str, str]] = {
    "image": "images",
    "table": "tables",
}
_KIND_EXT_MAP: Final[Dict[str, str]] = {
    "image": "png",
    "table": "csv",
}


def result_root() -> Path:
    return Path(os.getenv("GAZETRACE_RESULT_ROOT") or DEFAULT_RESULT_ROOT)


def meta_root() -> Path:
    return Path(os.getenv("GAZETRACE_META_ROOT") or (result_root() / "meta"))


def _sanitize(text: str) -> str:
    sanitized = re.sub(r"[^0-9A-Za-z._-]+", "-", text.strip())
    sanitized = re.sub(r"-+", "-", sanitized).strip("-")
    return sanitized or "untitled"


def build_basename(session: str, filename: str, dt: str, ver: str) -> str:
    """Build the canonical ``<session>-<filename>-<dt>_<ver>`` basename."""

    parts = [_sanitize(session), _sanitize(filename), _sanitize(dt)]
    return f"{'-'.join(parts)}_{_sanitize(ver)}"


def result_path(kind: str, basename: str) -> Path:
    """Return the absolute path of an artefact stored under the result root.

    Raises:
        ValueError: If ``kind`` is neither ``image`` nor ``table``.
    """

    if kind not in _KIND_DIR_MAP:
        raise ValueError(f"unknown artefact kind: {kind}")

    directory = result_root() / _KIND_DIR_MAP[kind]
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{basename}.{_KIND_EXT_MAP[kind]}"


def meta_paths(dt: str) -> Dict[str, Path]:
    """Return the run log path for the given run timestamp."""

    logs_dir = meta_root() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return {"log_path": logs_dir / f"run_{_sanitize(dt)}.log"}
