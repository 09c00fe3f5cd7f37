"""One-call analysis of a recorded session: table and figures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

from .clustering import HeatmapConfig, annotate, cluster
from .dataset import MOVE_COLUMNS, Dataset, PointColumns, points
from .errors import (
    EC_DATA_EMPTY,
    EC_INPUT_FORMAT,
    EC_STORAGE_DST_INVALID,
    EC_STORAGE_IO,
    GazeTraceError,
    MissingColumnError,
)
from .ingest import read_csv, write_csv
from .logging_util import close_logger, get_logger, log_summary
from .naming import build_basename, meta_paths, result_path
from .render import HeatmapRenderer, PathRenderer, Theme
from .spatial_filter import cull

RUN_TIME_FORMAT = "%Y%m%d_%H%M%S"


@dataclass(frozen=True)
class IOParams:
    """Input parsing and output naming.

    Attributes:
        session: First part of every output basename.
        output_filename: Second part of every output basename.
        ver: Version suffix of every output basename.
        delimiter: Field separator of the input CSV.
        decimal: Decimal separator of the input CSV.
        overwrite: Replace outputs that already exist.
        write_table: Write the annotated CSV.
        write_heatmap: Write the heatmap PNG.
        write_path: Write the movement path PNG (skipped if its columns are absent).
        path_columns: Columns of the movement path.
    """

    session: str = "session"
    output_filename: str = "gaze"
    ver: str = "v1.0"
    delimiter: str = ","
    decimal: str = "."
    overwrite: bool = False
    write_table: bool = True
    write_heatmap: bool = True
    write_path: bool = True
    path_columns: PointColumns = MOVE_COLUMNS


@dataclass(frozen=True)
class EngineConfig:
    heatmap: HeatmapConfig = field(default_factory=HeatmapConfig)
    theme: Theme = field(default_factory=Theme)
    io: IOParams = field(default_factory=IOParams)


class AnalysisEngine:
    """Ingest, cull, cluster and annotate a session, then write its outputs."""

    def __init__(self, config: Optional[EngineConfig] = None, dt: Optional[str] = None) -> None:
        self.config = EngineConfig() if config is None else config
        self.dt = dt or datetime.now().strftime(RUN_TIME_FORMAT)

    def _basename(self, kind: str) -> str:
        io = self.config.io
        return build_basename(io.session, f"{io.output_filename}-{kind}", self.dt, io.ver)

    def _target(self, kind: str, name: str) -> Path:
        path = result_path(kind, self._basename(name))
        if path.exists() and not self.config.io.overwrite:
            raise FileExistsError(f"already exists: {path}")
        return path

    def load(self, source: Union[str, Path, Dataset]) -> Dataset:
        if isinstance(source, Dataset):
            return source
        io = self.config.io
        return read_csv(source, delimiter=io.delimiter, decimal=io.decimal)

    def run(self, source: Union[str, Path, Dataset]) -> Dict[str, object]:
        """Analyse ``source`` (a CSV path or a dataset).

        Returns:
            Output paths (``None`` for outputs not written) and row counts.

        Raises:
            GazeTraceError: Input errors as raised by ingest and clustering;
                storage failures with the ``EC_STORAGE_*`` codes.
        """
        mpaths = meta_paths(self.dt)
        logger = get_logger(self.dt, log_path=mpaths["log_path"])
        cfg = self.config
        results: Dict[str, object] = {
            "table_csv": None,
            "heatmap_png": None,
            "path_png": None,
            "log_path": str(mpaths["log_path"]),
        }
        try:
            dataset = self.load(source)
            rows_in = len(dataset)
            kept = cull(dataset, cfg.heatmap.cull, cfg.heatmap.columns)
            if len(kept) == 0:
                logger.warning("EC=%s no rows to analyse (input %d)", EC_DATA_EMPTY, rows_in)
            result = cluster(kept, cfg.heatmap)
            annotated = annotate(kept, result)

            if cfg.io.write_table:
                results["table_csv"] = write_csv(annotated, self._target("table", "clusters"))

            if cfg.io.write_heatmap:
                target = self._target("image", "heatmap")
                renderer = HeatmapRenderer(cfg.heatmap, cfg.theme, overwrite=cfg.io.overwrite)
                pts = points(kept, cfg.heatmap.columns) if len(kept) else []
                results["heatmap_png"] = renderer.save_png(renderer.plot(pts, result), target)

            if cfg.io.write_path and len(kept):
                try:
                    path_pts = points(kept, cfg.io.path_columns)
                except MissingColumnError as exc:
                    logger.warning("path figure skipped: %s", exc)
                else:
                    target = self._target("image", "path")
                    renderer = PathRenderer(cfg.theme, overwrite=cfg.io.overwrite)
                    results["path_png"] = renderer.save_png(renderer.plot(path_pts), target)

            stats = {
                **{k: v for k, v in results.items() if v},
                "rows_in": rows_in,
                "rows_kept": len(kept),
                "in_cluster": int(result.in_cluster.sum()),
                "max_neighbor_count": result.max_neighbor_count,
            }
            log_summary(logger, stats)
            results.update(stats)
            return results
        except GazeTraceError as exc:
            logger.error("EC=%s %s", exc.code, exc.message)
            raise
        except FileNotFoundError as exc:
            logger.error("EC=%s input_missing %s", EC_INPUT_FORMAT, exc)
            raise GazeTraceError(f"input not found: {exc.filename}", code=EC_INPUT_FORMAT) from exc
        except FileExistsError as exc:
            logger.error("EC=%s already_exists %s", EC_STORAGE_DST_INVALID, exc)
            raise GazeTraceError(str(exc), code=EC_STORAGE_DST_INVALID) from exc
        except OSError as exc:
            logger.error("EC=%s io err=%s", EC_STORAGE_IO, exc)
            raise GazeTraceError(f"I/O failure: {exc}", code=EC_STORAGE_IO) from exc
        finally:
            close_logger(logger)


def run_analysis(source: Union[str, Path, Dataset], config: Optional[EngineConfig] = None) -> Dict[str, object]:
    """Shortcut for ``AnalysisEngine(config).run(source)``."""
    return AnalysisEngine(config).run(source)


__all__ = ["IOParams", "EngineConfig", "AnalysisEngine", "run_analysis"]
