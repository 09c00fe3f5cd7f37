from .dataset import Dataset, Point3, PointColumns, Record, points
from .errors import (
    DuplicateColumnError,
    EmptyDatasetError,
    GazeTraceError,
    MalformedRowError,
    MissingColumnError,
)
from .ingest import dumps_csv, iter_records, parse_csv, read_csv, write_csv
from .spatial_filter import BoundingBox, CullConfig, cull, cull_by_box, cull_by_range
from .clustering import (
    BELOW_THRESHOLD_SCORE,
    ClusterResult,
    HeatmapConfig,
    annotate,
    cluster,
    pairwise_distance,
    trail_polylines,
    trail_segments,
)
from .replay import ReplayConfig, ReplayFrame, ReplayState, TrajectoryReplay
from .logsink import LogFormat, LoggerConfig, Pose, RowFormatter, SessionLogger
from .gaze_source import GazeChannel, GazeRecorder, GazeSample
from .render import HeatmapRenderer, PathRenderer, Theme
from .engine import AnalysisEngine, EngineConfig, IOParams, run_analysis
