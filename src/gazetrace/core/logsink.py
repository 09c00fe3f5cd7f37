"""Session log sink: file naming, headers, buffering and row formatting.

One session writes several ``.txt`` logs that share a timestamped suffix::

    <save_location>/<prefix>_<name>_<yyyyMMdd_HHmmss>.txt

Every row starts with the session id, the per-log counter, the unix
timestamp, the wall-clock time and the pose of the logging object, followed by
the caller's own fields. Fields are joined with the format's field separator
and floats use its decimal separator, so the files read back through
:func:`gazetrace.core.ingest.read_csv` with the same two settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TextIO, Union

from .dataset import Point3

logger = logging.getLogger("gazetrace.core.logsink")

LINE_END = "\r\n"
SESSION_TIME_FORMAT = "%Y%m%d_%H%M%S"
BUFFER_SIZE_RANGE = (1, 1000)

PREFIX_COLUMNS = ("userId", "logId", "timestamp", "hour", "min", "sec", "ms")
POSE_COLUMNS = (
    "xpos", "ypos", "zpos",
    "uMousePos", "vMousePos", "wMousePos",
    "uGazePos", "vGazePos", "wGazePos",
)
EVENT_LOG_NAME = "eventlog"

FieldValue = Union[int, float, str, bool]


@dataclass(frozen=True)
class LogFormat:
    decimal_separator: str = "."
    field_separator: str = ";"

    def __post_init__(self) -> None:
        if self.decimal_separator == self.field_separator:
            raise ValueError("decimal and field separators must differ")


@dataclass(frozen=True)
class Pose:
    """Position, body rotation and head rotation of the logging object."""

    position: Point3 = Point3(0.0, 0.0, 0.0)
    rotation: Point3 = Point3(0.0, 0.0, 0.0)
    gaze_rotation: Point3 = Point3(0.0, 0.0, 0.0)

    def values(self) -> List[float]:
        return [*self.position, *self.rotation, *self.gaze_rotation]


class RowFormatter:
    """Formats field values for one sink.

    Build it with :meth:`from_sink` so the separators always come from the
    sink that will receive the rows.
    """

    def __init__(self, log_format: LogFormat) -> None:
        self.log_format = log_format

    @classmethod
    def from_sink(cls, sink: "SessionLogger") -> "RowFormatter":
        return cls(sink.log_format())

    def value(self, value: FieldValue) -> str:
        if isinstance(value, bool):
            return str(value)
        if isinstance(value, float):
            text = repr(value)
            if self.log_format.decimal_separator != ".":
                text = text.replace(".", self.log_format.decimal_separator)
            return text
        return str(value)

    def row(self, values: Iterable[FieldValue]) -> str:
        return self.log_format.field_separator.join(self.value(v) for v in values)

    def header(self, names: Iterable[str]) -> str:
        return self.log_format.field_separator.join(names)


@dataclass
class CustomLog:
    """One open log file and its write state."""

    name: str
    path: Path
    handle: TextIO
    buffer: List[str] = field(default_factory=list)
    counter: int = 1

    def flush(self) -> None:
        if self.buffer:
            self.handle.write("".join(self.buffer))
            self.buffer.clear()
        self.handle.flush()


@dataclass(frozen=True)
class LoggerConfig:
    """Session logger settings.

    Attributes:
        save_location: Directory receiving the log files; created if missing.
        dataset_prefix: Prefix of every file name.
        buffer_size: Rows kept in memory per log before a write (1-1000).
        allow_custom_logs: Whether collaborators may register their own logs.
        event_log: Whether the free-form event log is written.
        log_format: Separators used for every row.
    """

    save_location: Union[str, Path] = "logs"
    dataset_prefix: str = "session"
    buffer_size: int = 1
    allow_custom_logs: bool = True
    event_log: bool = True
    log_format: LogFormat = field(default_factory=LogFormat)


class SessionLogger:
    """Log sink shared by every recorder of one session."""

    def __init__(self, config: LoggerConfig = LoggerConfig(), clock: Callable[[], datetime] = datetime.now) -> None:
        self.config = config
        self._clock = clock

        # buffer_size: 1-1000, out of range is clamped
        lo, hi = BUFFER_SIZE_RANGE
        self.buffer_size = min(hi, max(lo, int(config.buffer_size)))
        if self.buffer_size != config.buffer_size:
            logger.warning("buffer_size %s clamped to %d", config.buffer_size, self.buffer_size)

        self.session_id = clock().strftime(SESSION_TIME_FORMAT)
        self.save_location = Path(config.save_location)
        self._formatter = RowFormatter(config.log_format)
        self._logs: Dict[str, CustomLog] = {}
        self._event_log: Optional[CustomLog] = None
        self.closed = False

    # --- format ---
    def log_format(self) -> LogFormat:
        return self.config.log_format

    def file_path(self, name: str) -> Path:
        return self.save_location / f"{self.config.dataset_prefix}_{name}_{self.session_id}.txt"

    @property
    def logs(self) -> Dict[str, CustomLog]:
        return dict(self._logs)

    def _verify_location(self) -> bool:
        try:
            self.save_location.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("cannot create log directory %s: %s", self.save_location, exc)
            return False
        return True

    def _open(self, name: str, columns: Sequence[str]) -> CustomLog:
        path = self.file_path(name)
        handle = path.open("w", encoding="utf-8", newline="")
        if columns:
            handle.write(self._formatter.header(columns) + LINE_END)
            handle.flush()
        return CustomLog(name=name, path=path, handle=handle)

    # --- registration ---
    def create_log(self, name: str, variables: Union[str, Sequence[str]] = (), caller: str = "") -> bool:
        """Register a custom log and write its header.

        Args:
            name: Log name, used in the file name and by :meth:`log`.
            variables: Names of the caller's own columns, either a sequence or
                one string joined with the field separator. An empty value
                creates a file without a header.
            caller: Name of the registering component, used in warnings.

        Returns:
            ``True`` when the log is ready to receive rows. ``False`` (with a
            warning) when custom logs are disabled, the name is empty or
            already taken, or the directory cannot be created.
        """
        if self.closed:
            logger.warning("%s tried to create log %r on a closed session", caller, name)
            return False
        if not self.config.allow_custom_logs:
            logger.warning("%s tried to create custom log %r; custom logs are disabled", caller, name)
            return False
        if not name:
            logger.warning("%s tried to create a custom log with no name", caller)
            return False
        if name in self._logs or name == EVENT_LOG_NAME:
            logger.warning("%s tried to create log %r twice", caller, name)
            return False
        if not self._verify_location():
            return False

        if isinstance(variables, str):
            variables = [v for v in variables.split(self.config.log_format.field_separator) if v]
        columns = [*PREFIX_COLUMNS, *POSE_COLUMNS, *variables] if variables else []
        self._logs[name] = self._open(name, columns)
        logger.info("custom log %r created for %s: %s", name, caller or "?", self._logs[name].path)
        return True

    # --- rows ---
    def _prefix(self, counter: int) -> List[FieldValue]:
        now = self._clock()
        return [
            self.session_id,
            counter,
            int(now.timestamp()),
            f"{now.hour:02d}",
            f"{now.minute:02d}",
            f"{now.second:02d}",
            now.microsecond // 1000,
        ]

    def _append(self, entry: CustomLog, line: str) -> None:
        entry.buffer.append(line + LINE_END)
        if entry.counter % self.buffer_size == 0:
            entry.flush()
        entry.counter += 1

    def log(self, name: str, row: Union[str, Sequence[FieldValue]], origin: Optional[Pose] = None) -> bool:
        """Append one row to the custom log ``name``.

        ``row`` is either already formatted text or a sequence of values that
        is formatted with this sink's separators. Returns ``False`` (with a
        warning) for an unknown log.
        """
        if self.closed:
            logger.warning("logging into %r after the session closed; row dropped", name)
            return False
        entry = self._logs.get(name)
        if entry is None:
            logger.warning("logging into non-existent log %r; row dropped", name)
            return False
        pose = origin if origin is not None else Pose()
        head = self._formatter.row([*self._prefix(entry.counter), *pose.values()])
        body = row if isinstance(row, str) else self._formatter.row(row)
        self._append(entry, head + self.config.log_format.field_separator + body)
        return True

    def log_event(self, info: str) -> bool:
        """Write one free-form event row; event rows are never buffered."""
        if not self.config.event_log or self.closed:
            logger.warning("event logging is unavailable; dropped: %s", info)
            return False
        if self._event_log is None:
            if not self._verify_location():
                return False
            self._event_log = self._open(EVENT_LOG_NAME, [*PREFIX_COLUMNS, "eventInfo"])
            self._event_log.counter = 0
        entry = self._event_log
        entry.buffer.append(self._formatter.row([*self._prefix(entry.counter), info]) + LINE_END)
        entry.flush()
        entry.counter += 1
        return True

    # --- lifecycle ---
    def flush(self) -> None:
        for entry in self._logs.values():
            entry.flush()
        if self._event_log is not None:
            self._event_log.flush()

    def close(self) -> None:
        if self.closed:
            return
        entries = list(self._logs.values())
        if self._event_log is not None:
            entries.append(self._event_log)
        for entry in entries:
            entry.flush()
            entry.handle.close()
        self.closed = True
        logger.info("session %s closed (%d log(s))", self.session_id, len(entries))

    def __enter__(self) -> "SessionLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    "LogFormat",
    "Pose",
    "RowFormatter",
    "CustomLog",
    "LoggerConfig",
    "SessionLogger",
    "PREFIX_COLUMNS",
    "POSE_COLUMNS",
]
