"""Hardware-agnostic intake of gaze samples.

A tracker callback (any thread) pushes :class:`GazeSample` objects into a
bounded :class:`GazeChannel`; the recording loop drains the channel and hands
the samples to a :class:`GazeRecorder`, which writes them to a session log.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

from .dataset import Point3
from .logsink import FieldValue, Pose, RowFormatter, SessionLogger

logger = logging.getLogger("gazetrace.core.gaze_source")

NO_USER = "no user"
NO_DATA = "no data"
DEFAULT_LOG_NAME = "HtcEtLog"


@dataclass(frozen=True)
class GazeSample:
    """One gaze reading.

    Attributes:
        hit: Whether the gaze ray hit an object.
        point: Hit point (the tracker's value, usually the origin, on a miss).
        object_name: Name of the fixated object when ``hit`` is set.
        no_user: The tracker reports nobody wearing the headset.
        second: Result of the second raycast in dual mode.
    """

    hit: bool
    point: Point3 = Point3(0.0, 0.0, 0.0)
    object_name: Optional[str] = None
    no_user: bool = False
    second: Optional["GazeSample"] = None


class GazeChannel:
    """Bounded FIFO between the tracker callback and the recorder.

    When full, the oldest sample is dropped and counted.
    """

    def __init__(self, maxsize: int = 256) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self.maxsize = maxsize
        self._queue: Deque[GazeSample] = deque(maxlen=maxsize)
        self._lock = threading.Lock()
        self.dropped = 0

    def put(self, sample: GazeSample) -> None:
        with self._lock:
            if len(self._queue) == self.maxsize:
                self.dropped += 1
            self._queue.append(sample)

    def get(self) -> Optional[GazeSample]:
        with self._lock:
            return self._queue.popleft() if self._queue else None

    def drain(self) -> List[GazeSample]:
        with self._lock:
            samples = list(self._queue)
            self._queue.clear()
        return samples

    def __len__(self) -> int:
        return len(self._queue)


class GazeRecorder:
    """Write gaze samples to a custom log of a :class:`SessionLogger`."""

    def __init__(
        self,
        sink: SessionLogger,
        *,
        log_name: str = DEFAULT_LOG_NAME,
        log_position: bool = True,
        log_fixated_object: bool = True,
        dual: bool = False,
        caller: str = "gaze",
    ) -> None:
        self.sink = sink
        self.log_name = log_name
        self.log_position = log_position
        self.log_fixated_object = log_fixated_object
        self.dual = dual
        self.caller = caller
        self.formatter = RowFormatter.from_sink(sink)
        self.last_report: Optional[str] = None
        self._dropped_seen = 0
        self.initialized = sink.create_log(log_name, self.variables(), caller)
        if not self.initialized:
            logger.warning("gaze recorder %s is not logging", caller)

    def variables(self) -> List[str]:
        names: List[str] = []
        if self.log_position:
            names += ["EtPositionX", "EtPositionY", "EtPositionZ"]
            if self.dual:
                names += ["EtPositionDualX", "EtPositionDualY", "EtPositionDualZ"]
        if self.log_fixated_object:
            names.append("FixatedObjectName")
            if self.dual:
                names.append("FixatedObjectDualName")
        return names

    def _fixation(self, sample: GazeSample) -> List[str]:
        if sample.hit and sample.object_name:
            names = [sample.object_name]
            if self.dual:
                second = sample.second
                names.append(second.object_name if second and second.hit and second.object_name else NO_DATA)
            return names
        report = NO_USER if sample.no_user else NO_DATA
        return [report, report] if self.dual else [report]

    def fields(self, sample: GazeSample) -> List[FieldValue]:
        values: List[FieldValue] = []
        if self.log_position:
            values += [float(v) for v in sample.point]
            if self.dual:
                second = sample.second.point if sample.second is not None else Point3(0.0, 0.0, 0.0)
                values += [float(v) for v in second]
        if self.log_fixated_object:
            fixation = self._fixation(sample)
            self.last_report = self.sink.log_format().field_separator.join(fixation)
            values += fixation
        return values

    def record(self, sample: GazeSample, origin: Optional[Pose] = None) -> bool:
        if not self.initialized:
            return False
        return self.sink.log(self.log_name, self.formatter.row(self.fields(sample)), origin)

    def drain(self, channel: GazeChannel, origin: Optional[Pose] = None) -> int:
        """Record every queued sample; returns how many rows were written."""
        written = 0
        for sample in channel.drain():
            if self.record(sample, origin):
                written += 1
        if channel.dropped > self._dropped_seen:
            logger.warning("gaze channel dropped %d sample(s)", channel.dropped - self._dropped_seen)
            self._dropped_seen = channel.dropped
        return written


__all__ = ["NO_USER", "NO_DATA", "GazeSample", "GazeChannel", "GazeRecorder"]
