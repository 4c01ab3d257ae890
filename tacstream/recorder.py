"""Offline ACMI recordings.

A recording is what a live client would see, minus the banner: file header,
metadata block, then one frame per tick.
"""

import logging
from pathlib import Path
from typing import Iterable, TextIO

from .acmi import Writer
from .config import MissionConfig
from .sync import SyncEngine, TrackedObject, metadata_block

logger = logging.getLogger(__name__)


class Recorder:
    """Writes ticks of a world to an ACMI text stream."""

    CONNECTION = "recording"

    def __init__(self, stream: TextIO, mission: MissionConfig):
        """Initialize the recorder and write the file preamble.

        Args:
            stream: Text stream to record into.
            mission: Metadata written before the first frame.
        """
        self._writer = Writer(stream)
        self._writer.write_all(metadata_block(mission))
        self.engine = SyncEngine()
        self.engine.add_connection(self.CONNECTION)
        self.frames = 0

    def record(self, snapshot: Iterable[TrackedObject], time: float) -> int:
        """Append one tick.

        Returns:
            Number of records written.
        """
        records = self.engine.plan(self.CONNECTION, list(snapshot), time)
        self._writer.write_all(records)
        self.frames += 1
        return len(records)

    def flush(self) -> None:
        self._writer.flush()

    @property
    def lines_written(self) -> int:
        return self._writer.lines_written


def record_to_file(
    path: str | Path,
    mission: MissionConfig,
    ticks: Iterable[tuple[float, Iterable[TrackedObject]]],
) -> int:
    """Record (time, snapshot) ticks into a new ``.acmi`` file.

    Returns:
        Number of frames written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8", newline="\n") as f:
        recorder = Recorder(f, mission)
        for time, snapshot in ticks:
            recorder.record(snapshot, time)

    logger.info(f"Wrote {recorder.frames} frames to {path}")
    return recorder.frames
