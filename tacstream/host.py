"""Host adapter: drives synchronization passes for a live world.

The host owns the sync engine and the handshake, pulls a snapshot from the
simulation once per tick and hands each connection its buffer through the
transport. It also receives the transport's connection notifications.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Hashable, Iterable

from .config import Config
from .sync import Handshake, SyncEngine, TrackedObject, Transport

logger = logging.getLogger(__name__)

SnapshotSource = Callable[[], Iterable[TrackedObject]]


class TelemetryHost:
    """Streams a world to every connected Tacview client."""

    def __init__(
        self,
        config: Config,
        snapshot: SnapshotSource,
        transport: Transport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the host.

        Args:
            config: Loaded configuration (host name, mission, tick rate).
            snapshot: Callable returning the tracked objects of the current tick.
            transport: Where to send buffers. Can be attached later.
            clock: Monotonic clock in seconds, used for frame times.
        """
        self.config = config
        self.engine = SyncEngine()
        self.handshake = Handshake(config.host.name, config.mission)
        self._snapshot = snapshot
        self._transport = transport
        self._clock = clock
        self._started = clock()
        self._running = False
        self.ticks = 0

        # Frame offsets count from RecordingTime when the mission has one
        self._offset = 0.0
        recording_time = config.mission.recording_time
        if recording_time is not None:
            now = datetime.now(timezone.utc)
            self._offset = max(0.0, (now - recording_time).total_seconds())

    def attach(self, transport: Transport) -> None:
        """Set the transport used to reach clients."""
        self._transport = transport

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise RuntimeError("No transport attached")
        return self._transport

    # Transport notifications

    def on_connected(self, conn_id: Hashable) -> None:
        self.handshake.on_connected(conn_id, self._require_transport(), self.engine)

    def on_disconnected(self, conn_id: Hashable) -> None:
        self.handshake.on_disconnected(conn_id, self.engine)

    def on_error(self, conn_id: Hashable, error: BaseException) -> None:
        self.handshake.on_error(conn_id, error)

    @property
    def connection_count(self) -> int:
        return len(self.engine.connections)

    def frame_time(self) -> float:
        """Seconds since the mission recording time (or since start)."""
        return self._offset + (self._clock() - self._started)

    def tick(self) -> int:
        """Run one synchronization pass for every connection.

        Returns:
            Number of connections that were sent a buffer.
        """
        if not self.engine.connections:
            return 0

        transport = self._require_transport()
        snapshot = list(self._snapshot())
        buffers = self.engine.step(snapshot, self.frame_time())
        for conn_id, data in buffers.items():
            transport.send(conn_id, data)

        self.ticks += 1
        return len(buffers)

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Tick at the configured rate until stopped.

        Args:
            stop_event: Event to signal the loop should stop.
        """
        interval = self.config.stream.tick_interval
        logger.info(f"Starting telemetry loop at {self.config.stream.tick_rate:g} Hz")
        self._running = True

        while self._running:
            if stop_event and stop_event.is_set():
                break

            try:
                self.tick()
            except Exception as e:
                logger.error(f"Telemetry tick failed: {e}", exc_info=True)

            if stop_event:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=interval)
                    break
                except asyncio.TimeoutError:
                    pass
            else:
                await asyncio.sleep(interval)

        self._running = False
        logger.info(f"Telemetry loop stopped after {self.ticks} ticks")

    def stop(self) -> None:
        self._running = False
