"""Per-connection synchronization of tracked objects into ACMI records.

Each connection keeps its own view of which objects it has been sent and
with which property values. A pass over one world snapshot then decides, per
object, whether the connection gets a full spawn update, a diff, or a
removal:

    UNTRACKED --first pass--> SPAWNED --next passes--> SYNCED
        ^                                                 |
        +--- dropped <-- REMOVED <-- destroyed/left/timeout

A connection flagged for full sync (new observer) gets every live object as
a fresh spawn for exactly one pass.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Hashable, Iterable, Sequence

from ..acmi import Coords, Event, EventKind, Frame, PropertyList, Record, Remove, Update, Writer
from ..acmi.record import GLOBAL_OBJECT_ID, MAX_OBJECT_ID

logger = logging.getLogger(__name__)


class Lifecycle(Enum):
    """Lifecycle flag the host attaches to an object for the current tick."""

    ALIVE = "alive"
    DESTROYED = "destroyed"
    LEFT_AREA = "left_area"
    TIMEOUT = "timeout"

    @property
    def event_kind(self) -> EventKind | None:
        return _LIFECYCLE_EVENTS.get(self)


_LIFECYCLE_EVENTS = {
    Lifecycle.DESTROYED: EventKind.DESTROYED,
    Lifecycle.LEFT_AREA: EventKind.LEFT_AREA,
    Lifecycle.TIMEOUT: EventKind.TIMEOUT,
}


class ObjectSyncState(Enum):
    """What a connection knows about one object."""

    UNTRACKED = "untracked"
    SPAWNED = "spawned"
    SYNCED = "synced"
    REMOVED = "removed"


_LIVE_STATES = (ObjectSyncState.SPAWNED, ObjectSyncState.SYNCED)


@dataclass(frozen=True)
class TrackedObject:
    """One object of the host's world snapshot for a single tick."""

    id: int
    coords: Coords
    properties: PropertyList = ()
    lifecycle: Lifecycle = Lifecycle.ALIVE

    def __post_init__(self):
        if not GLOBAL_OBJECT_ID < self.id <= MAX_OBJECT_ID:
            raise ValueError(f"object id must be in 1..2^64-1, got {self.id}")
        object.__setattr__(self, "properties", tuple(self.properties))

    def full_update(self) -> Update:
        """Update carrying the complete object definition."""
        return Update(self.id, (self.coords, *self.properties))


@dataclass
class ConnectionSyncContext:
    """Synchronization state of one connected observer."""

    conn_id: Hashable
    needs_full_sync: bool = True
    states: dict[int, ObjectSyncState] = field(default_factory=dict)
    sent: dict[int, dict[str, str]] = field(default_factory=dict)
    last_frame: float | None = None
    passes: int = 0

    def state_of(self, object_id: int) -> ObjectSyncState:
        return self.states.get(object_id, ObjectSyncState.UNTRACKED)

    @property
    def tracked(self) -> list[int]:
        """Ids of objects the connection currently displays, in spawn order."""
        return [oid for oid, state in self.states.items() if state in _LIVE_STATES]


def _check_unique(snapshot: Sequence[TrackedObject]) -> None:
    seen = set()
    for obj in snapshot:
        if obj.id in seen:
            raise ValueError(f"duplicate object id in snapshot: {obj.id:x}")
        seen.add(obj.id)


class SyncEngine:
    """Turns world snapshots into per-connection ACMI record streams.

    The engine owns all per-connection state; nothing is shared between
    connections, so each observer can be at a different point of its sync.
    """

    def __init__(self):
        self._contexts: dict[Hashable, ConnectionSyncContext] = {}

    def add_connection(self, conn_id: Hashable) -> ConnectionSyncContext:
        """Start tracking a connection. Its next pass is a full sync."""
        ctx = self._contexts.get(conn_id)
        if ctx is None:
            ctx = ConnectionSyncContext(conn_id)
            self._contexts[conn_id] = ctx
            logger.debug(f"Tracking connection {conn_id}")
        else:
            ctx.needs_full_sync = True
        return ctx

    def remove_connection(self, conn_id: Hashable) -> bool:
        """Discard everything known about a connection.

        Returns:
            True if the connection was tracked.
        """
        ctx = self._contexts.pop(conn_id, None)
        if ctx is None:
            return False
        logger.debug(
            f"Dropped connection {conn_id} "
            f"({len(ctx.tracked)} objects, {ctx.passes} passes)"
        )
        return True

    def request_full_sync(self, conn_id: Hashable) -> None:
        """Resend every live object to a connection on its next pass."""
        self.context(conn_id).needs_full_sync = True

    def context(self, conn_id: Hashable) -> ConnectionSyncContext:
        try:
            return self._contexts[conn_id]
        except KeyError:
            raise KeyError(f"Unknown connection: {conn_id}") from None

    def __contains__(self, conn_id: Hashable) -> bool:
        return conn_id in self._contexts

    @property
    def connections(self) -> list[Hashable]:
        return list(self._contexts)

    def _retire(
        self, ctx: ConnectionSyncContext, object_id: int, lifecycle: Lifecycle
    ) -> list[Record]:
        ctx.states[object_id] = ObjectSyncState.REMOVED
        ctx.sent.pop(object_id, None)
        return [
            Remove(object_id),
            Event(lifecycle.event_kind, (format(object_id, "x"),)),
        ]

    def plan(
        self,
        conn_id: Hashable,
        snapshot: Sequence[TrackedObject],
        time: float,
    ) -> list[Record]:
        """Decide the records one connection receives for one tick.

        Args:
            conn_id: Connection to plan for.
            snapshot: Objects of the current tick, in emission order.
            time: Tick time in seconds. Clamped so frames never go back.

        Returns:
            A Frame followed by Update/Remove/Event records.
        """
        ctx = self.context(conn_id)
        _check_unique(snapshot)

        if ctx.last_frame is not None and time < ctx.last_frame:
            time = ctx.last_frame
        frame = Frame(time)
        ctx.last_frame = frame.time
        records: list[Record] = [frame]

        full = ctx.needs_full_sync
        seen = set()
        for obj in snapshot:
            seen.add(obj.id)
            tracked = ctx.state_of(obj.id) in _LIVE_STATES

            if obj.lifecycle is not Lifecycle.ALIVE:
                if tracked:
                    records.extend(self._retire(ctx, obj.id, obj.lifecycle))
                continue

            if full or not tracked:
                records.append(obj.full_update())
                ctx.states[obj.id] = ObjectSyncState.SPAWNED
                ctx.sent[obj.id] = {p.name: p.value for p in obj.properties}
                continue

            sent = ctx.sent.setdefault(obj.id, {})
            changed = [p for p in obj.properties if sent.get(p.name) != p.value]
            sent.update((p.name, p.value) for p in changed)
            records.append(Update(obj.id, (obj.coords, *changed)))
            ctx.states[obj.id] = ObjectSyncState.SYNCED

        # Tracked objects the host stopped reporting have left the area
        for object_id in ctx.tracked:
            if object_id not in seen:
                records.extend(self._retire(ctx, object_id, Lifecycle.LEFT_AREA))

        for object_id in [oid for oid, s in ctx.states.items() if s is ObjectSyncState.REMOVED]:
            del ctx.states[object_id]

        if full:
            logger.debug(f"Full sync of {len(ctx.tracked)} objects to {conn_id}")
        ctx.needs_full_sync = False
        ctx.passes += 1
        return records

    def render(
        self,
        conn_id: Hashable,
        snapshot: Sequence[TrackedObject],
        time: float,
        metadata: Iterable[Record] | None = None,
    ) -> bytes:
        """Plan one connection's pass and encode it, metadata block first."""
        records = list(metadata or [])
        records.extend(self.plan(conn_id, snapshot, time))
        return Writer.render(records)

    def step(
        self, snapshot: Iterable[TrackedObject], time: float
    ) -> dict[Hashable, bytes]:
        """Run one pass for every connection.

        Returns:
            Mapping of connection id to the bytes it should be sent.
        """
        snapshot = list(snapshot)
        return {
            conn_id: self.render(conn_id, snapshot, time)
            for conn_id in list(self._contexts)
        }
