"""Synchronization of world snapshots to connected Tacview clients.

Provides the per-connection sync engine (full vs incremental passes, object
lifecycle) and the real-time handshake that greets new connections.
"""

from .engine import (
    ConnectionSyncContext,
    Lifecycle,
    ObjectSyncState,
    SyncEngine,
    TrackedObject,
)
from .handshake import (
    ClientHello,
    Handshake,
    HandshakeError,
    Transport,
    banner,
    metadata_block,
    parse_client_handshake,
)

__all__ = [
    "ClientHello",
    "ConnectionSyncContext",
    "Handshake",
    "HandshakeError",
    "Lifecycle",
    "ObjectSyncState",
    "SyncEngine",
    "TrackedObject",
    "Transport",
    "banner",
    "metadata_block",
    "parse_client_handshake",
]
