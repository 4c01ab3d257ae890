"""Real-time telemetry handshake and mission metadata.

A Tacview client connecting to a host expects, in order:

    XtraLib.Stream.0
    Tacview.RealTimeTelemetry.0
    Host <name>
    \\0

followed by an ordinary ACMI text stream (header, metadata, frames). The
client answers with its own block:

    XtraLib.Stream.0
    Tacview.RealTimeTelemetry.0
    <client name>
    <password hash>\\0
"""

import logging
from dataclasses import dataclass
from typing import Hashable, Protocol

from ..acmi import GlobalProperty, GlobalPropertyName, Writer, format_utc
from ..config import MissionConfig
from .engine import SyncEngine

logger = logging.getLogger(__name__)

STREAM_PROTOCOL = "XtraLib.Stream.0"
TELEMETRY_PROTOCOL = "Tacview.RealTimeTelemetry.0"


class Transport(Protocol):
    """Outbound side of the transport: hand bytes to one peer."""

    def send(self, conn_id: Hashable, data: bytes) -> None:
        ...


class HandshakeError(ValueError):
    """A peer sent something other than a real-time telemetry handshake."""


@dataclass
class ClientHello:
    """The handshake block a Tacview client sends after connecting."""

    stream_protocol: str
    telemetry_protocol: str
    client_name: str
    password_hash: str


def banner(host_name: str) -> bytes:
    """The fixed block a host sends first on every connection."""
    return f"{STREAM_PROTOCOL}\n{TELEMETRY_PROTOCOL}\nHost {host_name}\n\0".encode("utf-8")


def parse_client_handshake(data: bytes) -> ClientHello:
    """Parse a client's handshake block (up to and including the NUL).

    Raises:
        HandshakeError: If the block is malformed.
    """
    text = data.decode("utf-8", errors="replace")
    if "\0" not in text:
        raise HandshakeError("client handshake is not NUL terminated")
    lines = text.split("\0", 1)[0].split("\n")
    if len(lines) < 4:
        raise HandshakeError(f"expected 4 handshake lines, got {len(lines)}")
    stream, telemetry, client_name, password_hash = (line.strip() for line in lines[:4])
    if stream != STREAM_PROTOCOL or telemetry != TELEMETRY_PROTOCOL:
        raise HandshakeError(f"unsupported protocol: {stream!r} / {telemetry!r}")
    return ClientHello(stream, telemetry, client_name, password_hash)


def metadata_block(mission: MissionConfig) -> list[GlobalProperty]:
    """Mission metadata as global properties, in a fixed order.

    Empty fields are still emitted so every client sees the same block.
    """
    return [
        GlobalProperty(GlobalPropertyName.TITLE, mission.title),
        GlobalProperty(GlobalPropertyName.CATEGORY, mission.category),
        GlobalProperty(GlobalPropertyName.AUTHOR, mission.author),
        GlobalProperty(GlobalPropertyName.REFERENCE_TIME, format_utc(mission.reference_time)),
        GlobalProperty(GlobalPropertyName.RECORDING_TIME, format_utc(mission.recording_time)),
        GlobalProperty(GlobalPropertyName.BRIEFING, mission.briefing),
        GlobalProperty(GlobalPropertyName.DEBRIEFING, mission.debriefing),
        GlobalProperty(GlobalPropertyName.COMMENTS, mission.comments),
        GlobalProperty(GlobalPropertyName.DATA_SOURCE, mission.data_source),
        GlobalProperty(GlobalPropertyName.DATA_RECORDER, mission.data_recorder),
    ]


class Handshake:
    """Reacts to connection notifications for the real-time protocol."""

    def __init__(self, host_name: str, mission: MissionConfig):
        """Initialize the handshake.

        Args:
            host_name: Name announced in the banner.
            mission: Mission metadata sent after the banner.
        """
        self.host_name = host_name
        self.mission = mission

    def greeting(self) -> bytes:
        """Banner, file header and metadata block as one buffer."""
        return banner(self.host_name) + Writer.render(metadata_block(self.mission), header=True)

    def on_connected(
        self, conn_id: Hashable, transport: Transport, engine: SyncEngine
    ) -> None:
        """Greet a new peer and schedule a full sync for it."""
        logger.info(f"Tacview client connected: {conn_id}", extra={"conn_id": conn_id})
        transport.send(conn_id, self.greeting())
        engine.add_connection(conn_id)

    def on_disconnected(self, conn_id: Hashable, engine: SyncEngine) -> None:
        """Forget a peer."""
        logger.info(f"Tacview client disconnected: {conn_id}", extra={"conn_id": conn_id})
        engine.remove_connection(conn_id)

    def on_error(self, conn_id: Hashable, error: BaseException) -> None:
        """Report a transport error. Reconnecting is the transport's job."""
        logger.error(f"Transport error on {conn_id}: {error}", extra={"conn_id": conn_id})
