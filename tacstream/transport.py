"""Asyncio TCP transport for Tacview real-time telemetry.

Accepts client connections, moves bytes, and reports connection events to a
listener (normally the ``TelemetryHost``). Sending never blocks: data is
queued on the stream writer, and peers whose queue grows past
``max_buffer_bytes`` are dropped.
"""

import asyncio
import itertools
import logging
from typing import Protocol

from .config import ServerConfig
from .sync import HandshakeError, parse_client_handshake

logger = logging.getLogger(__name__)

# Upper bound for the client handshake block
MAX_HANDSHAKE_BYTES = 4096


class ConnectionListener(Protocol):
    """Receives connection lifecycle notifications."""

    def on_connected(self, conn_id: int) -> None:
        ...

    def on_disconnected(self, conn_id: int) -> None:
        ...

    def on_error(self, conn_id: int, error: BaseException) -> None:
        ...


class TcpTransport:
    """TCP server holding one stream writer per connected client."""

    def __init__(self, config: ServerConfig, listener: ConnectionListener):
        """Initialize the transport.

        Args:
            config: Listen address and buffering limits.
            listener: Receives connected/disconnected/error notifications.
        """
        self.config = config
        self._listener = listener
        self._server: asyncio.AbstractServer | None = None
        self._writers: dict[int, asyncio.StreamWriter] = {}
        self._ids = itertools.count(1)

    async def start(self) -> None:
        """Start listening."""
        self._server = await asyncio.start_server(
            self._handle_client,
            self.config.host,
            self.config.port,
            limit=MAX_HANDSHAKE_BYTES,
        )
        logger.info(f"Listening for Tacview clients on {self.config.host}:{self.port}")

    async def stop(self) -> None:
        """Close every client and stop listening."""
        for writer in list(self._writers.values()):
            writer.close()
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        logger.info("Transport stopped")

    @property
    def port(self) -> int:
        """The bound port (useful when configured with port 0)."""
        if self._server and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self.config.port

    @property
    def connection_ids(self) -> list[int]:
        return list(self._writers)

    def send(self, conn_id: int, data: bytes) -> None:
        """Queue bytes for one client."""
        writer = self._writers.get(conn_id)
        if writer is None or writer.is_closing():
            logger.debug(f"Dropping {len(data)} bytes for closed connection {conn_id}")
            return

        buffered = writer.transport.get_write_buffer_size()
        if buffered > self.config.max_buffer_bytes:
            logger.warning(
                f"Connection {conn_id} is {buffered} bytes behind, disconnecting"
            )
            writer.close()
            return

        writer.write(data)

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        conn_id = next(self._ids)
        peer = writer.get_extra_info("peername")
        logger.debug(f"Accepted {peer} as connection {conn_id}")
        self._writers[conn_id] = writer

        try:
            self._listener.on_connected(conn_id)
            await self._read_client(conn_id, reader)
        except (ConnectionError, asyncio.LimitOverrunError) as e:
            self._listener.on_error(conn_id, e)
        finally:
            self._writers.pop(conn_id, None)
            self._listener.on_disconnected(conn_id)
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    async def _read_client(self, conn_id: int, reader: asyncio.StreamReader) -> None:
        """Read the client handshake, then drain until the client hangs up."""
        try:
            data = await reader.readuntil(b"\0")
        except asyncio.IncompleteReadError:
            return

        try:
            hello = parse_client_handshake(data)
            logger.info(f"Connection {conn_id} is client '{hello.client_name}'")
        except HandshakeError as e:
            logger.warning(f"Connection {conn_id} sent an unexpected handshake: {e}")

        # Clients send nothing meaningful after the handshake
        while await reader.read(4096):
            pass
