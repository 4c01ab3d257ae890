"""Tests for the asyncio TCP transport."""

import asyncio
from unittest.mock import MagicMock

import pytest

from tacstream.config import Config, ServerConfig
from tacstream.host import TelemetryHost
from tacstream.sync import banner
from tacstream.transport import TcpTransport

CLIENT_HELLO = b"XtraLib.Stream.0\nTacview.RealTimeTelemetry.0\nTest Client\n0\x00"


async def wait_until(predicate, timeout=2.0):
    """Poll until predicate() is true or fail after timeout."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def config():
    config = Config()
    config.server.host = "127.0.0.1"
    config.server.port = 0
    config.mission.title = "Live"
    return config


class TestTcpTransport:
    """End-to-end tests over a loopback socket."""

    @pytest.mark.asyncio
    async def test_client_session(self, config, clock, make_object):
        """Test a client gets the greeting, then frames, and is dropped on close."""
        host = TelemetryHost(config, lambda: [make_object(0x42)], clock=clock)
        transport = TcpTransport(config.server, host)
        host.attach(transport)
        await transport.start()

        try:
            reader, writer = await asyncio.open_connection("127.0.0.1", transport.port)

            received = await asyncio.wait_for(reader.readuntil(b"\x00"), timeout=2.0)
            assert received == banner("tacstream")

            writer.write(CLIENT_HELLO)
            await writer.drain()

            header = [await reader.readline() for _ in range(12)]
            assert header[0] == b"FileType=text/acmi/tacview\n"
            assert header[2] == b"0,Title=Live\n"
            assert host.connection_count == 1

            assert host.tick() == 1
            frame = await asyncio.wait_for(reader.readline(), timeout=2.0)
            update = await asyncio.wait_for(reader.readline(), timeout=2.0)
            assert frame == b"#0.00\n"
            assert update == b"42,T=10|20|1000,Name=F-16C\n"

            writer.close()
            await writer.wait_closed()
            await wait_until(lambda: host.connection_count == 0)
            assert transport.connection_ids == []
        finally:
            await transport.stop()

    @pytest.mark.asyncio
    async def test_bad_client_handshake_keeps_connection(self, config, clock):
        """Test an unexpected handshake is only logged."""
        host = TelemetryHost(config, list, clock=clock)
        transport = TcpTransport(config.server, host)
        host.attach(transport)
        await transport.start()

        try:
            reader, writer = await asyncio.open_connection("127.0.0.1", transport.port)
            await asyncio.wait_for(reader.readuntil(b"\x00"), timeout=2.0)
            writer.write(b"hello\x00")
            await writer.drain()
            await asyncio.sleep(0.05)

            assert host.connection_count == 1

            writer.close()
            await writer.wait_closed()
            await wait_until(lambda: host.connection_count == 0)
        finally:
            await transport.stop()

    @pytest.mark.asyncio
    async def test_port_reports_bound_port(self, config):
        """Test port 0 resolves to the real listening port."""
        transport = TcpTransport(config.server, MagicMock())
        await transport.start()
        try:
            assert transport.port != 0
        finally:
            await transport.stop()


class TestSend:
    """Tests for send() without real sockets."""

    def test_unknown_connection_is_ignored(self):
        """Test sending to a closed connection does nothing."""
        transport = TcpTransport(ServerConfig(), MagicMock())
        transport.send(5, b"#0.00\n")

    def test_slow_peer_is_dropped(self):
        """Test a peer whose buffer exceeds the limit is closed."""
        transport = TcpTransport(ServerConfig(max_buffer_bytes=100), MagicMock())
        writer = MagicMock()
        writer.is_closing.return_value = False
        writer.transport.get_write_buffer_size.return_value = 101
        transport._writers[1] = writer

        transport.send(1, b"#0.00\n")

        writer.close.assert_called_once()
        writer.write.assert_not_called()

    def test_send_writes(self):
        """Test data is queued on the peer's writer."""
        transport = TcpTransport(ServerConfig(), MagicMock())
        writer = MagicMock()
        writer.is_closing.return_value = False
        writer.transport.get_write_buffer_size.return_value = 0
        transport._writers[1] = writer

        transport.send(1, b"#0.00\n")

        writer.write.assert_called_once_with(b"#0.00\n")
