# tests/core/test_tunnel.py
"""
Tests for the port-forward tunnel, using an in-memory stand-in for the
Kubernetes port-forward websocket that echoes data frames back.
"""

import asyncio
import socket
from unittest.mock import AsyncMock
from urllib.parse import urlsplit

import aiohttp
import pytest

from kubexplorer.core.exceptions import ClusterConfigError, TunnelError
from kubexplorer.core.tunnel import (
    DATA_CHANNEL,
    ERROR_CHANNEL,
    PortForwardTunnel,
    TunnelState,
    _FrameDecoder,
    get_free_port,
    open_tunnel,
)


def _binary(data: bytes) -> aiohttp.WSMessage:
    return aiohttp.WSMessage(aiohttp.WSMsgType.BINARY, data, None)


class EchoStream:
    """Mimics the websocket returned by connect_get_namespaced_pod_portforward."""

    def __init__(self, port: int):
        self.sent = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()
        header = port.to_bytes(2, "little")
        self._incoming.put_nowait(_binary(bytes([DATA_CHANNEL]) + header))
        self._incoming.put_nowait(_binary(bytes([ERROR_CHANNEL]) + header))

    async def send_bytes(self, data: bytes):
        self.sent.append(data)
        if data[0] == DATA_CHANNEL:
            await self._incoming.put(_binary(data))

    async def close(self):
        self.closed = True
        await self._incoming.put(aiohttp.WSMessage(aiohttp.WSMsgType.CLOSE, None, None))

    def __aiter__(self):
        return self

    async def __anext__(self):
        message = await self._incoming.get()
        if message.type == aiohttp.WSMsgType.CLOSE:
            raise StopAsyncIteration
        return message


class FakePortForwardApi:
    def __init__(self, error=None, gate=None):
        self.error = error
        self.gate = gate
        self.calls = []
        self.streams = []

    async def connect_get_namespaced_pod_portforward(self, name, namespace, ports=None, _preload_content=True):
        self.calls.append((name, namespace, ports, _preload_content))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        stream = EchoStream(int(ports))
        self.streams.append(stream)
        return stream


def test_get_free_port():
    port = get_free_port()
    assert 0 < port < 65536


def test_frame_decoder_strips_first_header_per_channel():
    decoder = _FrameDecoder()
    assert decoder.decode(b"\x00\x82\x23") == (0, b"")
    assert decoder.decode(b"\x00hello") == (0, b"hello")
    assert decoder.decode(b"\x01\x82\x23oops") == (1, b"oops")
    assert decoder.decode(b"") == (None, b"")


@pytest.mark.asyncio
async def test_open_returns_local_address_once_ready():
    api = FakePortForwardApi()
    tunnel = PortForwardTunnel(api, "prometheus-0", "monitoring", remote_port=9090)

    address = await tunnel.open()
    try:
        assert address == f"http://127.0.0.1:{tunnel.local_port}"
        assert tunnel.ready.is_set()
        assert tunnel.state is TunnelState.READY
        assert api.calls[0] == ("prometheus-0", "monitoring", "9090", False)
        assert api.streams[0].closed
    finally:
        await tunnel.stop()


@pytest.mark.asyncio
async def test_open_blocks_until_port_forward_is_established():
    gate = asyncio.Event()
    tunnel = PortForwardTunnel(FakePortForwardApi(gate=gate), "prometheus-0", "monitoring")

    opening = asyncio.create_task(tunnel.open())
    await asyncio.sleep(0.05)
    assert not opening.done()
    assert not tunnel.ready.is_set()
    assert tunnel.state is TunnelState.DIALING
    with pytest.raises(TunnelError):
        tunnel.local_address

    gate.set()
    address = await asyncio.wait_for(opening, timeout=2)
    assert address == tunnel.local_address
    await tunnel.stop()


@pytest.mark.asyncio
async def test_tunnel_forwards_bytes_both_ways():
    api = FakePortForwardApi()
    async with PortForwardTunnel(api, "prometheus-0", "monitoring") as tunnel:
        reader, writer = await asyncio.open_connection("127.0.0.1", tunnel.local_port)
        writer.write(b"GET /-/ready")
        await writer.drain()

        echoed = await asyncio.wait_for(reader.readexactly(12), timeout=2)
        assert echoed == b"GET /-/ready"
        assert tunnel.state is TunnelState.FORWARDING
        assert api.streams[1].sent == [b"\x00GET /-/ready"]

        writer.close()
        await writer.wait_closed()

    assert tunnel.state is TunnelState.CLOSED


@pytest.mark.asyncio
async def test_local_address_names_the_bound_host():
    api = FakePortForwardApi()
    async with PortForwardTunnel(api, "prometheus-0", "monitoring", host="127.0.0.1") as tunnel:
        url = urlsplit(tunnel.local_address)
        assert url.hostname == tunnel.host
        assert url.port == tunnel.local_port

        reader, writer = await asyncio.open_connection(url.hostname, url.port)
        writer.write(b"ping")
        await writer.drain()
        assert await asyncio.wait_for(reader.readexactly(4), timeout=2) == b"ping"
        writer.close()
        await writer.wait_closed()


@pytest.mark.asyncio
async def test_dial_failure_raises_tunnel_error():
    tunnel = PortForwardTunnel(FakePortForwardApi(error=RuntimeError("forbidden")), "prometheus-0", "monitoring")

    with pytest.raises(TunnelError, match="forbidden"):
        await tunnel.open()

    assert tunnel.state is TunnelState.FAILED
    assert not tunnel.ready.is_set()
    await tunnel.stop()


@pytest.mark.asyncio
async def test_readiness_timeout_raises_tunnel_error():
    tunnel = PortForwardTunnel(
        FakePortForwardApi(gate=asyncio.Event()), "prometheus-0", "monitoring", ready_timeout=0.05
    )

    with pytest.raises(TunnelError, match="not ready"):
        await tunnel.open()

    assert tunnel.state is TunnelState.FAILED
    await tunnel.stop()


@pytest.mark.asyncio
async def test_stop_releases_local_port_and_is_idempotent():
    tunnel = PortForwardTunnel(FakePortForwardApi(), "prometheus-0", "monitoring")
    await tunnel.open()
    port = tunnel.local_port

    await tunnel.stop()
    await tunnel.stop()

    assert tunnel.state is TunnelState.CLOSED
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", port))


@pytest.mark.asyncio
async def test_tunnel_cannot_be_reopened():
    tunnel = PortForwardTunnel(FakePortForwardApi(), "prometheus-0", "monitoring")
    await tunnel.open()
    try:
        with pytest.raises(TunnelError):
            await tunnel.open()
    finally:
        await tunnel.stop()


@pytest.mark.asyncio
async def test_open_tunnel_without_cluster_config(mocker):
    mocker.patch("kubexplorer.core.tunnel.get_ws_core_v1_api", new=AsyncMock(return_value=None))

    with pytest.raises(ClusterConfigError):
        await open_tunnel("prometheus-0", "monitoring")


@pytest.mark.asyncio
async def test_open_tunnel_with_api():
    tunnel = await open_tunnel("prometheus-0", "monitoring", api=FakePortForwardApi(), remote_port=9091)
    try:
        assert tunnel.ready.is_set()
        assert tunnel.remote_port == 9091
    finally:
        await tunnel.stop()
