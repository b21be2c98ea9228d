# src/kubexplorer/core/tunnel.py
"""
Port-forward tunnel from a local TCP port to a port of a pod in the cluster.

The tunnel runs as a background asyncio task. `open()` only returns once that
task has verified the port-forward upgrade and is listening locally, and the
task exits (releasing the local port) when `stop()` sets the stop event.

Each accepted local connection gets its own websocket stream on the pod's
`portforward` subresource. On that stream every binary frame starts with a
channel byte, 0 for data and 1 for errors, and the first frame of each
channel only carries the remote port number (2 bytes, little endian).
"""

import asyncio
import contextlib
import inspect
import logging
import socket
from enum import Enum
from typing import Optional, Set

import aiohttp

from .config import config
from .exceptions import ClusterConfigError, TunnelError
from .k8s_client import get_ws_core_v1_api

logger = logging.getLogger(__name__)

DATA_CHANNEL = 0
ERROR_CHANNEL = 1
PORT_HEADER_SIZE = 2
READ_CHUNK_SIZE = 64 * 1024


class TunnelState(str, Enum):
    IDLE = "idle"
    DIALING = "dialing"
    AWAITING_READY = "awaiting_ready"
    READY = "ready"
    FORWARDING = "forwarding"
    CLOSED = "closed"
    FAILED = "failed"


def get_free_port(host: str = "127.0.0.1") -> int:
    """
    Picks an ephemeral port by binding a transient listener and releasing it.

    Raises:
        TunnelError: If no local port can be bound.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, 0))
            return sock.getsockname()[1]
    except OSError as e:
        raise TunnelError(f"Could not bind a local port on {host}: {e}") from e


class _FrameDecoder:
    """Strips the per-channel port header from incoming port-forward frames."""

    def __init__(self):
        self._seen: Set[int] = set()

    def decode(self, frame: bytes):
        """Returns (channel, payload); payload is empty for header-only frames."""
        if not frame:
            return None, b""
        channel, payload = frame[0], frame[1:]
        if channel not in self._seen:
            self._seen.add(channel)
            payload = payload[PORT_HEADER_SIZE:]
        return channel, payload


class PortForwardTunnel:
    """
    Forwards `<host>:<local_port>` to `<remote_port>` of a pod.

    `api` must be a CoreV1Api backed by a websocket-capable client
    (see `get_ws_core_v1_api`).
    """

    def __init__(
        self,
        api,
        pod_name: str,
        namespace: str,
        remote_port: Optional[int] = None,
        local_port: Optional[int] = None,
        host: str = "127.0.0.1",
        ready_timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.api = api
        self.pod_name = pod_name
        self.namespace = namespace
        self.remote_port = remote_port or config.PROMETHEUS_PORT
        self.local_port = local_port
        self.host = host
        self.ready_timeout = ready_timeout if ready_timeout is not None else config.TUNNEL_READY_TIMEOUT
        self.logger = logger or logging.getLogger(__name__)

        self.state = TunnelState.IDLE
        self.ready = asyncio.Event()
        self.stopped = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._connections: Set[asyncio.Task] = set()

    @property
    def local_address(self) -> str:
        """The local URL; only valid once the tunnel is ready."""
        if not self.ready.is_set():
            raise TunnelError("Tunnel is not ready")
        return f"http://{self.host}:{self.local_port}"

    async def __aenter__(self) -> "PortForwardTunnel":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    async def open(self) -> str:
        """
        Starts the forwarding task and blocks until it signals readiness.

        Returns:
            str: The local address, e.g. 'http://127.0.0.1:43127'.

        Raises:
            TunnelError: If the port cannot be bound, the port-forward upgrade
                fails, or readiness is not reached within `ready_timeout`.
        """
        if self.state is not TunnelState.IDLE:
            raise TunnelError(f"Tunnel cannot be opened from state '{self.state.value}'")

        self.state = TunnelState.DIALING
        try:
            if not self.local_port:
                self.local_port = get_free_port(self.host)
        except TunnelError:
            self.state = TunnelState.FAILED
            raise

        self._task = asyncio.create_task(self._forward(), name=f"port-forward-{self.pod_name}")
        waiter = asyncio.create_task(self.ready.wait())
        try:
            await asyncio.wait({waiter, self._task}, timeout=self.ready_timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()

        if self.ready.is_set():
            self.logger.info(
                "Forwarding %s -> %s/%s:%d", self.local_address, self.namespace, self.pod_name, self.remote_port
            )
            return self.local_address

        self.state = TunnelState.FAILED
        if not self._task.done():
            self.stopped.set()
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            raise TunnelError(
                f"Port-forward to {self.namespace}/{self.pod_name} was not ready after {self.ready_timeout}s"
            )

        error = None if self._task.cancelled() else self._task.exception()
        raise TunnelError(f"Port-forward to {self.namespace}/{self.pod_name} failed: {error}") from error

    async def stop(self):
        """Signals the forwarding task to exit and waits for it. Safe to call more than once."""
        self.stopped.set()
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self.logger.error("Port-forward task for %s exited with error: %s", self.pod_name, e)

    async def _dial(self):
        stream = await self.api.connect_get_namespaced_pod_portforward(
            self.pod_name,
            self.namespace,
            ports=str(self.remote_port),
            _preload_content=False,
        )
        # Some kubernetes_asyncio releases hand back the websocket connect still to be awaited.
        if inspect.isawaitable(stream):
            stream = await stream
        return stream

    async def _forward(self):
        self.logger.debug("Dialing port-forward for %s/%s", self.namespace, self.pod_name)
        try:
            first = await self._dial()
            await first.close()

            self.state = TunnelState.AWAITING_READY
            self._server = await asyncio.start_server(self._handle_connection, host=self.host, port=self.local_port)
        except Exception:
            self.state = TunnelState.FAILED
            raise

        try:
            self.state = TunnelState.READY
            self.ready.set()
            await self.stopped.wait()
        finally:
            await self._shutdown()

    async def _shutdown(self):
        self._server.close()
        for task in list(self._connections):
            task.cancel()
        await asyncio.gather(*self._connections, return_exceptions=True)
        await self._server.wait_closed()
        if self.state is not TunnelState.FAILED:
            self.state = TunnelState.CLOSED
        self.logger.info("Port-forward to %s/%s stopped.", self.namespace, self.pod_name)

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        task = asyncio.current_task()
        self._connections.add(task)
        self.state = TunnelState.FORWARDING
        try:
            try:
                stream = await self._dial()
            except Exception as e:
                self.logger.error("Port-forward dial for %s failed: %s", self.pod_name, e)
                return
            try:
                await self._pump(stream, reader, writer)
            finally:
                await stream.close()
        finally:
            writer.close()
            with contextlib.suppress(Exception):
                await writer.wait_closed()
            self._connections.discard(task)

    async def _pump(self, stream, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        upstream = asyncio.create_task(self._local_to_remote(stream, reader))
        downstream = asyncio.create_task(self._remote_to_local(stream, writer))
        try:
            await asyncio.wait({upstream, downstream}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (upstream, downstream):
                task.cancel()
            await asyncio.gather(upstream, downstream, return_exceptions=True)

    @staticmethod
    async def _local_to_remote(stream, reader: asyncio.StreamReader):
        while True:
            data = await reader.read(READ_CHUNK_SIZE)
            if not data:
                return
            await stream.send_bytes(bytes([DATA_CHANNEL]) + data)

    async def _remote_to_local(self, stream, writer: asyncio.StreamWriter):
        decoder = _FrameDecoder()
        async for message in stream:
            if message.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                return
            if message.type is not aiohttp.WSMsgType.BINARY:
                continue
            channel, payload = decoder.decode(message.data)
            if not payload:
                continue
            if channel == ERROR_CHANNEL:
                self.logger.warning("Port-forward error from %s: %s", self.pod_name, payload.decode(errors="replace"))
                return
            writer.write(payload)
            await writer.drain()


async def open_tunnel(
    pod_name: str,
    namespace: str,
    api=None,
    remote_port: Optional[int] = None,
    local_port: Optional[int] = None,
) -> PortForwardTunnel:
    """
    Opens a port-forward tunnel and returns it once it is ready.
    The caller owns the tunnel and must `stop()` it.

    Raises:
        ClusterConfigError: If no Kubernetes client could be configured.
        TunnelError: If the tunnel cannot be established.
    """
    if api is None:
        api = await get_ws_core_v1_api()
        if api is None:
            raise ClusterConfigError("Kubernetes client not configured; cannot open a port-forward tunnel.")

    tunnel = PortForwardTunnel(api, pod_name, namespace, remote_port=remote_port, local_port=local_port)
    await tunnel.open()
    return tunnel
