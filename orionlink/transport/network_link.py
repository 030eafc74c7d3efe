"""UDP broadcast discovery followed by a TCP stream to the gimbal."""

from __future__ import annotations

import enum
import logging
import socket
from dataclasses import dataclass
from typing import Callable, Optional

from ..errors import ConnectError, DiscoveryTimeout, LinkIOError, TransportError
from ..framing import Packet
from ..settings import (
    BROADCAST_ADDRESS,
    PROBE_ATTEMPTS,
    READ_TIMEOUT,
    TCP_PORT,
    UDP_IN_PORT,
    UDP_OUT_PORT,
    VERSION_REQUEST_ID,
)

_LOGGER = logging.getLogger(__name__)
_REPLY_BUFFER = 64


class DiscoveryState(enum.Enum):
    IDLE = "idle"
    PROBING = "probing"
    DISCOVERED = "discovered"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass(frozen=True)
class RemoteEndpoint:
    host: str
    port: int

    def as_address(self) -> tuple[str, int]:
        return (self.host, self.port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def build_probe() -> bytes:
    """Return a fresh discovery probe; the gimbal answers any packet."""
    return Packet(VERSION_REQUEST_ID).to_bytes()


def _set_option(sock: socket.socket, name: str, apply: Callable[[], None]) -> None:
    try:
        apply()
    except OSError as exc:
        _LOGGER.warning("Unable to set %s on %s: %s", name, sock, exc)


class NetworkTransport:
    """Finds the gimbal by broadcast and keeps one TCP stream open to it."""

    def __init__(self) -> None:
        self.state = DiscoveryState.IDLE
        self.endpoint: Optional[RemoteEndpoint] = None
        self.probe_count = 0
        self.last_error: Optional[TransportError] = None
        self._sock: Optional[socket.socket] = None
        self._peer_closed = False

    def __repr__(self) -> str:
        return f"NetworkTransport(state={self.state.value}, endpoint={self.endpoint})"

    @property
    def is_open(self) -> bool:
        return self._sock is not None and self.state is DiscoveryState.CONNECTED

    def open(self) -> bool:
        if self.is_open:
            return True
        self.close()
        self.last_error = None
        udp = self._open_probe_socket()
        if udp is None:
            return False
        try:
            endpoint = self._probe(udp)
            if endpoint is None:
                return False
            return self._connect(endpoint)
        finally:
            udp.close()

    def discover(self) -> Optional[RemoteEndpoint]:
        """Run only the broadcast exchange and return the responder, if any.

        A connected transport keeps its stream and reports its current peer.
        """
        if self.is_open:
            return self.endpoint
        self.last_error = None
        udp = self._open_probe_socket()
        if udp is None:
            return None
        try:
            return self._probe(udp)
        finally:
            udp.close()

    def _open_probe_socket(self) -> Optional[socket.socket]:
        self.state = DiscoveryState.PROBING
        self.probe_count = 0
        self.endpoint = None
        udp = None
        try:
            udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            udp.bind(("", UDP_IN_PORT))
        except OSError as exc:
            if udp is not None:
                udp.close()
            self.state = DiscoveryState.FAILED
            self.last_error = ConnectError(
                f"Could not bind discovery socket to port {UDP_IN_PORT}: {exc}"
            )
            _LOGGER.error("%s", self.last_error)
            return None
        _set_option(udp, "UDP receive timeout", lambda: udp.settimeout(READ_TIMEOUT))
        _set_option(
            udp,
            "SO_BROADCAST",
            lambda: udp.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1),
        )
        return udp

    def _probe(self, udp: socket.socket) -> Optional[RemoteEndpoint]:
        probe = build_probe()
        target = (BROADCAST_ADDRESS, UDP_OUT_PORT)
        while self.probe_count < PROBE_ATTEMPTS:
            self.probe_count += 1
            try:
                udp.sendto(probe, target)
            except OSError as exc:
                _LOGGER.debug("Probe %d send failed: %s", self.probe_count, exc)
            try:
                data, address = udp.recvfrom(_REPLY_BUFFER)
            except OSError:
                # socket.timeout is an OSError; nothing arrived this round.
                continue
            if data:
                self.state = DiscoveryState.DISCOVERED
                self.endpoint = RemoteEndpoint(address[0], TCP_PORT)
                _LOGGER.debug(
                    "Gimbal at %s answered probe %d", address[0], self.probe_count
                )
                return self.endpoint

        self.state = DiscoveryState.FAILED
        self.last_error = DiscoveryTimeout(
            f"No gimbal answered {self.probe_count} broadcast probes"
        )
        _LOGGER.error("%s", self.last_error)
        return None

    def _connect(self, endpoint: RemoteEndpoint) -> bool:
        tcp = None
        try:
            tcp = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            # The local port is fixed, so a quick reconnect must not trip
            # over the previous stream's TIME_WAIT.
            tcp.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            tcp.bind(("", TCP_PORT))
            tcp.connect(endpoint.as_address())
        except OSError as exc:
            if tcp is not None:
                tcp.close()
            self.state = DiscoveryState.FAILED
            self.last_error = ConnectError(f"Could not connect to {endpoint}: {exc}")
            _LOGGER.error("%s", self.last_error)
            return False
        _set_option(tcp, "TCP receive timeout", lambda: tcp.settimeout(READ_TIMEOUT))
        self._sock = tcp
        self._peer_closed = False
        self.state = DiscoveryState.CONNECTED
        _LOGGER.info("Connected to %s", endpoint)
        return True

    def close(self) -> None:
        sock, self._sock = self._sock, None
        self.state = DiscoveryState.IDLE
        if sock is None:
            return
        try:
            sock.close()
        except OSError:
            _LOGGER.debug("Failed to close TCP socket", exc_info=True)

    def write(self, data: bytes) -> int:
        if not self.is_open:
            return 0
        assert self._sock is not None
        try:
            self._sock.sendall(data)
        except OSError as exc:
            self.last_error = LinkIOError(f"Write to {self.endpoint} failed: {exc}")
            _LOGGER.error("%s", self.last_error)
            return 0
        return len(data)

    def read(self, size: int = 1) -> bytes:
        if not self.is_open:
            return b""
        assert self._sock is not None
        try:
            data = self._sock.recv(size)
        except OSError:
            return b""
        if not data and not self._peer_closed:
            self._peer_closed = True
            _LOGGER.info("Gimbal at %s closed the stream", self.endpoint)
        return data
