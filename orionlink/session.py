"""Caller-owned session exposing one uniform surface over either transport."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Optional, Protocol, Union

from .config import LinkConfig
from .errors import ConfigurationError, LinkIOError, TransportError
from .framing import (
    ChecksumFunc,
    FrameAssembler,
    OrionFrameAssembler,
    Packet,
    ParseState,
)
from .transport import NetworkTransport, SerialTransport

_LOGGER = logging.getLogger(__name__)


class Transport(Protocol):
    last_error: Optional[TransportError]

    @property
    def is_open(self) -> bool:
        ...

    def open(self) -> bool:
        ...

    def close(self) -> None:
        ...

    def write(self, data: bytes) -> int:
        ...

    def read(self, size: int = 1) -> bytes:
        ...


SerialFactory = Callable[[str], Transport]
NetworkFactory = Callable[[], Transport]


class CommSession:
    """Holds at most one open transport and the parse state of its stream.

    Sessions are not thread-safe; callers sharing one across threads must
    serialize ``send``/``receive``/``close`` themselves.
    """

    def __init__(
        self,
        assembler: Optional[FrameAssembler] = None,
        *,
        checksum: Optional[ChecksumFunc] = None,
        serial_factory: SerialFactory = SerialTransport,
        network_factory: NetworkFactory = NetworkTransport,
    ) -> None:
        if checksum is None:
            checksum = getattr(assembler, "checksum", None)
        self.checksum = checksum
        self.assembler = assembler or OrionFrameAssembler(checksum)
        self._serial_factory = serial_factory
        self._network_factory = network_factory
        self._transport: Optional[Transport] = None
        self._parse_state = ParseState()
        self._pending: deque[Packet] = deque()
        self._last_error: Optional[TransportError] = None

    def __enter__(self) -> "CommSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._transport is not None and self._transport.is_open

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    @property
    def last_error(self) -> Optional[TransportError]:
        if self._transport is not None and self._transport.last_error is not None:
            return self._transport.last_error
        return self._last_error

    def open(self, config: LinkConfig) -> bool:
        """Open whichever transport *config* selects."""

        if config.mode == "serial":
            return self.open_serial(config.serial_port)
        if config.mode == "network":
            return self.open_network()
        self.close()
        self._last_error = ConfigurationError(f"Unknown link mode {config.mode!r}")
        _LOGGER.error("%s", self._last_error)
        return False

    def open_serial(self, path: str) -> bool:
        if not path:
            self.close()
            self._last_error = ConfigurationError("No serial port given")
            _LOGGER.error("%s", self._last_error)
            return False
        return self._activate(self._serial_factory(path))

    def open_network(self) -> bool:
        return self._activate(self._network_factory())

    def _activate(self, transport: Transport) -> bool:
        self.close()
        if not transport.open():
            self._last_error = transport.last_error
            transport.close()
            return False
        self._transport = transport
        return True

    def close(self) -> None:
        transport, self._transport = self._transport, None
        self._parse_state = ParseState()
        self._pending.clear()
        self._last_error = None
        if transport is not None:
            transport.close()

    def send(self, packet: Union[Packet, bytes]) -> bool:
        """Write *packet* and report whether every byte was accepted."""

        if not self.is_open:
            return False
        assert self._transport is not None
        if isinstance(packet, Packet):
            data = packet.to_bytes(self.checksum)
        else:
            data = bytes(packet)
        written = self._transport.write(data)
        if written != len(data):
            if written:
                self._transport.last_error = LinkIOError(
                    f"Short write: {written} of {len(data)} bytes"
                )
                _LOGGER.error("%s", self._transport.last_error)
            return False
        return True

    def receive(self) -> Optional[Packet]:
        """Return the next complete packet, or ``None`` once the stream runs dry.

        Bytes of an unfinished packet stay in the parse state for the next call.
        """

        if not self.is_open:
            return None
        assert self._transport is not None
        if self._pending:
            return self._pending.popleft()
        while True:
            data = self._transport.read(1)
            if not data:
                return None
            result = self.assembler.feed(self._parse_state, data[0])
            self._parse_state = result.state
            if result.packets:
                self._pending.extend(result.packets[1:])
                return result.packets[0]
