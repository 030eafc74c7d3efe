"""Packet layout and byte-wise frame assembly for the gimbal stream."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional, Protocol, Tuple

SYNC1 = 0xD0
SYNC2 = 0x0D
HEADER_SIZE = 4
CHECKSUM_SIZE = 2
PACKET_OVERHEAD = HEADER_SIZE + CHECKSUM_SIZE
MAX_PAYLOAD = 0xFF

ChecksumFunc = Callable[[bytes], int]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Packet:
    """One framed record: id byte, length byte, payload and 16-bit checksum."""

    packet_id: int
    payload: bytes = b""

    def __post_init__(self) -> None:
        if not 0 <= self.packet_id <= 0xFF:
            raise ValueError(f"Packet id {self.packet_id} does not fit in a byte")
        if len(self.payload) > MAX_PAYLOAD:
            raise ValueError(
                f"Payload of {len(self.payload)} bytes exceeds {MAX_PAYLOAD}"
            )

    @property
    def wire_size(self) -> int:
        return len(self.payload) + PACKET_OVERHEAD

    def to_bytes(self, checksum: Optional[ChecksumFunc] = None) -> bytes:
        """Serialize the packet; the checksum field is zero without *checksum*."""
        body = bytes((SYNC1, SYNC2, self.packet_id, len(self.payload))) + self.payload
        value = checksum(body) & 0xFFFF if checksum else 0
        return body + value.to_bytes(CHECKSUM_SIZE, "big")


@dataclass(frozen=True)
class ParseState:
    """Bytes gathered so far for the frame in progress."""

    buffer: bytes = b""

    @property
    def expected_size(self) -> Optional[int]:
        if len(self.buffer) < HEADER_SIZE:
            return None
        return self.buffer[3] + PACKET_OVERHEAD


class FeedResult(NamedTuple):
    state: ParseState
    packets: Tuple[Packet, ...] = ()

    @property
    def packet(self) -> Optional[Packet]:
        return self.packets[0] if self.packets else None


class FrameAssembler(Protocol):
    """Turns a byte stream into packets one byte at a time.

    Implementations must be deterministic and must recover from corrupt input
    on their own; the caller only ever keeps the latest returned state. A
    single byte may complete more than one packet when a rejected frame is
    rescanned.
    """

    def feed(self, state: ParseState, byte: int) -> FeedResult:
        ...


class OrionFrameAssembler:
    """Sync-hunting assembler for ``D0 0D id len payload crc`` frames.

    The checksum algorithm is supplied by the protocol layer. Without one,
    the trailer is accepted as-is. A frame whose checksum does not match is
    rescanned from its next sync byte, so a genuine frame hidden behind a
    stray sync pair is still recovered.
    """

    def __init__(self, checksum: Optional[ChecksumFunc] = None) -> None:
        self.checksum = checksum

    def feed(self, state: ParseState, byte: int) -> FeedResult:
        buffer = state.buffer
        index = len(buffer)

        if index == 0:
            if byte == SYNC1:
                return FeedResult(ParseState(bytes((byte,))))
            return FeedResult(ParseState())
        if index == 1:
            if byte == SYNC2:
                return FeedResult(ParseState(buffer + bytes((byte,))))
            # A repeated first sync byte may still start a frame.
            if byte == SYNC1:
                return FeedResult(ParseState(bytes((byte,))))
            return FeedResult(ParseState())

        buffer += bytes((byte,))
        expected = ParseState(buffer).expected_size
        if expected is None or len(buffer) < expected:
            return FeedResult(ParseState(buffer))

        packet = self._finish(buffer)
        if packet is not None:
            return FeedResult(ParseState(), (packet,))
        return self._rescan(buffer)

    def _finish(self, frame: bytes) -> Optional[Packet]:
        body, trailer = frame[:-CHECKSUM_SIZE], frame[-CHECKSUM_SIZE:]
        if self.checksum is not None:
            received = int.from_bytes(trailer, "big")
            computed = self.checksum(body) & 0xFFFF
            if received != computed:
                _LOGGER.debug(
                    "Dropping frame id 0x%02X: checksum 0x%04X != 0x%04X",
                    body[2],
                    received,
                    computed,
                )
                return None
        return Packet(body[2], bytes(body[HEADER_SIZE:]))

    def _rescan(self, frame: bytes) -> FeedResult:
        start = frame.find(bytes((SYNC1,)), 1)
        if start < 0:
            return FeedResult(ParseState())
        state = ParseState()
        packets: List[Packet] = []
        for byte in frame[start:]:
            result = self.feed(state, byte)
            state = result.state
            packets.extend(result.packets)
        return FeedResult(state, tuple(packets))
