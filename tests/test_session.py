import unittest
from typing import Optional

from orionlink.config import LinkConfig
from orionlink.errors import ConfigurationError, LinkIOError
from orionlink.framing import OrionFrameAssembler, Packet, ParseState
from orionlink.session import CommSession


class FakeTransport:
    """In-memory byte pipe standing in for a serial port or TCP stream."""

    def __init__(
        self,
        stream: bytes = b"",
        *,
        open_ok: bool = True,
        accept: Optional[int] = None,
    ) -> None:
        self.incoming = bytearray(stream)
        self.written = bytearray()
        self.open_ok = open_ok
        self.accept = accept
        self.last_error = None
        self.open_calls = 0
        self.close_calls = 0
        self.reads = 0
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> bool:
        self.open_calls += 1
        if not self.open_ok:
            self.last_error = ConfigurationError("not a serial device")
            return False
        self._open = True
        return True

    def close(self) -> None:
        self.close_calls += 1
        self._open = False

    def write(self, data: bytes) -> int:
        count = len(data) if self.accept is None else min(self.accept, len(data))
        self.written += data[:count]
        return count

    def read(self, size: int = 1) -> bytes:
        self.reads += 1
        chunk = bytes(self.incoming[:size])
        del self.incoming[:size]
        return chunk


def _session_with(transport: FakeTransport) -> CommSession:
    paths = []

    def serial_factory(path: str) -> FakeTransport:
        paths.append(path)
        return transport

    session = CommSession(serial_factory=serial_factory)
    session.opened_paths = paths
    return session


def _sum16(body: bytes) -> int:
    return sum(body) & 0xFFFF


class CommSessionTests(unittest.TestCase):
    def test_send_and_receive_fail_without_handle(self) -> None:
        session = CommSession()
        self.assertFalse(session.is_open)
        self.assertFalse(session.send(Packet(1, b"x")))
        self.assertIsNone(session.receive())

    def test_open_serial_passes_path_to_transport(self) -> None:
        transport = FakeTransport()
        session = _session_with(transport)

        self.assertTrue(session.open_serial("/dev/ttyUSB0"))
        self.assertEqual(session.opened_paths, ["/dev/ttyUSB0"])
        self.assertIs(session.transport, transport)
        self.assertTrue(session.is_open)

    def test_failed_open_leaves_no_active_transport(self) -> None:
        transport = FakeTransport(open_ok=False)
        session = _session_with(transport)

        self.assertFalse(session.open_serial("/tmp/file"))
        self.assertFalse(session.is_open)
        self.assertIsNone(session.transport)
        self.assertIsInstance(session.last_error, ConfigurationError)
        self.assertEqual(transport.close_calls, 1)

    def test_empty_serial_path_is_rejected(self) -> None:
        session = CommSession()
        with self.assertLogs("orionlink.session", level="ERROR"):
            self.assertFalse(session.open_serial(""))
        self.assertIsInstance(session.last_error, ConfigurationError)

    def test_send_writes_whole_packet(self) -> None:
        transport = FakeTransport()
        session = _session_with(transport)
        session.open_serial("/dev/ttyUSB0")
        packet = Packet(0x10, b"\x01\x02")

        self.assertTrue(session.send(packet))
        self.assertEqual(bytes(transport.written), packet.to_bytes())

    def test_send_accepts_raw_bytes(self) -> None:
        transport = FakeTransport()
        session = _session_with(transport)
        session.open_serial("/dev/ttyUSB0")

        self.assertTrue(session.send(b"\xd0\x0d\x01\x00\x00\x00"))
        self.assertEqual(bytes(transport.written), b"\xd0\x0d\x01\x00\x00\x00")

    def test_send_applies_session_checksum(self) -> None:
        transport = FakeTransport()
        session = CommSession(checksum=_sum16, serial_factory=lambda path: transport)
        session.open_serial("/dev/ttyUSB0")

        self.assertTrue(session.send(Packet(0x10, b"\x01\x02")))

        self.assertEqual(
            bytes(transport.written), b"\xd0\x0d\x10\x02\x01\x02\x00\xf2"
        )
        state = ParseState()
        decoded = []
        for byte in transport.written:
            result = session.assembler.feed(state, byte)
            state = result.state
            decoded.extend(result.packets)
        self.assertEqual(decoded, [Packet(0x10, b"\x01\x02")])

    def test_send_uses_checksum_of_given_assembler(self) -> None:
        transport = FakeTransport()
        assembler = OrionFrameAssembler(checksum=_sum16)
        session = CommSession(assembler, serial_factory=lambda path: transport)
        session.open_serial("/dev/ttyUSB0")

        self.assertIs(session.checksum, _sum16)
        self.assertTrue(session.send(Packet(0x10, b"\x01\x02")))
        self.assertEqual(bytes(transport.written[-2:]), b"\x00\xf2")

        transport.incoming += transport.written
        self.assertEqual(session.receive(), Packet(0x10, b"\x01\x02"))

    def test_short_write_is_a_failure(self) -> None:
        transport = FakeTransport(accept=3)
        session = _session_with(transport)
        session.open_serial("/dev/ttyUSB0")

        with self.assertLogs("orionlink.session", level="ERROR"):
            self.assertFalse(session.send(Packet(0x10, b"payload")))
        self.assertIsInstance(session.last_error, LinkIOError)

    def test_rejected_write_is_a_failure(self) -> None:
        transport = FakeTransport(accept=0)
        session = _session_with(transport)
        session.open_serial("/dev/ttyUSB0")

        self.assertFalse(session.send(Packet(0x10)))

    def test_receive_returns_none_when_no_bytes_waiting(self) -> None:
        transport = FakeTransport()
        session = _session_with(transport)
        session.open_serial("/dev/ttyUSB0")

        self.assertIsNone(session.receive())
        self.assertEqual(transport.reads, 1)

    def test_receive_yields_each_packet_then_completes_trailing_partial(self) -> None:
        packets = [Packet(1, b"a"), Packet(2, b""), Packet(3, b"xyz")]
        tail = Packet(4, b"late")
        tail_bytes = tail.to_bytes()
        stream = b"".join(p.to_bytes() for p in packets) + tail_bytes[:5]
        transport = FakeTransport(stream)
        session = _session_with(transport)
        session.open_serial("/dev/ttyUSB0")

        received = [session.receive() for _ in packets]
        self.assertEqual(received, packets)
        self.assertIsNone(session.receive())
        self.assertIsNone(session.receive())

        transport.incoming += tail_bytes[5:]
        self.assertEqual(session.receive(), tail)
        self.assertIsNone(session.receive())

    def test_receive_stops_reading_after_first_packet(self) -> None:
        first = Packet(1, b"a").to_bytes()
        second = Packet(2, b"b").to_bytes()
        transport = FakeTransport(first + second)
        session = _session_with(transport)
        session.open_serial("/dev/ttyUSB0")

        self.assertEqual(session.receive(), Packet(1, b"a"))
        self.assertEqual(bytes(transport.incoming), second)

    def test_packets_recovered_together_are_returned_one_per_call(self) -> None:
        stray = b"\xd0\x0d\x01\x10"
        body = Packet(1).to_bytes(_sum16) + Packet(2).to_bytes(_sum16)
        transport = FakeTransport(stray + body + bytes(6))
        session = CommSession(checksum=_sum16, serial_factory=lambda path: transport)
        session.open_serial("/dev/ttyUSB0")

        with self.assertLogs("orionlink.framing", level="DEBUG"):
            self.assertEqual(session.receive(), Packet(1))
        reads = transport.reads
        self.assertEqual(session.receive(), Packet(2))
        self.assertEqual(transport.reads, reads)
        self.assertIsNone(session.receive())

    def test_close_twice_is_safe_and_disables_io(self) -> None:
        transport = FakeTransport(Packet(1).to_bytes())
        session = _session_with(transport)
        session.open_serial("/dev/ttyUSB0")

        session.close()
        session.close()

        self.assertEqual(transport.close_calls, 1)
        self.assertFalse(session.send(Packet(1)))
        self.assertIsNone(session.receive())

    def test_close_discards_partial_packet(self) -> None:
        wire = Packet(7, b"abc").to_bytes()
        first = FakeTransport(wire[:4])
        second = FakeTransport(wire[4:] + Packet(8).to_bytes())
        transports = iter([first, second])
        session = CommSession(serial_factory=lambda path: next(transports))

        session.open_serial("/dev/ttyUSB0")
        self.assertIsNone(session.receive())
        session.open_serial("/dev/ttyUSB0")

        self.assertEqual(session.receive(), Packet(8))

    def test_opening_again_replaces_previous_transport(self) -> None:
        serial_transport = FakeTransport()
        network_transport = FakeTransport()
        session = CommSession(
            serial_factory=lambda path: serial_transport,
            network_factory=lambda: network_transport,
        )

        self.assertTrue(session.open_serial("/dev/ttyUSB0"))
        self.assertTrue(session.open_network())

        self.assertFalse(serial_transport.is_open)
        self.assertIs(session.transport, network_transport)

    def test_open_dispatches_on_config_mode(self) -> None:
        serial_transport = FakeTransport()
        network_transport = FakeTransport()
        session = CommSession(
            serial_factory=lambda path: serial_transport,
            network_factory=lambda: network_transport,
        )

        self.assertTrue(session.open(LinkConfig(mode="network")))
        self.assertIs(session.transport, network_transport)
        self.assertTrue(session.open(LinkConfig(mode="serial", serial_port="COM3")))
        self.assertIs(session.transport, serial_transport)

    def test_open_rejects_unknown_mode(self) -> None:
        session = CommSession()
        with self.assertLogs("orionlink.session", level="ERROR"):
            self.assertFalse(session.open(LinkConfig(mode="bluetooth")))
        self.assertIsInstance(session.last_error, ConfigurationError)

    def test_context_manager_closes_transport(self) -> None:
        transport = FakeTransport()
        with _session_with(transport) as session:
            session.open_serial("/dev/ttyUSB0")
            self.assertTrue(transport.is_open)
        self.assertFalse(transport.is_open)
        self.assertFalse(session.is_open)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
