"""Serial line transport for a directly wired gimbal."""

from __future__ import annotations

import logging
from typing import Optional

import serial

from ..errors import ConfigurationError, LinkIOError, TransportError
from ..settings import BAUDRATE, WRITE_TIMEOUT

_LOGGER = logging.getLogger(__name__)


class SerialTransport:
    """Owns one serial handle at the fixed 115200 8N1 line setting."""

    def __init__(self, port: str) -> None:
        self.port = port
        self.last_error: Optional[TransportError] = None
        self._serial: Optional[serial.Serial] = None

    def __repr__(self) -> str:
        return f"SerialTransport({self.port!r})"

    @property
    def is_open(self) -> bool:
        return bool(self._serial and self._serial.is_open)

    def open(self) -> bool:
        if self.is_open:
            return True
        self.last_error = None
        try:
            # pyserial rejects non-tty paths while reading the termios
            # attributes and releases the descriptor itself.
            ser = serial.Serial(
                self.port,
                BAUDRATE,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                timeout=0,
                write_timeout=WRITE_TIMEOUT,
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            self.last_error = ConfigurationError(
                f"Could not configure serial port {self.port}: {exc}"
            )
            _LOGGER.error("%s", self.last_error)
            self._serial = None
            return False
        self._serial = ser
        _LOGGER.info("Opened serial port %s at %d baud", self.port, BAUDRATE)
        return True

    def close(self) -> None:
        ser, self._serial = self._serial, None
        if ser is None:
            return
        try:
            ser.close()
        except (serial.SerialException, OSError):
            _LOGGER.debug("Failed to close serial port %s", self.port, exc_info=True)

    def write(self, data: bytes) -> int:
        """Write *data* and return the byte count the driver accepted."""
        if not self.is_open:
            return 0
        assert self._serial is not None
        try:
            written = self._serial.write(data)
        except (serial.SerialException, OSError) as exc:
            self.last_error = LinkIOError(f"Write to {self.port} failed: {exc}")
            _LOGGER.error("%s", self.last_error)
            return 0
        return written or 0

    def read(self, size: int = 1) -> bytes:
        if not self.is_open:
            return b""
        assert self._serial is not None
        try:
            return self._serial.read(size)
        except (serial.SerialException, OSError):
            _LOGGER.debug("Read from %s failed", self.port, exc_info=True)
            return b""
