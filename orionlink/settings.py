"""Fixed link constants and logging setup for orionlink."""

from __future__ import annotations

import logging

CONFIG_FILE = "orionlink.json"
LOG_LEVEL = logging.INFO
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
PACKAGE_LOGGER = "orionlink"

# Shared with the gimbal firmware; not negotiable at runtime.
UDP_IN_PORT = 8746
UDP_OUT_PORT = 8747
TCP_PORT = 8748
BROADCAST_ADDRESS = "255.255.255.255"

PROBE_ATTEMPTS = 50
READ_TIMEOUT = 0.1
WRITE_TIMEOUT = 0.5
BAUDRATE = 115200

# Any packet elicits a discovery reply; a version request is the usual choice.
VERSION_REQUEST_ID = 0x45


def configure_logging(
    *, level: int = LOG_LEVEL, fmt: str = LOG_FORMAT, force: bool = False
) -> logging.Logger:
    """Give the ``orionlink`` logger its own stream handler and level.

    The host application's root logger is left alone. A logger that already
    has handlers is only rebuilt when *force* is set.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    if logger.handlers and not force:
        return logger

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
