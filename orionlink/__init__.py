"""orionlink: serial and network byte transport for Orion gimbals."""

from __future__ import annotations

from .config import LinkConfig, load_config, save_config
from .errors import (
    ConfigurationError,
    ConnectError,
    DiscoveryTimeout,
    LinkIOError,
    TransportError,
)
from .framing import (
    ChecksumFunc,
    FeedResult,
    FrameAssembler,
    OrionFrameAssembler,
    Packet,
    ParseState,
)
from .session import CommSession

__all__ = [
    "ChecksumFunc",
    "CommSession",
    "ConfigurationError",
    "ConnectError",
    "DiscoveryTimeout",
    "FeedResult",
    "FrameAssembler",
    "LinkConfig",
    "LinkIOError",
    "OrionFrameAssembler",
    "Packet",
    "ParseState",
    "TransportError",
    "load_config",
    "save_config",
]
