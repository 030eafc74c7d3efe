"""Error taxonomy recorded by transports and sessions.

None of these are raised out of the public API: operations report failure
through their return value and keep the reason on ``last_error``.
"""

from __future__ import annotations


class TransportError(Exception):
    """Base class for every recorded link failure."""


class ConfigurationError(TransportError):
    """The serial device could not be opened or configured."""


class DiscoveryTimeout(TransportError):
    """No gimbal answered the broadcast probes."""


class ConnectError(TransportError):
    """A socket could not be bound or the TCP stream could not connect."""


class LinkIOError(TransportError):
    """A write on an established handle failed."""
