"""Serial and network transports for the gimbal link."""

from .network_link import DiscoveryState, NetworkTransport, RemoteEndpoint, build_probe
from .serial_link import SerialTransport

__all__ = [
    "DiscoveryState",
    "NetworkTransport",
    "RemoteEndpoint",
    "SerialTransport",
    "build_probe",
]
