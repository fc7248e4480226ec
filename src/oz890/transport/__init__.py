"""Transport layer for register-bus communication."""

from oz890.transport.base import (
    FtdiConfig,
    Transport,
    TransportConfig,
    TransportMode,
)
from oz890.transport.ftdi import FtdiTransport

__all__ = [
    "FtdiConfig",
    "FtdiTransport",
    "Transport",
    "TransportConfig",
    "TransportMode",
]
