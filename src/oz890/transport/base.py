"""Abstract byte-level register-bus transport."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum


class TransportMode(StrEnum):
    """Available transport modes."""
    FTDI_MPSSE = "ftdi_mpsse"


@dataclass(frozen=True)
class TransportConfig:
    """Base transport configuration."""
    mode: TransportMode


@dataclass(frozen=True)
class FtdiConfig(TransportConfig):
    """FTDI MPSSE (USB) I2C master configuration."""
    mode: TransportMode = field(default=TransportMode.FTDI_MPSSE, init=False)
    url: str = "ftdi://ftdi:232h/1"
    frequency: float = 400_000.0


class Transport(ABC):
    """Abstract base for bus transports.

    Exposes the bus primitives a register transaction is framed from:
    start/stop conditions, raw byte writes, the acknowledgement of the
    last written byte, byte reads, and NACK termination of a read.
    """

    def __init__(self, config: TransportConfig) -> None:
        self._config = config
        self._connected = False

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        return self._connected

    @abstractmethod
    def connect(self) -> None:
        """Open the bus adapter.

        Raises:
            TransportUnavailable: If the adapter cannot be opened.
        """

    @abstractmethod
    def disconnect(self) -> None:
        """Release the bus adapter."""

    @abstractmethod
    def start(self) -> None:
        """Issue a start (or repeated start) condition."""

    @abstractmethod
    def stop(self) -> None:
        """Issue a stop condition."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Clock out *data* onto the bus."""

    @abstractmethod
    def get_ack(self) -> bool:
        """Return True if the last written byte was acknowledged."""

    @abstractmethod
    def read(self, count: int) -> bytes:
        """Clock in *count* bytes."""

    @abstractmethod
    def send_nack(self) -> None:
        """Answer the next byte read with a NACK."""

    def __enter__(self) -> Transport:
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.disconnect()
