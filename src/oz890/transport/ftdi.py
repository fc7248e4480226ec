"""FTDI MPSSE I2C transport implemented with pyftdi."""

from __future__ import annotations

from oz890.exceptions import TransportError, TransportUnavailable
from oz890.transport.base import FtdiConfig, Transport
from oz890.utils.logging import get_logger

logger = get_logger(__name__)


class FtdiTransport(Transport):
    """Transport over an FTDI MPSSE adapter (FT232H, FT2232H, ...).

    pyftdi's I2cController frames whole transactions, so the primitives
    are mapped onto it: the first byte written after start() is the
    address byte and is sent with ``poll()``, later bytes are sent without
    a new start, and reads always terminate their final byte with a NACK.
    """

    def __init__(self, config: FtdiConfig | None = None) -> None:
        super().__init__(config or FtdiConfig())
        self._controller = None
        self._addressing = False
        self._ack = False

    def connect(self) -> None:
        if self._connected:
            return

        from pyftdi.ftdi import FtdiError
        from pyftdi.i2c import I2cController
        from pyftdi.usbtools import UsbToolsError

        config = self._config
        if not isinstance(config, FtdiConfig):
            raise TransportError("Invalid config type for FTDI transport")

        logger.info("ftdi_connecting", url=config.url, frequency=config.frequency)
        controller = I2cController()
        try:
            controller.configure(config.url, frequency=config.frequency)
        except (FtdiError, UsbToolsError, ValueError, OSError) as exc:
            raise TransportUnavailable(f"Failed to open {config.url}: {exc}") from exc
        # a NACKed byte is reported, never resent
        controller.set_retry_count(1)
        self._controller = controller
        self._connected = True
        logger.info("ftdi_connected", url=config.url)

    def disconnect(self) -> None:
        if not self._connected:
            return
        logger.info("ftdi_disconnecting")
        self._controller.close()
        self._controller = None
        self._connected = False
        logger.info("ftdi_disconnected")

    def _require_controller(self):
        if self._controller is None:
            raise TransportError("FTDI transport not connected. Call connect() first.")
        return self._controller

    def start(self) -> None:
        self._require_controller()
        self._addressing = True

    def stop(self) -> None:
        controller = self._require_controller()
        self._addressing = False
        # an empty relaxed write emits only the stop condition
        controller.write(None, b"", relax=True)

    def write(self, data: bytes) -> None:
        from pyftdi.i2c import I2cNackError

        controller = self._require_controller()
        if self._addressing:
            self._addressing = False
            address_byte, data = data[0], data[1:]
            self._ack = controller.poll(
                address_byte >> 1,
                write=not (address_byte & 0x01),
                relax=False,
            )
        if not data:
            return
        try:
            controller.write(None, data, relax=False)
            self._ack = True
        except I2cNackError:
            self._ack = False

    def get_ack(self) -> bool:
        return self._ack

    def read(self, count: int) -> bytes:
        controller = self._require_controller()
        return bytes(controller.read(None, count, relax=False))

    def send_nack(self) -> None:
        # pyftdi NACKs the last byte of every read on its own
        self._require_controller()
