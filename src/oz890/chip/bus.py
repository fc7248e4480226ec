"""Single-byte register access over a byte-level bus transport.

RegisterBus owns the transport and the chip's slave address and frames
each register read or write as one complete bus transaction. Nothing is
cached; every read re-issues the full transaction.
"""

from __future__ import annotations

from oz890.chip.registers import OZ890_I2C_ADDRESS
from oz890.exceptions import BusNackError, InvalidParameterError
from oz890.transport.base import Transport
from oz890.utils.logging import get_logger

logger = get_logger(__name__)


def _check_byte(value: int, label: str) -> None:
    if not 0 <= value <= 0xFF:
        raise InvalidParameterError(f"{label} 0x{value:X} is not a valid byte (0-255)")


class RegisterBus:
    """Register reads and writes against one chip on the bus."""

    def __init__(
        self,
        transport: Transport,
        address: int = OZ890_I2C_ADDRESS,
        trace: bool = False,
    ) -> None:
        if not 0x03 <= address <= 0x77:
            raise InvalidParameterError(f"Invalid 7-bit slave address: 0x{address:02X}")
        self._transport = transport
        self._address = address
        self._trace = trace

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def address(self) -> int:
        return self._address

    @property
    def _write_address(self) -> int:
        return self._address << 1

    @property
    def _read_address(self) -> int:
        return (self._address << 1) | 0x01

    def read_register(self, register: int) -> int:
        """Read one register.

        Raises:
            BusNackError: If the chip does not acknowledge the register
                address or the read-direction slave address. The bus is
                still released with a stop condition.
        """
        _check_byte(register, "register")
        t = self._transport
        value: int | None = None
        phase = "register address"
        try:
            t.start()
            t.write(bytes([self._write_address]))
            t.write(bytes([register]))
            if t.get_ack():
                phase = "read address"
                t.start()
                t.write(bytes([self._read_address]))
                if t.get_ack():
                    value = t.read(1)[0]
                    t.send_nack()
                    # dummy NACKed byte terminates the single-byte read
                    t.read(1)
        finally:
            t.stop()

        if value is None:
            raise BusNackError(
                f"No ACK for {phase} reading register 0x{register:02X}",
                register=register,
            )
        if self._trace:
            logger.debug("register_read", register=f"0x{register:02X}", value=f"0x{value:02X}")
        return value

    def write_register(self, register: int, value: int) -> None:
        """Write one byte to a register."""
        _check_byte(register, "register")
        _check_byte(value, "value")
        t = self._transport
        try:
            t.start()
            t.write(bytes([self._write_address]))
            t.write(bytes([register]))
            t.write(bytes([value]))
        finally:
            t.stop()
        if self._trace:
            logger.debug("register_write", register=f"0x{register:02X}", value=f"0x{value:02X}")
