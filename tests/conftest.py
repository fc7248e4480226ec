"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from oz890.transport.base import FtdiConfig, Transport

PASSWORD = (0x34, 0x12)


class FakeOz890:
    """Simulated OZ890 register file and EEPROM controller.

    Records every register access as ("r"|"w", register, value) in
    ``ops``. ``busy_polls`` makes the next N reads of 0x5F report busy.
    """

    def __init__(self, eeprom: bytes | None = None, chip_id: int = 0x02) -> None:
        self.registers = [0] * 256
        self.registers[0x00] = chip_id
        self.eeprom = bytearray(eeprom if eeprom is not None else bytes(range(128)))
        if eeprom is None:
            self.eeprom[0x7A], self.eeprom[0x7B] = PASSWORD
        self.ops: list[tuple[str, int, int]] = []
        self.busy_polls = 0
        self.always_busy = False
        self.authenticated = False
        self.erased = False
        self.reject_password = False

    # RegisterBus interface

    def read_register(self, register: int) -> int:
        if register == 0x5F:
            value = self.registers[0x5F]
            if self.always_busy or self.busy_polls > 0:
                self.busy_polls = max(0, self.busy_polls - 1)
                value |= 0x80
        else:
            value = self.registers[register]
        self.ops.append(("r", register, value))
        return value

    def write_register(self, register: int, value: int) -> None:
        value = int(value)
        self.ops.append(("w", register, value))
        self.registers[register] = value
        mode = self.registers[0x5F]
        address = self.registers[0x5E]
        if register == 0x5F:
            if value == 0x55:
                self.registers[0x5C] = self.eeprom[address]
                self.registers[0x5D] = self.eeprom[address + 1]
            elif value == 0x53 and self.authenticated:
                self.eeprom[:] = bytes(128)
                self.erased = True
            elif value == 0x00:
                pass
        elif register == 0x6A and mode == 0x50:
            submitted = (self.registers[0x69], value)
            stored = (self.eeprom[0x7A], self.eeprom[0x7B])
            if submitted == stored and not self.reject_password:
                self.authenticated = True
                self.registers[0x6F] = 0x40
            else:
                self.registers[0x6F] = 0x80
        elif register == 0x5C and mode == 0x52 and self.erased:
            self.eeprom[address] = value
            self.eeprom[address + 1] = self.registers[0x5D]

    # helpers

    def writes(self, register: int | None = None) -> list[tuple[int, int]]:
        return [
            (reg, val) for op, reg, val in self.ops
            if op == "w" and (register is None or reg == register)
        ]

    def set_cell(self, cell: int, lo: int, hi: int) -> None:
        self.registers[0x32 + cell * 2] = lo
        self.registers[0x33 + cell * 2] = hi


class SimulatedTransport(Transport):
    """Primitive-level transport in front of a FakeOz890 at slave 0x30."""

    def __init__(self, chip: FakeOz890, address: int = 0x30) -> None:
        super().__init__(FtdiConfig())
        self.chip = chip
        self.address = address
        self.primitives: list[str] = []
        self._state = "idle"
        self._pointer = 0
        self._ack = False
        self._pending: list[int] = []

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def start(self) -> None:
        self.primitives.append("start")
        self._state = "address"

    def stop(self) -> None:
        self.primitives.append("stop")
        if self._state == "data" and len(self._pending) == 2:
            self.chip.write_register(self._pending[0], self._pending[1])
        self._state = "idle"
        self._pending = []

    def write(self, data: bytes) -> None:
        self.primitives.append(f"write:{data.hex()}")
        for byte in data:
            if self._state == "address":
                self._ack = (byte >> 1) == self.address
                if not self._ack:
                    self._state = "ignored"
                else:
                    self._state = "read" if byte & 0x01 else "data"
            elif self._state == "data":
                self._pending.append(byte)
                self._ack = True

    def get_ack(self) -> bool:
        self.primitives.append("ack")
        return self._ack

    def read(self, count: int) -> bytes:
        self.primitives.append(f"read:{count}")
        if self._pending:
            self._pointer = self._pending[0]
            self._pending = []
            return bytes([self.chip.read_register(self._pointer)] * count)
        return bytes(count)

    def send_nack(self) -> None:
        self.primitives.append("nack")


@pytest.fixture
def chip() -> FakeOz890:
    return FakeOz890()


@pytest.fixture
def transport(chip: FakeOz890) -> SimulatedTransport:
    return SimulatedTransport(chip)


@pytest.fixture
def image_file(tmp_path):
    """A 128-byte image file with a known sense resistor and thresholds."""
    data = bytearray(128)
    data[0x34] = 0x19
    path = tmp_path / "eeprom.bin"
    path.write_bytes(bytes(data))
    return path
