"""EEPROM image and decoded configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from oz890.chip.registers import EEPROM_LAST_WORD, EEPROM_SIZE
from oz890.exceptions import ImageSizeMismatch, InvalidParameterError


def check_word_address(address: int) -> None:
    """Raise InvalidParameterError unless *address* is an even offset in [0, 126]."""
    if not 0 <= address <= EEPROM_LAST_WORD or address % 2:
        raise InvalidParameterError(
            f"EEPROM word address 0x{address:02X} must be even and in [0x00, 0x{EEPROM_LAST_WORD:02X}]"
        )


class EepromImage(BaseModel):
    """The full 128-byte EEPROM content.

    Byte ``2n`` is ordinal 0 and byte ``2n + 1`` ordinal 1 of word ``2n``.
    """

    model_config = {"frozen": True}

    data: bytes

    @field_validator("data", mode="before")
    @classmethod
    def coerce_buffer(cls, v: object) -> object:
        if isinstance(v, (bytearray, memoryview, list)):
            return bytes(v)
        return v

    @field_validator("data")
    @classmethod
    def validate_size(cls, v: bytes) -> bytes:
        if len(v) != EEPROM_SIZE:
            raise ImageSizeMismatch(len(v), EEPROM_SIZE)
        return v

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> EepromImage:
        return cls(data=bytes(data))

    def word(self, address: int) -> tuple[int, int]:
        """Return (byte0, byte1) of the word at *address*."""
        check_word_address(address)
        return self.data[address], self.data[address + 1]

    def word_le(self, address: int) -> int:
        """Return the word at *address* as a little-endian 16-bit value."""
        lo, hi = self.word(address)
        return lo | (hi << 8)

    def with_word(self, address: int, byte0: int, byte1: int) -> EepromImage:
        """Return a copy with the word at *address* replaced."""
        check_word_address(address)
        buf = bytearray(self.data)
        buf[address] = byte0 & 0xFF
        buf[address + 1] = byte1 & 0xFF
        return EepromImage(data=bytes(buf))

    def words(self) -> list[tuple[int, int, int]]:
        """Return (address, byte0, byte1) for every word in ascending order."""
        return [
            (addr, self.data[addr], self.data[addr + 1])
            for addr in range(0, EEPROM_SIZE, 2)
        ]

    @property
    def hex_dump(self) -> str:
        """Format as 16 bytes per line with offsets."""
        lines = []
        for off in range(0, EEPROM_SIZE, 16):
            chunk = " ".join(f"{b:02X}" for b in self.data[off:off + 16])
            lines.append(f"0x{off:02X}: {chunk}")
        return "\n".join(lines)


class CalibrationConstants(BaseModel):
    """Calibration values stored in the EEPROM."""

    sense_resistor_raw: int = Field(..., ge=0, le=0xFF, description="Tenths of a milliohm, 0 = default")
    sense_resistor_mohm: float
    current_scale: int = Field(0, ge=0, le=3, description="2-bit current-limit scale selector")
    charge_offset: int = Field(0, ge=-8, le=7)
    discharge_offset: int = Field(0, ge=-8, le=7)

    @property
    def sense_resistor_ohms(self) -> float:
        return self.sense_resistor_mohm / 1000.0


class CurrentLimit(BaseModel):
    """A current limit and the highest value its field can encode."""

    raw: int
    offset: int
    amps: float
    max_amps: float


class VoltageThresholds(BaseModel):
    """Cell over/under-voltage trip and release levels in millivolts."""

    ov_threshold_mv: float
    ov_release_mv: float
    uv_threshold_mv: float
    uv_release_mv: float


class DeviceConfiguration(BaseModel):
    """Configuration decoded from an EEPROM image."""

    cell_count: int
    hardware_mode: bool
    bleeding_enabled: bool
    idle_bleeding: bool
    calibration: CalibrationConstants
    charge_limit: CurrentLimit
    discharge_limit: CurrentLimit
    thresholds: VoltageThresholds
    bleed_start_mv: float
    factory_name: str = ""
    project_name: str = ""
    version: int = 0
