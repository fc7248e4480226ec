"""Conversion between raw register/EEPROM bytes and physical units.

Cell voltages and voltage thresholds are 13-bit ADC codes at 1.22 mV per
count. Pack current is a signed 16-bit reading at 7.63 uV per count across
the sense resistor, whose value (tenths of a milliohm) is itself stored in
EEPROM. Current limits are 6-bit codes at 5 mV across the sense resistor,
corrected by a signed 4-bit calibration offset kept in another word's high
nibble.
"""

from __future__ import annotations

from oz890.chip.bus import RegisterBus
from oz890.chip.eeprom import EepromController
from oz890.chip.registers import (
    CELL_COUNT_MAX,
    EE_BLEED_START,
    EE_CELL_COUNT,
    EE_CHARGE_OFFSET,
    EE_CURRENT_LIMIT,
    EE_DISCHARGE_OFFSET,
    EE_FACTORY_NAME,
    EE_FACTORY_NAME_END,
    EE_IDLE_BLEED,
    EE_MODE,
    EE_OV_RELEASE,
    EE_OV_THRESHOLD,
    EE_PROJECT_NAME,
    EE_PROJECT_NAME_END,
    EE_SENSE_RESISTOR,
    EE_UV_RELEASE,
    EE_UV_THRESHOLD,
    EE_VERSION,
    REG_CELL_VOLTAGE_BASE,
    REG_CURRENT_HI,
    REG_CURRENT_LO,
)
from oz890.exceptions import InvalidParameterError
from oz890.models.eeprom import (
    CalibrationConstants,
    CurrentLimit,
    DeviceConfiguration,
    EepromImage,
    VoltageThresholds,
)
from oz890.models.measurements import CellVoltage, PackCurrent

ADC_MV_PER_COUNT = 1.22
CURRENT_V_PER_COUNT = 7.63e-6
CURRENT_LIMIT_V_PER_COUNT = 5e-3

ADC_CODE_MAX = 0x1FFF
CURRENT_LIMIT_MASK = 0x3F
CURRENT_SCALE_SHIFT = 6

SENSE_RESISTOR_DEFAULT = 25    # tenths of a milliohm
SENSE_RESISTOR_MIN_MOHM = 0.1
SENSE_RESISTOR_MAX_MOHM = 25.5


# --- Scalar conversions ---


def adc2mv(code: int) -> float:
    """Convert an ADC code to millivolts."""
    return code * ADC_MV_PER_COUNT


def v2adc(volts: float) -> int:
    """Convert volts to the nearest ADC code."""
    return round(volts / (ADC_MV_PER_COUNT * 1e-3))


def sign_extend_nibble(value: int) -> int:
    """Interpret the low 4 bits of *value* as two's complement."""
    value &= 0x0F
    return value - 0x10 if value & 0x08 else value


def high_nibble_offset(byte: int) -> int:
    """Signed calibration offset held in the high nibble of *byte*."""
    return sign_extend_nibble(byte >> 4)


def decode_cell_raw(lo: int, hi: int) -> int:
    """13-bit ADC code from a low/high byte pair (low 3 bits of *lo* unused)."""
    return (hi << 5) | (lo >> 3)


def decode_cell_voltage(raw: int) -> float:
    """Cell voltage in millivolts for a 13-bit code."""
    return adc2mv(raw)


def encode_adc_code(code: int, lo: int = 0) -> tuple[int, int]:
    """Pack a 13-bit code into (lo, hi), keeping the low 3 bits of *lo*."""
    if not 0 <= code <= ADC_CODE_MAX:
        raise InvalidParameterError(f"ADC code {code} does not fit in 13 bits")
    return ((code & 0x1F) << 3) | (lo & 0x07), code >> 5


def decode_current_raw(lo: int, hi: int) -> int:
    """Signed 16-bit current reading from its byte pair."""
    raw = (hi << 8) | lo
    return raw - 0x10000 if raw & 0x8000 else raw


def decode_current(raw: int, sense_ohms: float) -> float:
    """Pack current in amps."""
    return raw * CURRENT_V_PER_COUNT / sense_ohms


def sense_resistor_mohm(raw: int) -> float:
    """Sense resistor in milliohms; 0 selects the 2.5 mOhm default."""
    return (raw or SENSE_RESISTOR_DEFAULT) / 10.0


def encode_sense_resistor(milliohms: float) -> int:
    """Tenths-of-a-milliohm byte for *milliohms*.

    Raises:
        InvalidParameterError: If *milliohms* is outside [0.1, 25.5].
    """
    if not SENSE_RESISTOR_MIN_MOHM <= milliohms <= SENSE_RESISTOR_MAX_MOHM:
        raise InvalidParameterError(
            f"Sense resistor {milliohms} mOhm outside "
            f"[{SENSE_RESISTOR_MIN_MOHM}, {SENSE_RESISTOR_MAX_MOHM}]"
        )
    return round(milliohms * 10)


def decode_current_limit(code: int, offset: int, sense_ohms: float) -> CurrentLimit:
    """Current limit for a 6-bit *code* corrected by a signed *offset*."""
    scale = CURRENT_LIMIT_V_PER_COUNT / sense_ohms
    value = code & CURRENT_LIMIT_MASK
    return CurrentLimit(
        raw=value,
        offset=offset,
        amps=(value + offset) * scale,
        max_amps=(CURRENT_LIMIT_MASK + offset) * scale,
    )


def _ascii(data: bytes) -> str:
    return data.decode("latin-1").rstrip("\x00\xff ")


# --- Image decoding ---


def decode_calibration(image: EepromImage) -> CalibrationConstants:
    raw = image.word(EE_SENSE_RESISTOR)[0]
    return CalibrationConstants(
        sense_resistor_raw=raw,
        sense_resistor_mohm=sense_resistor_mohm(raw),
        current_scale=image.word(EE_CURRENT_LIMIT)[0] >> CURRENT_SCALE_SHIFT,
        charge_offset=high_nibble_offset(image.word(EE_CHARGE_OFFSET)[1]),
        discharge_offset=high_nibble_offset(image.word(EE_DISCHARGE_OFFSET)[1]),
    )


def decode_threshold(image: EepromImage, address: int) -> float:
    lo, hi = image.word(address)
    return adc2mv(decode_cell_raw(lo, hi))


def decode_configuration(image: EepromImage) -> DeviceConfiguration:
    """Decode the configuration fields of an EEPROM image."""
    cal = decode_calibration(image)
    sense_ohms = cal.sense_resistor_ohms
    discharge_code, charge_code = image.word(EE_CURRENT_LIMIT)
    mode = image.word(EE_MODE)[0]

    return DeviceConfiguration(
        cell_count=image.word(EE_CELL_COUNT)[0] & 0x0F,
        hardware_mode=bool(mode & 0x01),
        bleeding_enabled=bool(mode & 0x02),
        idle_bleeding=bool(image.word(EE_IDLE_BLEED)[1] & 0x40),
        calibration=cal,
        charge_limit=decode_current_limit(charge_code, cal.charge_offset, sense_ohms),
        discharge_limit=decode_current_limit(discharge_code, cal.discharge_offset, sense_ohms),
        thresholds=VoltageThresholds(
            ov_threshold_mv=decode_threshold(image, EE_OV_THRESHOLD),
            ov_release_mv=decode_threshold(image, EE_OV_RELEASE),
            uv_threshold_mv=decode_threshold(image, EE_UV_THRESHOLD),
            uv_release_mv=decode_threshold(image, EE_UV_RELEASE),
        ),
        bleed_start_mv=decode_threshold(image, EE_BLEED_START),
        factory_name=_ascii(image.data[EE_FACTORY_NAME:EE_FACTORY_NAME_END]),
        project_name=_ascii(image.data[EE_PROJECT_NAME:EE_PROJECT_NAME_END]),
        version=image.data[EE_VERSION],
    )


def apply_sense_resistor(image: EepromImage, milliohms: float) -> EepromImage:
    """Return *image* with the sense resistor set; byte 1 of the word is kept."""
    raw = encode_sense_resistor(milliohms)
    _, byte1 = image.word(EE_SENSE_RESISTOR)
    return image.with_word(EE_SENSE_RESISTOR, raw, byte1)


def apply_voltage_threshold(image: EepromImage, address: int, millivolts: float) -> EepromImage:
    """Return *image* with the 13-bit threshold at *address* set to *millivolts*."""
    if millivolts < 0:
        raise InvalidParameterError(f"Voltage {millivolts} mV is negative")
    lo, _ = image.word(address)
    new_lo, new_hi = encode_adc_code(v2adc(millivolts / 1000.0), lo)
    return image.with_word(address, new_lo, new_hi)


class MeasurementDecoder:
    """Reads live measurements from the chip and decodes them."""

    def __init__(self, bus: RegisterBus, eeprom: EepromController) -> None:
        self._bus = bus
        self._eeprom = eeprom

    def read_cell_voltage(self, cell: int) -> CellVoltage:
        if not 0 <= cell < CELL_COUNT_MAX:
            raise InvalidParameterError(f"Cell index {cell} outside [0, {CELL_COUNT_MAX})")
        lo = self._bus.read_register(REG_CELL_VOLTAGE_BASE + cell * 2)
        hi = self._bus.read_register(REG_CELL_VOLTAGE_BASE + cell * 2 + 1)
        raw = decode_cell_raw(lo, hi)
        return CellVoltage(cell=cell, raw=raw, millivolts=decode_cell_voltage(raw))

    def read_cell_voltages(self, count: int = CELL_COUNT_MAX) -> list[CellVoltage]:
        return [self.read_cell_voltage(cell) for cell in range(count)]

    def read_sense_resistor_mohm(self) -> float:
        raw, _ = self._eeprom.read_word(EE_SENSE_RESISTOR)
        return sense_resistor_mohm(raw)

    def read_current(self) -> PackCurrent:
        mohm = self.read_sense_resistor_mohm()
        lo = self._bus.read_register(REG_CURRENT_LO)
        hi = self._bus.read_register(REG_CURRENT_HI)
        raw = decode_current_raw(lo, hi)
        return PackCurrent(
            raw=raw,
            sense_resistor_mohm=mohm,
            amps=decode_current(raw, mohm / 1000.0),
        )
