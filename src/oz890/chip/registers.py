"""OZ890 register map, EEPROM layout, and control codes.

Register addresses are single bytes on the chip's I2C slave. EEPROM
offsets index the 128-byte configuration memory, which is accessed as
2-byte words at even offsets.
"""

from __future__ import annotations

from enum import IntEnum


# Default 7-bit slave address (0x60 on the wire for writes)
OZ890_I2C_ADDRESS = 0x30

# Expected content of REG_CHIP_ID for an OZ890 rev C
OZ890_CHIP_ID = 0x02

# --- Registers ---

REG_CHIP_ID = 0x00
REG_SOFT_SLEEP = 0x14          # soft-sleep / wake status
REG_SHUTDOWN = 0x15            # shutdown flags, reboot control
REG_CHECK_YES = 0x1C           # protection check flags
REG_FET_ENABLE = 0x1E          # software FET enable
REG_FET_DISABLE = 0x1F         # FET-disable reason flags
REG_CHARGE_STATE = 0x20        # charge/discharge state
REG_CELL_VOLTAGE_BASE = 0x32   # cell c low byte at 0x32 + 2c, high byte at 0x33 + 2c
REG_CURRENT_LO = 0x54
REG_CURRENT_HI = 0x55
REG_EEPROM_DATA_LO = 0x5C      # even byte of the selected word
REG_EEPROM_DATA_HI = 0x5D      # odd byte of the selected word
REG_EEPROM_ADDRESS = 0x5E
REG_EEPROM_CONTROL = 0x5F
REG_PASSWORD_LO = 0x69
REG_PASSWORD_HI = 0x6A
REG_AUTH_STATUS = 0x6F

# Bit 7 of REG_EEPROM_CONTROL is the EEPROM busy flag
EEPROM_BUSY = 0x80

CELL_COUNT_MAX = 13


class EepromMode(IntEnum):
    """Values written to REG_EEPROM_CONTROL."""

    LOCK = 0x00
    AUTHENTICATE = 0x50
    WORD_WRITE = 0x52
    ERASE = 0x53
    WORD_READ = 0x55


# --- EEPROM layout ---

EEPROM_SIZE = 128
EEPROM_WORD_SIZE = 2
EEPROM_LAST_WORD = EEPROM_SIZE - EEPROM_WORD_SIZE

EE_CHARGE_OFFSET = 0x02        # charge calibration offset nibble (high nibble of odd byte)
EE_DISCHARGE_OFFSET = 0x04     # discharge calibration offset nibble (high nibble of odd byte)
EE_CELL_COUNT = 0x26           # low nibble of even byte
EE_CURRENT_LIMIT = 0x28        # discharge limit in even byte, charge limit in odd byte
EE_IDLE_BLEED = 0x2C           # bit 6 of the odd byte
EE_MODE = 0x32                 # bit 0 hardware mode, bit 1 bleeding enable
EE_SENSE_RESISTOR = 0x34       # even byte: tenths of a milliohm, 0 = default
EE_FACTORY_NAME = 0x36         # 0x36..0x3F ASCII
EE_FACTORY_NAME_END = 0x40
EE_PROJECT_NAME = 0x40         # 0x40..0x44 ASCII
EE_PROJECT_NAME_END = 0x45
EE_VERSION = 0x45
EE_BLEED_START = 0x48
EE_OV_THRESHOLD = 0x4A
EE_OV_RELEASE = 0x4C
EE_UV_THRESHOLD = 0x4E
EE_UV_RELEASE = 0x50
EE_PASSWORD = 0x7A
