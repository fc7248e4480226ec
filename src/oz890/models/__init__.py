"""Pydantic models for images, measurements, and status."""

from oz890.models.eeprom import (
    CalibrationConstants,
    CurrentLimit,
    DeviceConfiguration,
    EepromImage,
    VoltageThresholds,
)
from oz890.models.measurements import CellVoltage, PackCurrent
from oz890.models.status import StatusReport

__all__ = [
    "CalibrationConstants",
    "CellVoltage",
    "CurrentLimit",
    "DeviceConfiguration",
    "EepromImage",
    "PackCurrent",
    "StatusReport",
    "VoltageThresholds",
]
