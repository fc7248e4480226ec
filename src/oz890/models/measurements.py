"""Live measurement models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CellVoltage(BaseModel):
    """A single cell voltage reading."""

    cell: int = Field(..., ge=0, lt=13)
    raw: int
    millivolts: float


class PackCurrent(BaseModel):
    """Pack current reading; positive values are charge current."""

    raw: int = Field(..., ge=-0x8000, le=0x7FFF)
    sense_resistor_mohm: float
    amps: float
