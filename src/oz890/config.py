"""Session configuration: which substrate to use and how to reach it."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from oz890.chip.registers import OZ890_I2C_ADDRESS
from oz890.exceptions import ConfigurationError

DEFAULT_FTDI_URL = "ftdi://ftdi:232h/1"


class SubstrateKind(StrEnum):
    """Backing store for EEPROM operations."""
    DEVICE = "device"
    FILE = "file"


class SessionConfig(BaseModel):
    """Options for one run against a device or an image file.

    Exactly one of ``device_url`` and ``image_path`` is in effect; when
    neither is given the default FTDI URL is used.
    """

    device_url: str | None = None
    image_path: Path | None = None
    i2c_address: int = Field(OZ890_I2C_ADDRESS, ge=0x03, le=0x77, description="7-bit slave address")
    frequency: float = Field(400_000.0, gt=0)
    force: bool = False
    busy_timeout: float = Field(1.0, gt=0, description="Seconds to wait for the EEPROM busy flag")
    poll_interval: float = Field(0.0, ge=0)
    trace_registers: bool = False

    @model_validator(mode="after")
    def select_substrate(self) -> SessionConfig:
        if self.device_url is not None and self.image_path is not None:
            raise ConfigurationError(
                "A device URL and an image file were both given; choose one substrate"
            )
        if self.device_url is None and self.image_path is None:
            self.device_url = DEFAULT_FTDI_URL
        return self

    @property
    def substrate(self) -> SubstrateKind:
        return SubstrateKind.FILE if self.image_path is not None else SubstrateKind.DEVICE
