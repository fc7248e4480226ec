"""Status and authentication result models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class StatusReport(BaseModel):
    """Decoded protection and operating-state flags."""

    hardware_mode: bool = False
    bleeding_enabled: bool = False
    soft_sleep: list[str] = Field(default_factory=list)
    shutdown: list[str] = Field(default_factory=list)
    protection: list[str] = Field(default_factory=list)
    fet_disabled: list[str] = Field(default_factory=list)
    fet_disable_reasons: list[str] = Field(default_factory=list)
    charging: bool = False
    discharging: bool = False
    cleared: list[str] = Field(default_factory=list, description="Flags cleared by --fix")

    @property
    def has_faults(self) -> bool:
        return bool(self.shutdown or self.protection)
