"""Flag-register decoding into named conditions."""

from __future__ import annotations

from enum import IntFlag, StrEnum


class SoftSleepFlag(IntFlag):
    """Register 0x14."""

    WOKEN_BY_SHORT_CIRCUIT = 0x02
    LOW_POWER = 0x10


class ShutdownFlag(IntFlag):
    """Register 0x15."""

    VOLTAGE_LOW_FAILURE = 0x02
    VOLTAGE_HIGH_FAILURE = 0x04
    MOSFET_FAILURE = 0x08
    UNBALANCED = 0x10


class CheckFlag(IntFlag):
    """Register 0x1C protection checks."""

    UNDERVOLTAGE = 0x01
    CELL_EXTREMELY_LOW = 0x02
    CELL_EXTREMELY_HIGH = 0x04
    MOSFET_FAILURE = 0x08
    CELLS_UNBALANCED = 0x10
    OVERVOLTAGE = 0x20
    TEMPERATURE_LOW = 0x40
    TEMPERATURE_HIGH = 0x80


class FetEnable(IntFlag):
    """Register 0x1E software FET enables; a clear bit means disabled."""

    DISCHARGE = 0x01
    CHARGE = 0x02
    PRECHARGE = 0x04


class FetDisableReason(IntFlag):
    """Register 0x1F."""

    DISCHARGE_DISABLED = 0x01
    CHARGE_DISABLED = 0x02
    PRECHARGE_DISABLED = 0x04


class ChargeState(IntFlag):
    """Register 0x20."""

    DISCHARGING = 0x04
    CHARGING = 0x08


class AuthStatus(IntFlag):
    """Register 0x6F."""

    CHG_OK = 0x01
    CHG_FAIL = 0x02
    DSG_OK = 0x04
    DSG_FAIL = 0x08
    PWD_BUSY = 0x20
    PWD_OK = 0x40
    PWD_FAIL = 0x80


class AuthenticationState(StrEnum):
    """Outcome of submitting the EEPROM password."""

    SUCCESS = "success"
    PASSWORD_REJECTED = "password_rejected"
    BUSY = "busy"


_MESSAGES: dict[type[IntFlag], dict[int, str]] = {
    SoftSleepFlag: {
        SoftSleepFlag.WOKEN_BY_SHORT_CIRCUIT: "Woken up by short circuit.",
        SoftSleepFlag.LOW_POWER: "Device is in low power state.",
    },
    ShutdownFlag: {
        ShutdownFlag.UNBALANCED: "Battery is unbalanced (permanent failure flag).",
        ShutdownFlag.MOSFET_FAILURE: "MOSFET failure detected.",
        ShutdownFlag.VOLTAGE_HIGH_FAILURE: "Voltage High Permanent Failure.",
        ShutdownFlag.VOLTAGE_LOW_FAILURE: "Voltage Low Permanent Failure.",
    },
    CheckFlag: {
        CheckFlag.UNDERVOLTAGE: "Undervoltage detected.",
        CheckFlag.CELL_EXTREMELY_LOW: "Cell voltage is extremely low (permanent failure flag)!",
        CheckFlag.CELL_EXTREMELY_HIGH: "Cell voltage is extremely high (permanent failure flag)!",
        CheckFlag.MOSFET_FAILURE: "MOSFET failure (permanent failure flag)!",
        CheckFlag.CELLS_UNBALANCED: "Cells are unbalanced (permanent failure flag)!",
        CheckFlag.OVERVOLTAGE: "Overvoltage detected.",
        CheckFlag.TEMPERATURE_LOW: "Temperature is too low.",
        CheckFlag.TEMPERATURE_HIGH: "Temperature is too high!",
    },
    FetEnable: {
        FetEnable.DISCHARGE: "Discharge MOSFET is disabled by software.",
        FetEnable.CHARGE: "Charge MOSFET is disabled by software.",
        FetEnable.PRECHARGE: "Precharge MOSFET is disabled by software.",
    },
    FetDisableReason: {
        FetDisableReason.DISCHARGE_DISABLED: "Discharge MOSFET is disabled by protection.",
        FetDisableReason.CHARGE_DISABLED: "Charge MOSFET is disabled by protection.",
        FetDisableReason.PRECHARGE_DISABLED: "Precharge MOSFET is disabled by protection.",
    },
}


def describe(flag: IntFlag) -> str:
    """Human-readable message for a single decoded flag."""
    return _MESSAGES.get(type(flag), {}).get(int(flag), flag.name.replace("_", " ").capitalize())


def decode_flags(flag_type: type[IntFlag], value: int) -> frozenset[IntFlag]:
    """Return the members of *flag_type* whose bit is set in *value*."""
    return frozenset(member for member in flag_type if value & member)


def decode_soft_sleep(value: int) -> frozenset[SoftSleepFlag]:
    return decode_flags(SoftSleepFlag, value)


def decode_shutdown(value: int) -> frozenset[ShutdownFlag]:
    return decode_flags(ShutdownFlag, value)


def decode_check(value: int) -> frozenset[CheckFlag]:
    return decode_flags(CheckFlag, value)


def decode_fet_disabled(value: int) -> frozenset[FetEnable]:
    """Return the FETs whose software enable bit is clear."""
    return frozenset(member for member in FetEnable if not value & member)


def decode_fet_disable_reasons(value: int) -> frozenset[FetDisableReason]:
    return decode_flags(FetDisableReason, value)


def decode_charge_state(value: int) -> frozenset[ChargeState]:
    return decode_flags(ChargeState, value)


def decode_auth_status(value: int) -> frozenset[AuthStatus]:
    return decode_flags(AuthStatus, value)


def decode_auth_state(value: int) -> AuthenticationState:
    """Collapse the 0x6F status byte to an AuthenticationState."""
    if value & AuthStatus.PWD_OK:
        return AuthenticationState.SUCCESS
    if value & AuthStatus.PWD_BUSY:
        return AuthenticationState.BUSY
    return AuthenticationState.PASSWORD_REJECTED


def flag_names(flags: frozenset[IntFlag]) -> list[str]:
    """Sorted lowercase names, for reports and JSON output."""
    return sorted(flag.name.lower() for flag in flags)
