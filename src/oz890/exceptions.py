"""Exception hierarchy for OZ890 bus, EEPROM, and configuration failures."""

from __future__ import annotations


class Oz890Error(Exception):
    """Base exception for all oz890 errors."""

    def __init__(self, message: str, register: int | None = None) -> None:
        self.register = register
        super().__init__(message)


class TransportError(Oz890Error):
    """Error in the register-bus transport layer."""


class TransportUnavailable(TransportError):
    """The bus adapter could not be opened."""


class BusNackError(TransportError):
    """The chip did not acknowledge a bus transaction."""


class EepromTimeout(TransportError):
    """The EEPROM busy flag did not clear within the configured bound."""


class UnknownChip(Oz890Error):
    """The chip ID register did not identify an OZ890."""

    def __init__(self, chip_id: int) -> None:
        self.chip_id = chip_id
        super().__init__(f"Unknown chip: 0x{chip_id:02X}", register=0x00)


class AuthenticationFailed(Oz890Error):
    """The chip rejected the EEPROM password."""

    def __init__(self, state: object, status: int) -> None:
        self.state = state
        self.status = status
        super().__init__(
            f"EEPROM authentication failed: {state} (status 0x{status:02X})",
            register=0x6F,
        )


class ImageSizeMismatch(Oz890Error):
    """An EEPROM image file is not exactly 128 bytes."""

    def __init__(self, size: int, expected: int = 128) -> None:
        self.size = size
        super().__init__(f"EEPROM image is {size} bytes, expected {expected}")


class IoFailure(Oz890Error):
    """Image file could not be opened, read, or written."""


class DeviceNotOpenError(Oz890Error):
    """The device session is not open."""


class ConfigurationError(Oz890Error):
    """Invalid session configuration or operation for the active substrate."""


class InvalidParameterError(Oz890Error):
    """An out-of-range value was passed to an operation."""


def io_failure(operation: str, path: object, exc: OSError) -> IoFailure:
    """Build an IoFailure carrying the OS reason for *exc*."""
    reason = exc.strerror or str(exc)
    return IoFailure(f"{operation} {path}: {reason}")
