"""EEPROM word access over the register bus or a flat image file.

The chip exposes its 128-byte EEPROM through four registers: a target
address (0x5E), a control/mode register whose bit 7 is a busy flag
(0x5F), and a data byte pair (0x5C even, 0x5D odd). Every step of a
word access waits for the busy flag to clear, and every access ends by
writing 0x00 to the control register to lock the EEPROM again, also when
a step fails.

An interrupted write can leave a word half written. Nothing here attempts
to recover that.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from oz890.chip.bus import RegisterBus
from oz890.chip.registers import (
    EEPROM_BUSY,
    EEPROM_SIZE,
    EEPROM_WORD_SIZE,
    REG_EEPROM_ADDRESS,
    REG_EEPROM_CONTROL,
    REG_EEPROM_DATA_HI,
    REG_EEPROM_DATA_LO,
    EepromMode,
)
from oz890.exceptions import (
    ConfigurationError,
    EepromTimeout,
    ImageSizeMismatch,
    InvalidParameterError,
    io_failure,
)
from oz890.models.eeprom import EepromImage, check_word_address
from oz890.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class BusyPollConfig:
    """Bounds for waiting on the EEPROM busy flag."""

    timeout_s: float = 1.0
    poll_interval_s: float = 0.0


class EepromSubstrate(ABC):
    """Backing store for EEPROM words."""

    @property
    @abstractmethod
    def is_live(self) -> bool:
        """True when backed by a real device."""

    @abstractmethod
    def read_word(self, address: int) -> tuple[int, int]:
        """Return (byte0, byte1) at an even *address*."""

    @abstractmethod
    def write_word(self, address: int, byte0: int, byte1: int) -> None:
        """Store one word at an even *address*."""


class DeviceSubstrate(EepromSubstrate):
    """EEPROM of a live chip, driven through the busy-poll handshake."""

    def __init__(self, bus: RegisterBus, poll: BusyPollConfig | None = None) -> None:
        self._bus = bus
        self._poll = poll or BusyPollConfig()

    @property
    def is_live(self) -> bool:
        return True

    @property
    def bus(self) -> RegisterBus:
        return self._bus

    def is_busy(self) -> bool:
        return bool(self._bus.read_register(REG_EEPROM_CONTROL) & EEPROM_BUSY)

    def wait_ready(self) -> None:
        """Spin until the busy flag clears.

        Raises:
            EepromTimeout: If the flag is still set after the configured timeout.
        """
        deadline = time.monotonic() + self._poll.timeout_s
        polls = 0
        while self.is_busy():
            polls += 1
            if time.monotonic() >= deadline:
                raise EepromTimeout(
                    f"EEPROM still busy after {self._poll.timeout_s:.3f}s ({polls} polls)",
                    register=REG_EEPROM_CONTROL,
                )
            if self._poll.poll_interval_s:
                time.sleep(self._poll.poll_interval_s)

    def set_mode(self, mode: EepromMode) -> None:
        """Wait for the EEPROM, then write *mode* to the control register."""
        self.wait_ready()
        self._bus.write_register(REG_EEPROM_CONTROL, mode)

    def lock(self) -> None:
        """Disable EEPROM access."""
        self.set_mode(EepromMode.LOCK)

    def read_word(self, address: int) -> tuple[int, int]:
        bus = self._bus
        self.wait_ready()
        bus.write_register(REG_EEPROM_ADDRESS, address)
        self.set_mode(EepromMode.WORD_READ)
        try:
            self.wait_ready()
            byte1 = bus.read_register(REG_EEPROM_DATA_HI)
            self.wait_ready()
            byte0 = bus.read_register(REG_EEPROM_DATA_LO)
        finally:
            self.lock()
        return byte0, byte1

    def write_word(self, address: int, byte0: int, byte1: int) -> None:
        bus = self._bus
        self.set_mode(EepromMode.WORD_WRITE)
        try:
            self.wait_ready()
            bus.write_register(REG_EEPROM_ADDRESS, address)
            self.wait_ready()
            bus.write_register(REG_EEPROM_DATA_HI, byte1)
            self.wait_ready()
            bus.write_register(REG_EEPROM_DATA_LO, byte0)
        finally:
            self.lock()


def load_image_file(path: str | Path) -> EepromImage:
    """Read a 128-byte image file.

    Raises:
        IoFailure: If the file cannot be read.
        ImageSizeMismatch: If the file is not exactly 128 bytes.
    """
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise io_failure("Cannot read", path, exc) from exc
    if len(data) != EEPROM_SIZE:
        raise ImageSizeMismatch(len(data), EEPROM_SIZE)
    return EepromImage.from_bytes(data)


def save_image_file(path: str | Path, image: EepromImage) -> None:
    """Write all 128 bytes of *image* to *path*."""
    try:
        Path(path).write_bytes(image.data)
    except OSError as exc:
        raise io_failure("Cannot write", path, exc) from exc


class FileSubstrate(EepromSubstrate):
    """A 128-byte image file standing in for the chip."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def is_live(self) -> bool:
        return False

    @property
    def path(self) -> Path:
        return self._path

    def validate(self) -> None:
        """Check that the backing file exists and is exactly 128 bytes."""
        try:
            size = self._path.stat().st_size
        except OSError as exc:
            raise io_failure("Cannot open", self._path, exc) from exc
        if size != EEPROM_SIZE:
            raise ImageSizeMismatch(size, EEPROM_SIZE)

    def read_word(self, address: int) -> tuple[int, int]:
        try:
            with self._path.open("rb") as f:
                f.seek(address)
                data = f.read(EEPROM_WORD_SIZE)
        except OSError as exc:
            raise io_failure("Cannot read", self._path, exc) from exc
        if len(data) != EEPROM_WORD_SIZE:
            raise ImageSizeMismatch(address + len(data), EEPROM_SIZE)
        return data[0], data[1]

    def write_word(self, address: int, byte0: int, byte1: int) -> None:
        image = load_image_file(self._path)
        save_image_file(self._path, image.with_word(address, byte0, byte1))

    def save(self, image: EepromImage) -> None:
        save_image_file(self._path, image)


class EepromController:
    """Word-addressed EEPROM access over a device or file substrate."""

    def __init__(self, substrate: EepromSubstrate) -> None:
        self._substrate = substrate

    @property
    def substrate(self) -> EepromSubstrate:
        return self._substrate

    @property
    def is_live(self) -> bool:
        return self._substrate.is_live

    @property
    def device(self) -> DeviceSubstrate:
        """The live device substrate.

        Raises:
            ConfigurationError: When operating on an image file.
        """
        if not isinstance(self._substrate, DeviceSubstrate):
            raise ConfigurationError("Operation requires a live device, not an image file")
        return self._substrate

    def read_word(self, address: int) -> tuple[int, int]:
        """Read the word at an even *address* in [0, 126]."""
        check_word_address(address)
        byte0, byte1 = self._substrate.read_word(address)
        logger.debug("eeprom_word_read", address=f"0x{address:02X}", value=f"0x{byte0:02X}{byte1:02X}")
        return byte0, byte1

    def write_word(self, address: int, byte0: int, byte1: int) -> None:
        """Write one word. On a device this only succeeds after authentication and erase."""
        check_word_address(address)
        for value in (byte0, byte1):
            if not 0 <= value <= 0xFF:
                raise InvalidParameterError(f"EEPROM byte 0x{value:X} out of range")
        self._substrate.write_word(address, byte0, byte1)
        logger.debug("eeprom_word_written", address=f"0x{address:02X}", value=f"0x{byte0:02X}{byte1:02X}")

    def read_image(self) -> EepromImage:
        """Read all 64 words in address order."""
        buf = bytearray()
        for address in range(0, EEPROM_SIZE, EEPROM_WORD_SIZE):
            buf.extend(self.read_word(address))
        logger.info("eeprom_image_read", live=self.is_live)
        return EepromImage.from_bytes(buf)

    def save_image(self, image: EepromImage) -> None:
        """Rewrite the whole image file in one write.

        Raises:
            ConfigurationError: On a live device; use EepromAuthenticator.rewrite().
        """
        if not isinstance(self._substrate, FileSubstrate):
            raise ConfigurationError("save_image() is only defined for an image file")
        self._substrate.save(image)
        logger.info("eeprom_image_saved", path=str(self._substrate.path))
