"""Oz890Device - main high-level interface to an OZ890 or its EEPROM image."""

from __future__ import annotations

from pathlib import Path

from oz890.chip.auth import EepromAuthenticator
from oz890.chip.bus import RegisterBus
from oz890.chip.eeprom import (
    BusyPollConfig,
    DeviceSubstrate,
    EepromController,
    FileSubstrate,
    load_image_file,
    save_image_file,
)
from oz890.chip.measurements import (
    MeasurementDecoder,
    apply_sense_resistor,
    apply_voltage_threshold,
    decode_configuration,
    encode_sense_resistor,
)
from oz890.chip.registers import (
    EE_MODE,
    EE_OV_RELEASE,
    EE_OV_THRESHOLD,
    EE_UV_RELEASE,
    EE_UV_THRESHOLD,
    OZ890_CHIP_ID,
    REG_CHARGE_STATE,
    REG_CHECK_YES,
    REG_CHIP_ID,
    REG_FET_DISABLE,
    REG_FET_ENABLE,
    REG_SHUTDOWN,
    REG_SOFT_SLEEP,
)
from oz890.chip.status import (
    ChargeState,
    ShutdownFlag,
    decode_charge_state,
    decode_check,
    decode_fet_disable_reasons,
    decode_fet_disabled,
    decode_shutdown,
    decode_soft_sleep,
    flag_names,
)
from oz890.config import SessionConfig, SubstrateKind
from oz890.exceptions import ConfigurationError, DeviceNotOpenError, UnknownChip
from oz890.models.eeprom import DeviceConfiguration, EepromImage
from oz890.models.measurements import CellVoltage, PackCurrent
from oz890.models.status import StatusReport
from oz890.transport.base import FtdiConfig, Transport
from oz890.transport.ftdi import FtdiTransport
from oz890.utils.logging import get_logger

logger = get_logger(__name__)


class Oz890Device:
    """High-level interface to an OZ890 over the bus or to an image file.

    Wraps the transport lifecycle, the chip-ID check, and the EEPROM
    substrate chosen by the session configuration.

    Usage:
        with Oz890Device(SessionConfig()) as dev:
            for cell in dev.read_cell_voltages():
                print(cell.millivolts)
    """

    def __init__(self, config: SessionConfig, transport: Transport | None = None) -> None:
        self._config = config
        self._transport = transport
        self._bus: RegisterBus | None = None
        self._eeprom: EepromController | None = None
        self._chip_id: int | None = None

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def is_open(self) -> bool:
        return self._eeprom is not None

    @property
    def is_live(self) -> bool:
        return self._config.substrate is SubstrateKind.DEVICE

    @property
    def chip_id(self) -> int | None:
        return self._chip_id

    @property
    def eeprom(self) -> EepromController:
        if self._eeprom is None:
            raise DeviceNotOpenError("Device is not open. Call open() first.")
        return self._eeprom

    @property
    def bus(self) -> RegisterBus:
        """Register bus of the live device.

        Raises:
            ConfigurationError: When operating on an image file.
        """
        return self.eeprom.device.bus

    def open(self) -> None:
        """Open the configured substrate.

        Raises:
            TransportUnavailable: If the bus adapter cannot be opened.
            UnknownChip: If the chip ID is not an OZ890 and force is off.
            ImageSizeMismatch: If the image file is not 128 bytes.
        """
        if self.is_open:
            return

        cfg = self._config
        if cfg.substrate is SubstrateKind.FILE:
            substrate = FileSubstrate(cfg.image_path)
            substrate.validate()
            self._eeprom = EepromController(substrate)
            logger.info("image_opened", path=str(cfg.image_path))
            return

        if self._transport is None:
            self._transport = FtdiTransport(FtdiConfig(url=cfg.device_url, frequency=cfg.frequency))
        self._transport.connect()

        bus = RegisterBus(self._transport, address=cfg.i2c_address, trace=cfg.trace_registers)
        try:
            chip_id = bus.read_register(REG_CHIP_ID)
            if chip_id != OZ890_CHIP_ID:
                if not cfg.force:
                    raise UnknownChip(chip_id)
                logger.warning("unknown_chip_forced", chip_id=f"0x{chip_id:02X}")
        except Exception:
            self._transport.disconnect()
            raise

        self._chip_id = chip_id
        self._bus = bus
        poll = BusyPollConfig(timeout_s=cfg.busy_timeout, poll_interval_s=cfg.poll_interval)
        self._eeprom = EepromController(DeviceSubstrate(bus, poll))
        logger.info("device_opened", chip_id=f"0x{chip_id:02X}", address=f"0x{cfg.i2c_address:02X}")

    def close(self) -> None:
        """Release the transport."""
        self._eeprom = None
        self._bus = None
        self._chip_id = None
        if self._transport is not None and self._transport.is_connected:
            self._transport.disconnect()
            logger.info("device_closed")

    def __enter__(self) -> Oz890Device:
        self.open()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # --- Status ---

    def read_status(self, fix: bool = False) -> StatusReport:
        """Decode protection and operating-state flags.

        Args:
            fix: Clear the unbalanced permanent-failure flag if it is set.
        """
        bus = self.bus
        mode = self.eeprom.read_word(EE_MODE)[0]
        hardware_mode = bool(mode & 0x01)

        soft_sleep = decode_soft_sleep(bus.read_register(REG_SOFT_SLEEP))
        shutdown = decode_shutdown(bus.read_register(REG_SHUTDOWN))
        cleared: list[str] = []
        if fix and ShutdownFlag.UNBALANCED in shutdown:
            bus.write_register(REG_SHUTDOWN, ShutdownFlag.UNBALANCED)
            cleared.append(ShutdownFlag.UNBALANCED.name.lower())
            logger.info("unbalanced_flag_cleared")

        protection = decode_check(bus.read_register(REG_CHECK_YES))

        fet_disabled: list[str] = []
        if not hardware_mode:
            fet_disabled = flag_names(decode_fet_disabled(bus.read_register(REG_FET_ENABLE)))

        reasons = decode_fet_disable_reasons(bus.read_register(REG_FET_DISABLE))
        state = decode_charge_state(bus.read_register(REG_CHARGE_STATE))
        return StatusReport(
            hardware_mode=hardware_mode,
            bleeding_enabled=bool(mode & 0x02),
            soft_sleep=flag_names(soft_sleep),
            shutdown=flag_names(shutdown),
            protection=flag_names(protection),
            fet_disabled=fet_disabled,
            fet_disable_reasons=flag_names(reasons),
            charging=ChargeState.CHARGING in state,
            discharging=ChargeState.DISCHARGING in state,
            cleared=cleared,
        )

    # --- Measurements ---

    def _measurements(self) -> MeasurementDecoder:
        return MeasurementDecoder(self.bus, self.eeprom)

    def read_cell_voltages(self) -> list[CellVoltage]:
        return self._measurements().read_cell_voltages()

    def read_current(self) -> PackCurrent:
        return self._measurements().read_current()

    def read_configuration(self) -> DeviceConfiguration:
        return decode_configuration(self.eeprom.read_image())

    # --- Control ---

    def reboot(self) -> None:
        """Reboot the chip by pulsing the shutdown register."""
        bus = self.bus
        bus.write_register(REG_SHUTDOWN, 0x01)
        bus.write_register(REG_SHUTDOWN, 0x00)
        logger.info("device_rebooted")

    # --- EEPROM ---

    def read_image(self) -> EepromImage:
        return self.eeprom.read_image()

    def dump_eeprom(self, path: str | Path) -> EepromImage:
        """Save the full EEPROM to a 128-byte file."""
        image = self.eeprom.read_image()
        save_image_file(path, image)
        logger.info("eeprom_dumped", path=str(path))
        return image

    def flash_eeprom(self, path: str | Path) -> None:
        """Rewrite the device EEPROM from a 128-byte file."""
        if not self.eeprom.is_live:
            raise ConfigurationError("Writing an image into the EEPROM requires a live device")
        image = load_image_file(path)
        self.commit(image)

    def commit(self, image: EepromImage) -> None:
        """Store a modified image on the active substrate."""
        if self.eeprom.is_live:
            EepromAuthenticator(self.eeprom).rewrite(image)
        else:
            self.eeprom.save_image(image)

    def set_sense_resistor(self, milliohms: float) -> EepromImage:
        """Set the sense resistor calibration.

        Raises:
            InvalidParameterError: Outside [0.1, 25.5] mOhm; nothing is written.
        """
        encode_sense_resistor(milliohms)
        image = apply_sense_resistor(self.eeprom.read_image(), milliohms)
        self.commit(image)
        logger.info("sense_resistor_set", milliohms=milliohms)
        return image

    def set_voltage_limits(
        self,
        ov_threshold: float | None = None,
        ov_release: float | None = None,
        uv_threshold: float | None = None,
        uv_release: float | None = None,
    ) -> EepromImage:
        """Set over/under-voltage trip and release levels (mV); None keeps a level."""
        image = self.eeprom.read_image()
        updates = {
            EE_OV_THRESHOLD: ov_threshold,
            EE_OV_RELEASE: ov_release,
            EE_UV_THRESHOLD: uv_threshold,
            EE_UV_RELEASE: uv_release,
        }
        changed = False
        for address, millivolts in updates.items():
            if millivolts is not None:
                image = apply_voltage_threshold(image, address, millivolts)
                changed = True
        if changed:
            self.commit(image)
            logger.info(
                "voltage_limits_set",
                ov_threshold=ov_threshold,
                ov_release=ov_release,
                uv_threshold=uv_threshold,
                uv_release=uv_release,
            )
        return image
