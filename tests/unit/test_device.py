"""Unit tests for Oz890Device over a simulated transport."""

from __future__ import annotations

import pytest

from oz890.config import SessionConfig
from oz890.core.device import Oz890Device
from oz890.exceptions import (
    AuthenticationFailed,
    ConfigurationError,
    DeviceNotOpenError,
    ImageSizeMismatch,
    InvalidParameterError,
    UnknownChip,
)
from tests.conftest import FakeOz890, SimulatedTransport


def _device(transport, **kwargs) -> Oz890Device:
    return Oz890Device(SessionConfig(busy_timeout=0.05, **kwargs), transport=transport)


class TestOpen:
    """Test session lifecycle and chip identification."""

    def test_open_reads_chip_id(self, chip, transport):
        with _device(transport) as dev:
            assert dev.chip_id == 0x02
            assert dev.is_open
            assert transport.is_connected
        assert not transport.is_connected

    def test_unknown_chip(self):
        transport = SimulatedTransport(FakeOz890(chip_id=0x07))
        dev = _device(transport)

        with pytest.raises(UnknownChip, match="0x07"):
            dev.open()
        assert not dev.is_open
        assert not transport.is_connected

    def test_unknown_chip_forced(self):
        transport = SimulatedTransport(FakeOz890(chip_id=0x07))
        with _device(transport, force=True) as dev:
            assert dev.chip_id == 0x07

    def test_requires_open(self, transport):
        with pytest.raises(DeviceNotOpenError):
            _device(transport).read_image()


class TestStatus:
    """Test flag reporting and fixing."""

    def test_software_mode_report(self, chip, transport):
        chip.eeprom[0x32] = 0x00
        chip.registers[0x14] = 0x10
        chip.registers[0x15] = 0x18
        chip.registers[0x1C] = 0x21
        chip.registers[0x1E] = 0x06
        chip.registers[0x20] = 0x08

        with _device(transport) as dev:
            report = dev.read_status()

        assert report.hardware_mode is False
        assert report.soft_sleep == ["low_power"]
        assert report.shutdown == ["mosfet_failure", "unbalanced"]
        assert report.protection == ["overvoltage", "undervoltage"]
        assert report.fet_disabled == ["discharge"]
        assert report.charging is True
        assert report.discharging is False
        assert report.cleared == []
        assert chip.writes(0x15) == []

    def test_hardware_mode_skips_fet_enable(self, chip, transport):
        chip.eeprom[0x32] = 0x03
        with _device(transport) as dev:
            report = dev.read_status()
        assert report.hardware_mode is True
        assert report.bleeding_enabled is True
        assert report.fet_disabled == []
        assert 0x1E not in [reg for op, reg, _ in chip.ops if op == "r"]

    def test_fix_clears_unbalanced(self, chip, transport):
        chip.registers[0x15] = 0x10
        with _device(transport) as dev:
            report = dev.read_status(fix=True)
        assert report.cleared == ["unbalanced"]
        assert chip.writes(0x15) == [(0x15, 0x10)]


class TestControl:
    """Test reboot and measurement passthrough."""

    def test_reboot_pulses_shutdown_register(self, chip, transport):
        with _device(transport) as dev:
            dev.reboot()
        assert chip.writes(0x15) == [(0x15, 0x01), (0x15, 0x00)]

    def test_read_current(self, chip, transport):
        chip.eeprom[0x34] = 50
        chip.registers[0x54], chip.registers[0x55] = 0x18, 0xFC   # -1000
        with _device(transport) as dev:
            current = dev.read_current()
        assert current.raw == -1000
        assert current.amps == pytest.approx(-1000 * 7.63e-6 / 0.005)


class TestConfigurationWrites:
    """Test read-modify-commit against a live device."""

    def test_set_sense_resistor_rewrites_eeprom(self, chip, transport):
        before = bytes(chip.eeprom)
        with _device(transport) as dev:
            dev.set_sense_resistor(5.0)
        assert chip.eeprom[0x34] == 50
        assert chip.eeprom[0x35] == before[0x35]
        assert bytes(chip.eeprom[:0x34]) == before[:0x34]

    def test_set_sense_resistor_out_of_range_writes_nothing(self, chip, transport):
        with _device(transport) as dev:
            with pytest.raises(InvalidParameterError):
                dev.set_sense_resistor(30.0)
        assert chip.writes() == []

    def test_set_voltage_limits(self, chip, transport):
        with _device(transport) as dev:
            dev.set_voltage_limits(ov_threshold=4200.0, uv_release=3000.0)
            cfg = dev.read_configuration()
        assert abs(cfg.thresholds.ov_threshold_mv - 4200.0) <= 1.22
        assert abs(cfg.thresholds.uv_release_mv - 3000.0) <= 1.22

    def test_set_voltage_limits_nothing_to_do(self, chip, transport):
        with _device(transport) as dev:
            dev.set_voltage_limits()
        assert (0x5F, 0x53) not in chip.writes()

    def test_rejected_password_aborts_commit(self, chip, transport):
        chip.reject_password = True
        with _device(transport) as dev:
            with pytest.raises(AuthenticationFailed):
                dev.set_sense_resistor(5.0)
        assert (0x5F, 0x53) not in chip.writes()

    def test_dump_and_flash(self, chip, transport, tmp_path):
        out = tmp_path / "dump.bin"
        with _device(transport) as dev:
            image = dev.dump_eeprom(out)
        assert out.read_bytes() == image.data == bytes(chip.eeprom)

        replacement = tmp_path / "new.bin"
        replacement.write_bytes(bytes([0xA5]) * 128)
        with _device(transport) as dev:
            dev.flash_eeprom(replacement)
        assert bytes(chip.eeprom) == bytes([0xA5]) * 128

    def test_flash_wrong_size(self, chip, transport, tmp_path):
        bad = tmp_path / "bad.bin"
        bad.write_bytes(bytes(64))
        with _device(transport) as dev:
            with pytest.raises(ImageSizeMismatch):
                dev.flash_eeprom(bad)
        assert (0x5F, 0x53) not in chip.writes()


class TestFileSubstrate:
    """Test operating on an image file."""

    def test_configuration_from_file(self, image_file):
        with Oz890Device(SessionConfig(image_path=image_file)) as dev:
            cfg = dev.read_configuration()
        assert cfg.calibration.sense_resistor_mohm == pytest.approx(2.5)

    def test_set_sense_resistor_in_file(self, image_file):
        with Oz890Device(SessionConfig(image_path=image_file)) as dev:
            dev.set_sense_resistor(10.0)
        data = image_file.read_bytes()
        assert len(data) == 128
        assert data[0x34] == 100

    def test_live_only_operations_rejected(self, image_file, tmp_path):
        with Oz890Device(SessionConfig(image_path=image_file)) as dev:
            with pytest.raises(ConfigurationError):
                dev.read_cell_voltages()
            with pytest.raises(ConfigurationError):
                dev.reboot()
            with pytest.raises(ConfigurationError):
                dev.flash_eeprom(image_file)

    def test_wrong_size_file(self, tmp_path):
        path = tmp_path / "img.bin"
        path.write_bytes(bytes(127))
        with pytest.raises(ImageSizeMismatch):
            Oz890Device(SessionConfig(image_path=path)).open()
