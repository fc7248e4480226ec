"""Unit tests for RegisterBus transaction framing."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from oz890.chip.bus import RegisterBus
from oz890.exceptions import BusNackError, InvalidParameterError
from tests.conftest import FakeOz890, SimulatedTransport


class TestReadRegister:
    """Test the repeated-start read sequence."""

    def test_read_framing_order(self, chip, transport):
        chip.registers[0x1C] = 0xA5
        bus = RegisterBus(transport, address=0x30)

        value = bus.read_register(0x1C)

        assert value == 0xA5
        assert transport.primitives == [
            "start", "write:60", "write:1c", "ack",
            "start", "write:61", "ack",
            "read:1", "nack", "read:1",
            "stop",
        ]

    def test_read_is_not_cached(self, chip, transport):
        bus = RegisterBus(transport)
        chip.registers[0x20] = 0x08
        assert bus.read_register(0x20) == 0x08
        chip.registers[0x20] = 0x04
        assert bus.read_register(0x20) == 0x04

    def test_wrong_address_raises_after_stop(self):
        chip = FakeOz890()
        transport = SimulatedTransport(chip, address=0x31)
        bus = RegisterBus(transport, address=0x30)

        with pytest.raises(BusNackError, match="register address"):
            bus.read_register(0x00)

        assert transport.primitives[-1] == "stop"
        assert "read:1" not in transport.primitives

    def test_missing_read_direction_ack(self):
        transport = MagicMock()
        transport.get_ack.side_effect = [True, False]
        bus = RegisterBus(transport)

        with pytest.raises(BusNackError, match="read address"):
            bus.read_register(0x14)

        transport.read.assert_not_called()
        transport.stop.assert_called_once()

    def test_stop_issued_when_transport_raises(self):
        transport = MagicMock()
        transport.write.side_effect = OSError("usb gone")
        bus = RegisterBus(transport)

        with pytest.raises(OSError):
            bus.read_register(0x00)
        transport.stop.assert_called_once()


class TestWriteRegister:
    """Test single-byte register writes."""

    def test_write_framing(self, chip, transport):
        bus = RegisterBus(transport)

        bus.write_register(0x15, 0x10)

        assert transport.primitives == ["start", "write:60", "write:15", "write:10", "stop"]
        assert chip.writes() == [(0x15, 0x10)]

    def test_write_rejects_non_byte(self, transport):
        bus = RegisterBus(transport)
        with pytest.raises(InvalidParameterError):
            bus.write_register(0x15, 0x100)
        assert transport.primitives == []

    def test_invalid_slave_address(self, transport):
        with pytest.raises(InvalidParameterError):
            RegisterBus(transport, address=0x80)
