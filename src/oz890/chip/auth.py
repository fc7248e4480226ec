"""Password-gated bulk rewrite of the EEPROM.

The chip only accepts word writes after the password stored at EEPROM
0x7A has been submitted in authenticate mode and the whole EEPROM has
been erased. An error between the erase and the last word write leaves
the EEPROM partially written; rerun the rewrite to recover.
"""

from __future__ import annotations

from oz890.chip.eeprom import EepromController
from oz890.chip.registers import (
    EE_PASSWORD,
    REG_AUTH_STATUS,
    REG_PASSWORD_HI,
    REG_PASSWORD_LO,
    EepromMode,
)
from oz890.chip.status import AuthenticationState, decode_auth_state
from oz890.exceptions import AuthenticationFailed
from oz890.models.eeprom import EepromImage
from oz890.utils.logging import get_logger

logger = get_logger(__name__)


class EepromAuthenticator:
    """Unlock, erase, and rewrite the EEPROM of a live chip."""

    def __init__(self, controller: EepromController) -> None:
        self._controller = controller

    def authenticate(self) -> AuthenticationState:
        """Submit the stored password and return the decoded outcome.

        The EEPROM is locked again before returning, whatever the outcome.
        """
        device = self._controller.device
        bus = device.bus
        pw_lo, pw_hi = self._controller.read_word(EE_PASSWORD)

        try:
            device.set_mode(EepromMode.AUTHENTICATE)
            bus.write_register(REG_PASSWORD_LO, pw_lo)
            bus.write_register(REG_PASSWORD_HI, pw_hi)
            status = bus.read_register(REG_AUTH_STATUS)
        finally:
            device.lock()

        state = decode_auth_state(status)
        logger.info("eeprom_authentication", state=state.value, status=f"0x{status:02X}")
        if state is not AuthenticationState.SUCCESS:
            raise AuthenticationFailed(state, status)
        return state

    def rewrite(self, image: EepromImage) -> None:
        """Replace the whole EEPROM with *image*.

        Raises:
            ConfigurationError: If the controller is not on a live device.
            AuthenticationFailed: If the password is rejected; nothing is erased.
        """
        device = self._controller.device
        self.authenticate()

        device.set_mode(EepromMode.ERASE)
        logger.info("eeprom_erased")

        for address, byte0, byte1 in image.words():
            self._controller.write_word(address, byte0, byte1)
        logger.info("eeprom_rewritten", words=len(image.words()))
