"""OZ890 register, EEPROM, and decoding layer."""
