"""oz890 - inspect and reconfigure OZ890 battery-management controllers."""

__version__ = "0.3.0"
