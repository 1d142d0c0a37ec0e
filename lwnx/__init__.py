"""Client for the LWNX serial packet protocol: packets, serial transport and a command line tool."""

__version__ = "0.1.0"
__all__ = ["cli", "protocol", "serial_port"]