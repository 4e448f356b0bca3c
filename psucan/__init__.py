"""Control of CAN-bus rectifier power supply modules: bus, protocol, serial commands and panel."""

__version__ = "0.1.0"

__all__ = ["__version__"]