"""Serial-to-Bluetooth bridge with a configuration menu, CRC-checked settings and battery helpers."""

__version__ = "0.1.0"
__all__ = ["battery", "bridge", "config", "menu"]