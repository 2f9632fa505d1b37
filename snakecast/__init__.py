"""SnakeCast - pair a handheld controller with a display over the LAN and play Snake."""

__version__ = "0.1.0"
