"""Request authentication and session authorization core."""

__version__ = "0.1.0"
