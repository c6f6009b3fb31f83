"""Core configuration, database wiring, security primitives and errors."""

from lexauth.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
