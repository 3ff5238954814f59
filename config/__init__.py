"""Configuration module for the donation vault engine."""

from .settings import Settings, configure_logging, get_settings

__all__ = ["Settings", "configure_logging", "get_settings"]
