"""Configuration: TOML profiles and logging setup."""

from predledger.config.settings import Settings, configure_logging, get_settings

__all__ = ["Settings", "configure_logging", "get_settings"]
