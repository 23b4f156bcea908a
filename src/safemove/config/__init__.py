"""Configuration module for SafeMove."""

from .manager import DEFAULT_PATH, ConfigManager
from .models import (
    ZONE_NAMES,
    DatabaseSettings,
    LoggingSettings,
    SafeMoveConfig,
    TransferSettings,
    ZoneSettings,
)

__all__ = [
    "ZONE_NAMES",
    "SafeMoveConfig",
    "ZoneSettings",
    "TransferSettings",
    "LoggingSettings",
    "DatabaseSettings",
    "ConfigManager",
    "DEFAULT_PATH",
]
