"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    BridgeConfig,
    CaptureConfig,
    FrameConfig,
    LoggingConfig,
    SourceConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "CaptureConfig",
    # Sections
    "SourceConfig",
    "FrameConfig",
    "BridgeConfig",
    "LoggingConfig",
]
