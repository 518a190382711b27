"""Pydantic models for configuration schema."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourceConfig(BaseModel):
    """Source context configuration."""

    context_lines: int = Field(5, ge=0, le=100)
    max_cached_files: int | None = Field(
        None, ge=1, description="Bound the source cache; None keeps every file loaded"
    )


class FrameConfig(BaseModel):
    """Frame building and filtering configuration."""

    max_depth: int = Field(100, ge=1, le=1000)
    excluded_modules: list[str] = [
        # interpreter and import machinery
        "runpy",
        "importlib._bootstrap",
        "importlib._bootstrap_external",
        # thread and event loop entry points
        "threading",
        "concurrent.futures.thread",
        "asyncio.events",
        "asyncio.base_events",
        "asyncio.runners",
        # unittest
        "unittest.case",
        "unittest.suite",
        "unittest.runner",
        "unittest.main",
        # pytest and its plugin manager
        "_pytest.capture",
        "_pytest.config",
        "_pytest.fixtures",
        "_pytest.logging",
        "_pytest.main",
        "_pytest.python",
        "_pytest.runner",
        "_pytest.skipping",
        "_pytest.threadexception",
        "_pytest.unittest",
        "_pytest.unraisableexception",
        "_pytest.warnings",
        "pluggy._callers",
        "pluggy._hooks",
        "pluggy._manager",
        "pytest",
        "pytest.__main__",
    ]
    main_modules: list[str] = ["main", "__main__"]
    vendor_markers: list[str] = ["vendor", "third_party"]
    generated_name_marker: str = "·"

    @field_validator("generated_name_marker")
    @classmethod
    def validate_generated_name_marker(cls, v: str) -> str:
        """Validate the marker used to encode dots inside function names."""
        if len(v) != 1:
            raise ValueError("Generated name marker must be a single character")
        if v in "./":
            raise ValueError(f"Generated name marker cannot be a separator: {v!r}")
        return v

    @field_validator("vendor_markers")
    @classmethod
    def validate_vendor_markers(cls, v: list[str]) -> list[str]:
        """Reject empty markers, which would match every module."""
        if any(not marker for marker in v):
            raise ValueError("Vendor markers cannot be empty")
        return v


class BridgeConfig(BaseModel):
    """Foreign stack trace bridge configuration."""

    use_exception_tracebacks: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"


class CaptureConfig(BaseSettings):
    """Root configuration for stackcapture."""

    source: SourceConfig = SourceConfig()
    frames: FrameConfig = FrameConfig()
    bridge: BridgeConfig = BridgeConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_prefix="STACKCAPTURE_",
        env_nested_delimiter="__",
    )
