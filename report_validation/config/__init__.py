"""Configuration for the report validation pipeline."""

from report_validation.config.settings import (
    PROJECT_ROOT,
    Settings,
    ValidationConfig,
    settings,
)

__all__ = [
    "PROJECT_ROOT",
    "Settings",
    "ValidationConfig",
    "settings",
]
