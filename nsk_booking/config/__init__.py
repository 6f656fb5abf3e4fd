"""Configuration module."""

from .settings import (
    NSK_SECRET_ID,
    ConfigurationError,
    SecretRedactionFilter,
    Settings,
    get_settings,
    setup_logging_redaction,
)

__all__ = [
    "NSK_SECRET_ID",
    "ConfigurationError",
    "SecretRedactionFilter",
    "Settings",
    "get_settings",
    "setup_logging_redaction",
]
