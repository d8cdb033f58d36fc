# settings/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for siteboot configuration.

This module defines the structured settings for the bootstrap core,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
"""

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
SITE_URI_DEFAULT: str = "default"
LOG_LEVEL_DEFAULT: str = "INFO"
LOG_PREFIX_DEFAULT: str = "[SITEBOOT]"
CONFIG_FILE_DEFAULT: str = "siteboot.yaml"

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}


class BootSettings(BaseSettings):
    """Main siteboot settings."""
    model_config = SettingsConfigDict(env_prefix="SITEBOOT_", extra="ignore")

    root: Optional[Path] = Field(
        default=None,
        description="Filesystem root of the site installation. Defaults to the current directory.",
    )
    uri: str = Field(
        default=SITE_URI_DEFAULT,
        description="Which site of a multi-site root to bootstrap.",
    )
    log_level: str = Field(default=LOG_LEVEL_DEFAULT, description="Logging level name.")
    log_prefix: str = Field(default=LOG_PREFIX_DEFAULT, description="Prefix for log messages.")
    log_file: Optional[str] = Field(default=None, description="Optional path of a log file.")
    enabled_variants: Optional[List[str]] = Field(
        default=None,
        description="Ordered subset of registered variant names to try. None tries all of them.",
    )

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("uri")
    @classmethod
    def _non_empty_uri(cls, value: str) -> str:
        value = value.strip()
        return value or SITE_URI_DEFAULT

    def resolved_root(self) -> Path:
        """Return the configured root, falling back to the working directory."""
        return Path(self.root) if self.root else Path.cwd()
