"""
Configuration for siteboot.

This package provides the Pydantic settings model and the loader that
merges defaults, environment variables, YAML files and CLI overrides.
"""

from settings.config_loader import load_boot_settings
from settings.config_models import BootSettings

__all__ = ["BootSettings", "load_boot_settings"]
