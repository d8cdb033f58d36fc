# settings/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for siteboot.

Handles loading settings from Pydantic model defaults, YAML files,
environment variables, and command-line overrides, applying a specific
order of precedence:
1. Pydantic Model Defaults
2. Environment Variables (via Pydantic's BaseSettings)
3. YAML Configuration File
4. Command-Line Arguments
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .config_models import CONFIG_FILE_DEFAULT, BootSettings

module_logger = logging.getLogger(__name__)


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates a dictionary `source` with values from `overrides`.

    Nested dictionaries are merged key by key. A `None` override never
    replaces an existing value, so unset CLI options do not clobber values
    coming from the YAML file or the environment.

    Parameters:
        source: Dict[str, Any]
            The dictionary to be updated. This dictionary gets modified in place.
        overrides: Dict[str, Any]
            The dictionary containing values to update or add to the `source`.

    Returns:
        Dict[str, Any]:
            The updated dictionary after applying all `overrides`.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def find_config_file(
    config_file_path: str, start_dir: Optional[Path] = None
) -> Optional[Path]:
    """
    Locate the YAML configuration file.

    An absolute path is returned as is when it exists. A relative path is
    looked up in `start_dir` (the working directory by default) and then in
    each parent directory until the filesystem root is reached.
    """
    candidate = Path(config_file_path)
    if candidate.is_absolute():
        return candidate if candidate.is_file() else None

    current = (start_dir or Path.cwd()).resolve()
    while True:
        if (current / candidate).is_file():
            return current / candidate
        if current.parent == current:
            return None
        current = current.parent


def _read_yaml_config(
    yaml_config_path: Path, logger_to_use: logging.Logger
) -> Dict[str, Any]:
    try:
        with open(yaml_config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger_to_use.warning(
            f"Could not parse YAML config file '{yaml_config_path}': {e}. Using defaults and environment variables."
        )
        return {}
    except IOError as e:
        logger_to_use.warning(
            f"Could not read config file '{yaml_config_path}': {e}. Using defaults and environment variables."
        )
        return {}

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        logger_to_use.warning(
            f"Config file '{yaml_config_path}' does not contain a valid YAML dictionary. Ignoring."
        )
        return {}

    logger_to_use.info(f"Loaded configuration from {yaml_config_path}")
    return yaml_data


def load_boot_settings(
    cli_overrides: Optional[Dict[str, Any]] = None,
    config_file_path: str = CONFIG_FILE_DEFAULT,
    current_logger: Optional[logging.Logger] = None,
    start_dir: Optional[Path] = None,
) -> BootSettings:
    """
    Loads siteboot settings with the following precedence:
    1. Pydantic Model Defaults.
    2. Environment Variables (`SITEBOOT_*`, loaded by BaseSettings).
    3. Values from the YAML configuration file.
    4. Command-line overrides (highest precedence). Keys whose value is
       None are treated as "not given".

    Args:
        cli_overrides: Mapping of setting names to values from the CLI.
        config_file_path: Path to the YAML configuration file.
        current_logger: Optional logger to use instead of the module logger.
        start_dir: Directory where the upward search for the config file starts.

    Returns:
        An instance of BootSettings with the fully resolved configuration.
    """
    logger_to_use = current_logger if current_logger else module_logger

    current_values_dict = BootSettings().model_dump(exclude_defaults=False)

    yaml_config_path = find_config_file(config_file_path, start_dir)
    if yaml_config_path:
        current_values_dict = _deep_update(
            current_values_dict,
            _read_yaml_config(yaml_config_path, logger_to_use),
        )
    else:
        logger_to_use.info(
            f"Configuration file '{config_file_path}' not found. Using defaults, environment variables, and CLI args."
        )

    if cli_overrides:
        current_values_dict = _deep_update(
            current_values_dict, dict(cli_overrides)
        )

    try:
        final_settings = BootSettings(**current_values_dict)
    except ValidationError as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise SystemExit(f"Configuration error: {e}") from e

    logger_to_use.debug("Successfully loaded and validated siteboot settings")
    return final_settings
