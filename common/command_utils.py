# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for routing bootstrap diagnostics to the right log level.
"""

import logging
from typing import Dict, Optional

from settings.config_models import SYMBOLS_DEFAULT, BootSettings

module_logger = logging.getLogger(__name__)


def get_symbols(boot_settings: Optional[BootSettings]) -> Dict[str, str]:
    """Return the configured level symbols, or the defaults without settings."""
    if boot_settings is None:
        return SYMBOLS_DEFAULT
    return boot_settings.symbols


def log_boot(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    boot_settings: Optional[BootSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a bootstrap message at the named level.

    Args:
        message (str): The log message to be recorded.
        level (str): The severity level of the log message. Defaults to "info". Common options
            include "debug", "info", "warning", "error", "critical" and "success"
            (logged at info level).
        current_logger (Optional[logging.Logger]): A logger instance to use for logging. If not provided,
            a module-level logger will be used.
        boot_settings (Optional[BootSettings]): Optional settings that can influence logging behavior.
        exc_info (bool): Indicator to include exception details in the log. By default, this is set to False.

    Returns:
        None
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)
