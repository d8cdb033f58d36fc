"""
Base class for all boot variants.

A boot variant knows how to recognise one kind of site installation at a
root path and how to initialise it through an ordered table of phases.
The bootstrapper drives every variant through the same interface.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from packaging.version import InvalidVersion, Version

from boot.command import CommandDescriptor, PhaseRef, RequirementResult
from boot.exceptions import UnknownPhaseError
from boot.phases import (
    Phase,
    PhaseTable,
    build_alias_map,
    build_discovery_set,
)
from common.command_utils import get_symbols, log_boot
from settings.config_models import BootSettings

module_logger = logging.getLogger(__name__)


def render_command_error(
    command: Optional[CommandDescriptor],
    current_logger: Optional[logging.Logger] = None,
    boot_settings: Optional[BootSettings] = None,
) -> None:
    """
    Log why a command was not dispatched.

    Every entry of `command.bootstrap_errors` is logged in order. Without
    any, a generic "command not found" diagnostic is logged instead.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(boot_settings)

    if command is not None and command.bootstrap_errors:
        for message in command.bootstrap_errors:
            log_boot(
                f"{symbols.get('error', '❌')} {message}",
                "error",
                logger_to_use,
                boot_settings,
            )
        return

    if command is not None and command.name:
        message = f"Command '{command.name}' could not be found."
    else:
        message = "The requested command could not be found."
    log_boot(
        f"{symbols.get('error', '❌')} {message}",
        "error",
        logger_to_use,
        boot_settings,
    )


class BaseBoot(ABC):
    """
    Base class for all boot variants.

    Subclasses implement root detection (`valid_root`, `get_version`) and
    declare their phases in `define_phases`. The phase table, alias map and
    discovery set are built once in the constructor and never change.
    """

    name: str = "base"

    def __init__(
        self,
        boot_settings: Optional[BootSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the variant.

        Args:
            boot_settings: The siteboot settings.
            logger: Optional logger instance. If not provided, a new logger will be created.
        """
        self.boot_settings = boot_settings
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.uri: Optional[str] = None
        self.root: Optional[Path] = None
        self.version: Optional[str] = None

        self._phase_table = PhaseTable(self.define_phases())
        self._phase_map = build_alias_map(
            self._phase_table, self.extra_phase_aliases()
        )
        self._init_phases = build_discovery_set(
            self._phase_table, self.discovery_phase_indices()
        )

    # --- Root detection -------------------------------------------------

    @abstractmethod
    def valid_root(self, path: Union[str, Path]) -> bool:
        """
        Check whether `path` is the root of a site this variant can boot.

        Implementations should be written so that only one registered
        variant claims any given path.
        """

    @abstractmethod
    def get_version(self, root: Union[str, Path]) -> Optional[str]:
        """Return the version string of the software at `root`, if known."""

    def set_uri(self, uri: str) -> None:
        """Inject the URI of the site to bootstrap within a multi-site root."""
        self.uri = uri

    def set_root(self, root: Union[str, Path], version: Optional[str] = None) -> None:
        """Record the selected root and its detected version."""
        self.root = Path(root)
        self.version = version

    # --- Phase table ----------------------------------------------------

    @abstractmethod
    def define_phases(self) -> Iterable[Phase]:
        """Declare the phases of this variant."""

    def extra_phase_aliases(self) -> Mapping[str, int]:
        """Shorthands in addition to each phase's own name and `max`."""
        return {}

    def discovery_phase_indices(self) -> Iterable[int]:
        """Phases to stop at while looking for commands. Defaults to the first one."""
        return [self._phase_table.lowest]

    @property
    def phase_table(self) -> PhaseTable:
        return self._phase_table

    def bootstrap_phases(self) -> Mapping[int, Callable[[], Optional[bool]]]:
        return self._phase_table.handlers()

    def bootstrap_phase_map(self) -> Mapping[str, int]:
        return self._phase_map

    def bootstrap_init_phases(self) -> FrozenSet[int]:
        return self._init_phases

    def look_up_phase_index(self, phase: PhaseRef) -> int:
        """
        Convert a phase shorthand or index to a phase index.

        Raises:
            UnknownPhaseError: If the value is neither a defined index nor a known shorthand.
        """
        if isinstance(phase, int) and not isinstance(phase, bool):
            if phase in self._phase_table:
                return phase
        elif isinstance(phase, str):
            key = phase.strip().lower()
            if key in self._phase_map:
                return self._phase_map[key]
            if key.isdigit() and int(key) in self._phase_table:
                return int(key)
        raise UnknownPhaseError(phase, self.name)

    # --- Commands -------------------------------------------------------

    def command_defaults(self) -> Dict[str, Any]:
        """Default values added to every command."""
        return {}

    def enforce_requirement(self, command: CommandDescriptor) -> RequirementResult:
        """
        Check the command's declared requirements against this site.

        The base implementation checks `min_version`. It never advances
        phases or touches bootstrap state.
        """
        diagnostics = self._check_min_version(command)
        if diagnostics:
            return RequirementResult.failed(*diagnostics)
        return RequirementResult.passed()

    def _check_min_version(self, command: CommandDescriptor) -> List[str]:
        if not command.min_version:
            return []
        if not self.version:
            return [
                f"Command '{command.name}' needs version {command.min_version} or later, "
                f"but the version of the site at '{self.root}' could not be determined."
            ]
        try:
            too_old = Version(self.version) < Version(command.min_version)
        except InvalidVersion as e:
            return [
                f"Command '{command.name}' declares a version requirement that cannot be compared: {e}"
            ]
        if too_old:
            return [
                f"Command '{command.name}' needs version {command.min_version} or later; "
                f"the site at '{self.root}' runs {self.version}."
            ]
        return []

    def report_command_error(self, command: Optional[CommandDescriptor]) -> None:
        """Report a command that was not found or failed its requirements."""
        render_command_error(command, self.logger, self.boot_settings)

    def terminate(self) -> None:
        """Shutdown hook, called once at the end of every run."""
        self.logger.debug(f"Terminating {self.name} bootstrap")
