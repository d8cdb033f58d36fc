# boot/bootstrapper.py
# -*- coding: utf-8 -*-
"""
Drives the selected boot variant through its phases and gates dispatch.

The bootstrapper selects a variant for the root, advances it phase by phase
(first through the cheap discovery phases, then up to whatever the selected
command needs), enforces the command's requirements, dispatches or reports
the error, and always terminates the variant exactly once.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

from boot.base_boot import BaseBoot, render_command_error
from boot.command import (
    CommandDescriptor,
    DispatchResult,
    DispatchStatus,
    PhaseRef,
)
from boot.exceptions import (
    BootError,
    NoVariantDetected,
    PhaseHandlerFailure,
    PhaseOrderError,
    PhaseValidationError,
    UnknownPhaseError,
)
from boot.phases import MAX_PHASE_ALIAS, Phase
from boot.registry import BootRegistry, default_registry
from common.command_utils import log_boot
from settings.config_models import SITE_URI_DEFAULT, BootSettings

module_logger = logging.getLogger(__name__)

# Phase declarations that need no bootstrapped site at all.
NO_BOOTSTRAP_PHASES = (None, "none")

CommandResolver = Callable[["BootstrapState"], Optional[CommandDescriptor]]
CommandDispatcher = Callable[[CommandDescriptor], Any]


@dataclass
class BootstrapState:
    """Progress of one bootstrap run."""

    site_uri: str = SITE_URI_DEFAULT
    active_variant: Optional[BaseBoot] = None
    current_phase_index: int = -1
    root: Optional[Path] = None
    version: Optional[str] = None
    executed_phases: List[int] = field(default_factory=list)

    @property
    def is_bootstrapped(self) -> bool:
        return self.current_phase_index >= 0


class Bootstrapper:
    """Sequential bootstrap state machine for a single run."""

    def __init__(
        self,
        registry: Optional[BootRegistry] = None,
        boot_settings: Optional[BootSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initializes the Bootstrapper.

        Args:
            registry: Variants to choose from. Defaults to the shipped variants.
            boot_settings: The siteboot settings (root, uri, symbols).
            logger: An optional logger instance.
        """
        self.registry = registry if registry is not None else default_registry
        self.boot_settings = boot_settings or BootSettings()
        self.logger = logger or module_logger
        self.symbols = self.boot_settings.symbols
        self.state = BootstrapState(site_uri=self.boot_settings.uri)
        self._selection_done = False
        self._selection_registry: Optional[BootRegistry] = None
        self._terminated = False
        self._current_command: Optional[CommandDescriptor] = None

    @property
    def active_variant(self) -> Optional[BaseBoot]:
        return self.state.active_variant

    @property
    def current_phase_name(self) -> Optional[str]:
        variant = self.state.active_variant
        if variant is None or not self.state.is_bootstrapped:
            return None
        return variant.phase_table[self.state.current_phase_index].name

    def _log(self, message: str, level: str = "info", exc_info: bool = False) -> None:
        log_boot(message, level, self.logger, self.boot_settings, exc_info=exc_info)

    # --- Selection ------------------------------------------------------

    def set_uri(self, uri: str) -> None:
        """Choose the site to bootstrap. Only allowed before any phase has run."""
        if self.state.is_bootstrapped:
            raise PhaseOrderError(
                "The site URI cannot change after bootstrapping has started"
            )
        self.state.site_uri = uri
        if self.state.active_variant is not None:
            self.state.active_variant.set_uri(uri)

    def select_variant(
        self, root: Optional[Union[str, Path]] = None
    ) -> Optional[BaseBoot]:
        """
        Select the active variant for `root` (the configured root by default).

        Selection happens once per run; later calls return the first result.
        None means no variant claims the root and the run continues without
        a bootstrapped site.
        """
        if self._selection_done:
            return self.state.active_variant

        root_path = (
            Path(root) if root is not None else self.boot_settings.resolved_root()
        )
        registry = self.registry
        if self.boot_settings.enabled_variants is not None:
            registry = registry.restricted_to(self.boot_settings.enabled_variants)

        variant = registry.select_variant(root_path, self.boot_settings, self.logger)
        self._selection_done = True
        self._selection_registry = registry
        self.state.root = root_path

        if variant is None:
            self._log(
                f"{self.symbols.get('info', 'ℹ️')} {NoVariantDetected(root_path)}; continuing without a bootstrapped site."
            )
            return None

        self.state.version = variant.get_version(root_path)
        variant.set_root(root_path, self.state.version)
        variant.set_uri(self.state.site_uri)
        self.state.active_variant = variant
        self._log(
            f"{self.symbols.get('gear', '⚙️')} Selected variant '{variant.name}' "
            f"(version {self.state.version or 'unknown'}) at '{root_path}'"
        )
        return variant

    def _require_variant(self) -> BaseBoot:
        variant = self.state.active_variant
        if variant is None:
            raise NoVariantDetected(self.state.root)
        return variant

    # --- Phase advancing ------------------------------------------------

    def _run_phase(self, phase: Phase, validate: bool = True) -> None:
        variant = self._require_variant()

        if phase.index in self.state.executed_phases:
            raise PhaseOrderError(f"Phase '{phase.name}' ({phase.index}) has already run")
        expected_previous = variant.phase_table.previous_before(phase.index)
        if self.state.current_phase_index != expected_previous:
            raise PhaseOrderError(
                f"Phase '{phase.name}' ({phase.index}) cannot run before phase {expected_previous}"
            )

        if validate:
            try:
                valid = phase.validate()
            except Exception as e:
                raise PhaseValidationError(phase.index, phase.name, str(e)) from e
            if not valid:
                raise PhaseValidationError(
                    phase.index, phase.name, "the site does not meet this phase's preconditions"
                )

        self._log(
            f"{self.symbols.get('step', '➡️')} Bootstrapping phase '{phase.name}' ({phase.index})",
            "debug",
        )
        try:
            result = phase.handler()
        except BootError:
            raise
        except Exception as e:
            self._log(
                f"{self.symbols.get('error', '❌')} Phase '{phase.name}' ({phase.index}) raised: {e}",
                "error",
                exc_info=True,
            )
            raise PhaseHandlerFailure(phase.index, phase.name, str(e)) from e

        if result is False:
            raise PhaseHandlerFailure(phase.index, phase.name, "the handler reported failure")

        self.state.current_phase_index = phase.index
        self.state.executed_phases.append(phase.index)

    def _phase_is_valid(self, phase: Phase, mode: str) -> bool:
        """Run the phase validator for a non-fatal advance; False stops the advance."""
        try:
            valid = phase.validate()
        except Exception as e:
            self._log(f"Validation of phase '{phase.name}' raised: {e}", "debug")
            valid = False
        if not valid:
            self._log(
                f"{self.symbols.get('info', 'ℹ️')} Stopping {mode} before phase '{phase.name}' ({phase.index})",
                "debug",
            )
        return valid

    def discovery_advance(self, target: Optional[PhaseRef] = None) -> int:
        """
        Advance through discovery phases only.

        Stops at the first phase outside the discovery set, after `target`
        (all discovery phases when None), at the end of the table, or
        quietly before a phase whose validator does not pass.

        Returns:
            The current phase index afterwards.
        """
        variant = self.state.active_variant
        if variant is None:
            return self.state.current_phase_index

        discovery = variant.bootstrap_init_phases()
        if target is None:
            target_index = max(discovery)
        else:
            target_index = variant.look_up_phase_index(target)

        while True:
            next_phase = variant.phase_table.next_after(self.state.current_phase_index)
            if (
                next_phase is None
                or next_phase.index > target_index
                or next_phase.index not in discovery
            ):
                break
            if not self._phase_is_valid(next_phase, "discovery"):
                break
            self._run_phase(next_phase, validate=False)
        return self.state.current_phase_index

    def full_advance(self, target: PhaseRef) -> int:
        """
        Advance through every phase up to and including `target`.

        Already completed phases are not run again; a target at or below the
        current phase is a no-op.

        Raises:
            NoVariantDetected: If no variant is active.
            UnknownPhaseError: If `target` does not resolve.
            PhaseHandlerFailure: If a phase fails; progress stops at the last good phase.
        """
        variant = self._require_variant()
        target_index = variant.look_up_phase_index(target)
        for phase in variant.phase_table.phases_between(
            self.state.current_phase_index, target_index
        ):
            self._run_phase(phase)
        return self.state.current_phase_index

    def bootstrap_max(self, target: Optional[PhaseRef] = None) -> int:
        """
        Advance as far as the site allows, up to `target` (the last phase by default).

        Stops quietly before the first phase whose validator does not pass.
        Handler failures still raise.
        """
        variant = self._require_variant()
        if target is None:
            target_index = variant.phase_table.highest
        else:
            target_index = variant.look_up_phase_index(target)

        for phase in variant.phase_table.phases_between(
            self.state.current_phase_index, target_index
        ):
            if not self._phase_is_valid(phase, "best-effort bootstrap"):
                break
            self._run_phase(phase, validate=False)
        return self.state.current_phase_index

    def advance_for_command(self, command: CommandDescriptor) -> int:
        """Bootstrap to the phase the command declares."""
        required = command.required_phase
        if isinstance(required, str) and required.strip().lower() == MAX_PHASE_ALIAS:
            return self.bootstrap_max()
        if required is None:
            return self.state.current_phase_index
        return self.full_advance(required)

    # --- Dispatch -------------------------------------------------------

    def bootstrap_and_dispatch(
        self,
        resolver: CommandResolver,
        dispatcher: CommandDispatcher,
        root: Optional[Union[str, Path]] = None,
    ) -> DispatchResult:
        """
        Run a whole bootstrap: select, discover, advance, enforce, dispatch.

        `resolver` is asked for the command after each discovery phase and
        may return None while the command is not yet known. `dispatcher`
        executes the command once its requirements hold. Bootstrap errors are
        reported and returned in the result; the variant is terminated
        exactly once whatever happens.
        """
        try:
            try:
                variant = self.select_variant(root)
                if variant is None:
                    return self._dispatch_without_variant(resolver, dispatcher)
                return self._dispatch_with_variant(variant, resolver, dispatcher)
            except BootError as e:
                return self._bootstrap_failed(e)
        finally:
            self.terminate()

    def _dispatch_with_variant(
        self,
        variant: BaseBoot,
        resolver: CommandResolver,
        dispatcher: CommandDispatcher,
    ) -> DispatchResult:
        command: Optional[CommandDescriptor] = None

        for phase_index in sorted(variant.bootstrap_init_phases()):
            self.discovery_advance(phase_index)
            candidate = resolver(self.state)
            if candidate is None:
                continue

            command = candidate
            self._current_command = command
            command.apply_defaults(variant.command_defaults())
            self.advance_for_command(command)

            requirement = variant.enforce_requirement(command)
            if requirement.ok:
                return self._dispatch(command, dispatcher)
            command.bootstrap_errors[:] = list(requirement.diagnostics)

        if command is None:
            self._report(None)
            return DispatchResult(
                DispatchStatus.COMMAND_NOT_FOUND,
                phase_index=self.state.current_phase_index,
            )

        self._report(command)
        return DispatchResult(
            DispatchStatus.REQUIREMENT_NOT_MET,
            command=command,
            phase_index=self.state.current_phase_index,
        )

    def _dispatch_without_variant(
        self, resolver: CommandResolver, dispatcher: CommandDispatcher
    ) -> DispatchResult:
        command = resolver(self.state)
        if command is None:
            self._report(None)
            return DispatchResult(DispatchStatus.COMMAND_NOT_FOUND)

        self._current_command = command
        if self._needs_no_bootstrap(command.required_phase):
            return self._dispatch(command, dispatcher)

        command.bootstrap_errors.append(
            f"Command '{command.name}' needs bootstrap phase '{command.required_phase}', "
            f"but {NoVariantDetected(self.state.root)}."
        )
        self._report(command)
        return DispatchResult(DispatchStatus.REQUIREMENT_NOT_MET, command=command)

    def _needs_no_bootstrap(self, required: Optional[PhaseRef]) -> bool:
        """
        Whether a command can run without a site.

        True for None and "none", and for any index or shorthand that a
        registered variant resolves to its lowest phase (e.g. 0 or "drush").
        """
        if isinstance(required, str):
            required = required.strip().lower()
        if required in NO_BOOTSTRAP_PHASES:
            return True

        registry = self._selection_registry or self.registry
        for variant in registry.create_variants(self.boot_settings, self.logger):
            try:
                index = variant.look_up_phase_index(required)
            except UnknownPhaseError:
                continue
            if index == variant.phase_table.lowest:
                return True
        return False

    def _dispatch(
        self, command: CommandDescriptor, dispatcher: CommandDispatcher
    ) -> DispatchResult:
        self._log(
            f"{self.symbols.get('rocket', '🚀')} Dispatching '{command.name}' at phase "
            f"{self.current_phase_name or 'none'}",
            "debug",
        )
        value = dispatcher(command)
        return DispatchResult(
            DispatchStatus.DISPATCHED,
            command=command,
            value=value,
            phase_index=self.state.current_phase_index,
        )

    def _bootstrap_failed(self, error: BootError) -> DispatchResult:
        self._log(
            f"{self.symbols.get('critical', '🔥')} Bootstrap stopped at phase "
            f"{self.current_phase_name or 'none'}: {error}",
            "error",
        )
        command = self._current_command
        if command is not None:
            command.bootstrap_errors.append(str(error))
        self._report(command)
        return DispatchResult(
            DispatchStatus.BOOTSTRAP_FAILED,
            command=command,
            phase_index=self.state.current_phase_index,
            error=error,
        )

    def _report(self, command: Optional[CommandDescriptor]) -> None:
        variant = self.state.active_variant
        try:
            if variant is None:
                render_command_error(command, self.logger, self.boot_settings)
            else:
                variant.report_command_error(command)
        except Exception:
            self._log(
                f"{self.symbols.get('error', '❌')} Reporting the command error failed",
                "error",
                exc_info=True,
            )

    def terminate(self) -> None:
        """Terminate the active variant. Runs at most once; a no-op without a variant."""
        if self._terminated:
            return
        self._terminated = True
        variant = self.state.active_variant
        if variant is None:
            return
        variant.terminate()
        self._log(f"{self.symbols.get('sparkles', '✨')} Bootstrap of '{variant.name}' terminated", "debug")
