# -*- coding: utf-8 -*-
"""
Tests for the bootstrap state machine.
"""

from unittest.mock import MagicMock, call

import pytest

from boot.bootstrapper import Bootstrapper
from boot.command import CommandDescriptor, DispatchStatus
from boot.exceptions import (
    NoVariantDetected,
    PhaseHandlerFailure,
    PhaseOrderError,
    PhaseValidationError,
    UnknownPhaseError,
)
from settings.config_models import BootSettings


def _bootstrapper(registry, boot_settings):
    return Bootstrapper(registry, boot_settings, logger=MagicMock())


class TestSelection:
    def test_selects_variant_and_records_version(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(version="2.1.0")
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)

        assert bootstrapper.select_variant() is boot
        assert bootstrapper.state.active_variant is boot
        assert bootstrapper.state.version == "2.1.0"
        assert bootstrapper.state.root == boot_settings.root
        assert boot.root == boot_settings.root
        assert boot.version == "2.1.0"
        assert boot.uri == "default"

    def test_selection_happens_once(
        self, recording_boot_class, registry_for, boot_settings, tmp_path
    ):
        boot = recording_boot_class()
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)

        first = bootstrapper.select_variant()
        second = bootstrapper.select_variant(tmp_path / "elsewhere")

        assert first is second is boot
        assert boot.events.count("get_version") == 1

    def test_no_variant_is_not_an_error(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(claims=False)
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)

        assert bootstrapper.select_variant() is None
        assert bootstrapper.state.active_variant is None
        assert "get_version" not in boot.events

    def test_enabled_variants_restrict_selection(
        self, recording_boot_class, registry_for, tmp_path
    ):
        first = recording_boot_class()
        second = recording_boot_class()
        settings = BootSettings(root=tmp_path, enabled_variants=["variant1"])
        bootstrapper = _bootstrapper(registry_for(first, second), settings)

        assert bootstrapper.select_variant() is second

    def test_set_uri_before_phases(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class()
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        bootstrapper.set_uri("example.com")

        assert bootstrapper.state.site_uri == "example.com"
        assert boot.uri == "example.com"

    def test_set_uri_after_phases_is_rejected(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class()
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()
        bootstrapper.discovery_advance(0)

        with pytest.raises(PhaseOrderError):
            bootstrapper.set_uri("example.com")


class TestAdvancing:
    def test_discovery_then_full_advance(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(aliases={"everything": 2}, discovery=(0, 1))
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        assert bootstrapper.discovery_advance() == 1
        assert boot.executed == [0, 1]

        assert bootstrapper.full_advance("everything") == 2
        assert boot.executed == [0, 1, 2]
        assert bootstrapper.state.current_phase_index == 2
        assert bootstrapper.current_phase_name == "full"

    def test_discovery_never_leaves_discovery_set(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(discovery=(0,))
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        bootstrapper.discovery_advance(2)

        assert boot.executed == [0]
        assert bootstrapper.state.current_phase_index == 0

    def test_discovery_stops_before_invalid_phase(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(discovery=(0, 1), invalid_at=1)
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        assert bootstrapper.discovery_advance() == 0
        assert boot.executed == [0]

    def test_discovery_stops_at_target(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(discovery=(0, 1))
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        bootstrapper.discovery_advance("init")

        assert boot.executed == [0]

    def test_full_advance_is_idempotent(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class()
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        bootstrapper.full_advance(2)
        bootstrapper.full_advance(1)
        bootstrapper.full_advance("full")

        assert boot.executed == [0, 1, 2]
        assert bootstrapper.state.executed_phases == [0, 1, 2]

    def test_sparse_indices_run_in_order(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(
            phases={10: "c", 0: "a", 5: "b"}, discovery=(0,)
        )
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        bootstrapper.full_advance("c")

        assert boot.executed == [0, 5, 10]

    def test_handler_failure_stops_at_last_good_phase(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(fail_at=1)
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        with pytest.raises(PhaseHandlerFailure) as excinfo:
            bootstrapper.full_advance(2)

        assert excinfo.value.index == 1
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert bootstrapper.state.current_phase_index == 0
        assert boot.executed == [0]

    def test_handler_returning_false_is_a_failure(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(refuse_at=2)
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        with pytest.raises(PhaseHandlerFailure):
            bootstrapper.full_advance(2)

        assert bootstrapper.state.current_phase_index == 1

    def test_failed_validation_blocks_full_advance(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(invalid_at=2)
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        with pytest.raises(PhaseValidationError):
            bootstrapper.full_advance(2)

        assert boot.executed == [0, 1]

    def test_bootstrap_max_stops_quietly(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(invalid_at=2)
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        assert bootstrapper.bootstrap_max() == 1
        assert boot.executed == [0, 1]

    def test_unknown_phase(self, recording_boot_class, registry_for, boot_settings):
        boot = recording_boot_class()
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        with pytest.raises(UnknownPhaseError):
            bootstrapper.full_advance("nonexistent")
        assert boot.executed == []

    def test_phase_cannot_run_out_of_order(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class()
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        bootstrapper.select_variant()

        with pytest.raises(PhaseOrderError):
            bootstrapper._run_phase(boot.phase_table[2])

    def test_full_advance_needs_a_variant(
        self, recording_boot_class, registry_for, boot_settings
    ):
        bootstrapper = _bootstrapper(
            registry_for(recording_boot_class(claims=False)), boot_settings
        )
        bootstrapper.select_variant()

        with pytest.raises(NoVariantDetected):
            bootstrapper.full_advance(0)
        assert bootstrapper.discovery_advance() == -1


class TestBootstrapAndDispatch:
    def test_dispatches_after_discovery_and_full_advance(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(discovery=(0, 1))
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("cache-clear", required_phase="full")
        seen_phases = []

        def resolver(state):
            seen_phases.append(state.current_phase_index)
            return command if state.current_phase_index == 1 else None

        dispatcher = MagicMock(return_value="cleared")

        result = bootstrapper.bootstrap_and_dispatch(resolver, dispatcher)

        assert result.proceed is True
        assert result.status is DispatchStatus.DISPATCHED
        assert result.value == "cleared"
        assert result.phase_index == 2
        assert seen_phases == [0, 1]
        assert boot.executed == [0, 1, 2]
        dispatcher.assert_called_once_with(command)
        assert boot.terminate_calls == 1

    def test_phase_index_never_decreases(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(discovery=(0, 1))
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("status", required_phase="full")
        seen_phases = []

        def resolver(state):
            seen_phases.append(state.current_phase_index)
            return command

        bootstrapper.bootstrap_and_dispatch(resolver, MagicMock())

        assert seen_phases == sorted(seen_phases)
        assert len(boot.executed) == len(set(boot.executed))

    def test_root_without_variant(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(claims=False)
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("cache-clear", required_phase="full")
        dispatcher = MagicMock()

        result = bootstrapper.bootstrap_and_dispatch(lambda state: command, dispatcher)

        assert result.status is DispatchStatus.REQUIREMENT_NOT_MET
        assert result.proceed is False
        assert len(command.bootstrap_errors) == 1
        assert "needs bootstrap phase 'full'" in command.bootstrap_errors[0]
        dispatcher.assert_not_called()
        assert boot.terminate_calls == 0

    def test_root_without_variant_runs_commands_needing_no_bootstrap(
        self, recording_boot_class, registry_for, boot_settings
    ):
        bootstrapper = _bootstrapper(
            registry_for(recording_boot_class(claims=False)), boot_settings
        )
        command = CommandDescriptor("help", required_phase="none")

        result = bootstrapper.bootstrap_and_dispatch(
            lambda state: command, MagicMock(return_value=0)
        )

        assert result.proceed is True
        assert result.phase_index == -1

    @pytest.mark.parametrize("required", [0, "0", "boot", " BOOT "])
    def test_root_without_variant_resolves_lowest_phase_shorthands(
        self, recording_boot_class, registry_for, boot_settings, required
    ):
        unclaimed = recording_boot_class(claims=False, aliases={"boot": 0})
        bootstrapper = _bootstrapper(registry_for(unclaimed), boot_settings)
        command = CommandDescriptor("version", required_phase=required)
        dispatcher = MagicMock(return_value="1.0")

        result = bootstrapper.bootstrap_and_dispatch(lambda state: command, dispatcher)

        assert result.status is DispatchStatus.DISPATCHED
        dispatcher.assert_called_once_with(command)
        assert unclaimed.executed == []

    @pytest.mark.parametrize("required", ["config", 1, "warp"])
    def test_root_without_variant_rejects_other_phases(
        self, recording_boot_class, registry_for, boot_settings, required
    ):
        unclaimed = recording_boot_class(claims=False)
        bootstrapper = _bootstrapper(registry_for(unclaimed), boot_settings)
        command = CommandDescriptor("sql-dump", required_phase=required)

        result = bootstrapper.bootstrap_and_dispatch(lambda state: command, MagicMock())

        assert result.status is DispatchStatus.REQUIREMENT_NOT_MET

    def test_invalid_discovery_phase_means_command_not_found(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(discovery=(0, 1), invalid_at=1)
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        dispatcher = MagicMock()

        result = bootstrapper.bootstrap_and_dispatch(lambda state: None, dispatcher)

        assert result.status is DispatchStatus.COMMAND_NOT_FOUND
        assert result.error is None
        assert result.phase_index == 0
        assert boot.executed == [0]
        assert boot.reported == [None]
        assert boot.terminate_calls == 1
        dispatcher.assert_not_called()

    def test_command_not_found(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class()
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)

        result = bootstrapper.bootstrap_and_dispatch(lambda state: None, MagicMock())

        assert result.status is DispatchStatus.COMMAND_NOT_FOUND
        assert boot.reported == [None]
        boot.logger.error.assert_called_once_with(
            "❌ The requested command could not be found.", exc_info=False
        )
        assert boot.terminate_calls == 1

    def test_phase_failure_is_reported_and_terminated(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(fail_at=1, discovery=(0, 1))
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        dispatcher = MagicMock()

        result = bootstrapper.bootstrap_and_dispatch(lambda state: None, dispatcher)

        assert result.status is DispatchStatus.BOOTSTRAP_FAILED
        assert isinstance(result.error, PhaseHandlerFailure)
        assert bootstrapper.state.current_phase_index == 0
        assert boot.reported == [None]
        assert boot.terminate_calls == 1
        dispatcher.assert_not_called()

    def test_phase_failure_is_added_to_command_errors(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(fail_at=2, discovery=(0,))
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("updatedb", required_phase="full")

        result = bootstrapper.bootstrap_and_dispatch(lambda state: command, MagicMock())

        assert result.status is DispatchStatus.BOOTSTRAP_FAILED
        assert result.command is command
        assert command.bootstrap_errors == [str(result.error)]
        assert boot.reported == [command]
        assert bootstrapper.state.current_phase_index == 1

    def test_unknown_required_phase_fails_dispatch(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class()
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("odd", required_phase="warp")

        result = bootstrapper.bootstrap_and_dispatch(lambda state: command, MagicMock())

        assert result.status is DispatchStatus.BOOTSTRAP_FAILED
        assert isinstance(result.error, UnknownPhaseError)
        assert boot.terminate_calls == 1

    def test_requirement_diagnostics_are_reported_in_order(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(diagnostics=("first problem", "second problem"))
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("deploy", required_phase="config")
        dispatcher = MagicMock()

        result = bootstrapper.bootstrap_and_dispatch(lambda state: command, dispatcher)

        assert result.status is DispatchStatus.REQUIREMENT_NOT_MET
        assert result.proceed is False
        assert command.bootstrap_errors == ["first problem", "second problem"]
        assert boot.logger.error.call_args_list == [
            call("❌ first problem", exc_info=False),
            call("❌ second problem", exc_info=False),
        ]
        dispatcher.assert_not_called()
        assert boot.terminate_calls == 1

    def test_min_version_requirement(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(version="1.0.0")
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("upgrade", required_phase="init", min_version="2.0")

        result = bootstrapper.bootstrap_and_dispatch(lambda state: command, MagicMock())

        assert result.status is DispatchStatus.REQUIREMENT_NOT_MET
        assert "needs version 2.0 or later" in command.bootstrap_errors[0]

    def test_terminate_runs_when_dispatcher_raises(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class()
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("broken", required_phase="init")

        with pytest.raises(ValueError):
            bootstrapper.bootstrap_and_dispatch(
                lambda state: command, MagicMock(side_effect=ValueError("boom"))
            )

        assert boot.terminate_calls == 1

    def test_terminate_runs_once(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class()
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("status", required_phase="init")

        bootstrapper.bootstrap_and_dispatch(lambda state: command, MagicMock())
        bootstrapper.terminate()

        assert boot.terminate_calls == 1
        assert boot.events[-1] == "terminate"

    def test_failing_reporter_does_not_escape(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class()
        boot.report_command_error = MagicMock(side_effect=RuntimeError("render failed"))
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)

        result = bootstrapper.bootstrap_and_dispatch(lambda state: None, MagicMock())

        assert result.status is DispatchStatus.COMMAND_NOT_FOUND
        assert boot.terminate_calls == 1

    def test_command_defaults_fill_required_phase(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class()
        boot.command_defaults = lambda: {"bootstrap": "config", "format": "table"}
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("report", defaults={"format": "json"})

        result = bootstrapper.bootstrap_and_dispatch(lambda state: command, MagicMock())

        assert result.proceed is True
        assert command.required_phase == "config"
        assert command.defaults == {"format": "json", "bootstrap": "config"}
        assert result.phase_index == 1

    def test_max_phase_bootstraps_as_far_as_possible(
        self, recording_boot_class, registry_for, boot_settings
    ):
        boot = recording_boot_class(invalid_at=2)
        bootstrapper = _bootstrapper(registry_for(boot), boot_settings)
        command = CommandDescriptor("status", required_phase="max")

        result = bootstrapper.bootstrap_and_dispatch(lambda state: command, MagicMock())

        assert result.proceed is True
        assert result.phase_index == 1
