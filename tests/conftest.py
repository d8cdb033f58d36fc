# tests/conftest.py
import logging
from typing import Dict, Iterable, List, Mapping, Optional
from unittest.mock import MagicMock

import pytest

from boot.base_boot import BaseBoot
from boot.command import CommandDescriptor, RequirementResult
from boot.phases import Phase
from boot.registry import BootRegistry
from settings.config_models import BootSettings


class RecordingBoot(BaseBoot):
    """Test variant whose phase handlers only record that they ran."""

    def __init__(
        self,
        boot_settings: Optional[BootSettings] = None,
        logger: Optional[logging.Logger] = None,
        phases: Optional[Dict[int, str]] = None,
        aliases: Optional[Mapping[str, int]] = None,
        discovery: Iterable[int] = (0, 1),
        fail_at: Optional[int] = None,
        refuse_at: Optional[int] = None,
        invalid_at: Optional[int] = None,
        claims: bool = True,
        version: Optional[str] = "1.0.0",
        diagnostics: Iterable[str] = (),
    ):
        self.phase_names = phases or {0: "init", 1: "config", 2: "full"}
        self.aliases = dict(aliases or {})
        self.discovery = tuple(discovery)
        self.fail_at = fail_at
        self.refuse_at = refuse_at
        self.invalid_at = invalid_at
        self.claims = claims
        self.detected_version = version
        self.diagnostics = tuple(diagnostics)
        self.executed: List[int] = []
        self.events: List[str] = []
        self.reported: List[Optional[CommandDescriptor]] = []
        self.terminate_calls = 0
        super().__init__(boot_settings, logger or MagicMock(spec=logging.Logger))

    def valid_root(self, path):
        self.events.append("valid_root")
        return self.claims

    def get_version(self, root):
        self.events.append("get_version")
        return self.detected_version

    def define_phases(self):
        return [
            Phase(index, name, self._handler(index), validator=self._validator(index))
            for index, name in self.phase_names.items()
        ]

    def _handler(self, index):
        def handler():
            if index == self.fail_at:
                raise RuntimeError(f"phase {index} exploded")
            if index == self.refuse_at:
                return False
            self.executed.append(index)
            return None

        return handler

    def _validator(self, index):
        return lambda: index != self.invalid_at

    def extra_phase_aliases(self):
        return self.aliases

    def discovery_phase_indices(self):
        return self.discovery

    def enforce_requirement(self, command):
        self.events.append("enforce")
        if self.diagnostics:
            return RequirementResult.failed(*self.diagnostics)
        return super().enforce_requirement(command)

    def report_command_error(self, command):
        self.reported.append(command)
        super().report_command_error(command)

    def terminate(self):
        self.terminate_calls += 1
        self.events.append("terminate")


@pytest.fixture
def recording_boot_class():
    return RecordingBoot


@pytest.fixture
def registry_for():
    """Build a registry whose factories hand out the given instances, in order."""

    def _registry_for(*boots: BaseBoot) -> BootRegistry:
        registry = BootRegistry()
        for position, boot in enumerate(boots):
            registry.add(
                f"variant{position}",
                lambda boot_settings, logger, boot=boot: boot,
            )
        return registry

    return _registry_for


@pytest.fixture
def boot_settings(tmp_path):
    return BootSettings(root=tmp_path, uri="default")


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


def _write(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def drupal8_root(tmp_path):
    root = tmp_path / "d8"
    _write(root / "autoload.php", "<?php\nreturn require __DIR__ . '/vendor/autoload.php';\n")
    _write(
        root / "core" / "lib" / "Drupal.php",
        "<?php\n\nclass Drupal {\n\n  const VERSION = '8.9.20';\n\n}\n",
    )
    _write(
        root / "sites" / "default" / "settings.php",
        "<?php\n$databases['default']['default'] = ['driver' => 'mysql'];\n",
    )
    return root


@pytest.fixture
def drupal7_root(tmp_path):
    root = tmp_path / "d7"
    _write(
        root / "includes" / "bootstrap.inc",
        "<?php\n\n/**\n * The current system version.\n */\ndefine('VERSION', '7.98');\n",
    )
    _write(root / "modules" / "system" / "system.module", "<?php\n")
    _write(
        root / "sites" / "default" / "settings.php",
        "<?php\n$databases = array();\n",
    )
    return root
