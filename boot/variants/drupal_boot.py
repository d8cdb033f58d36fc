# boot/variants/drupal_boot.py
# -*- coding: utf-8 -*-
"""
Boot variants for Drupal-style site roots.

Drupal 7 and Drupal 8+ share one phase table and differ only in how a root
is recognised and where the version string lives, so both are expressed as
a `DrupalBoot` configured with a `DrupalLayout`.

The phases shipped here do filesystem-level work only (locating the root,
the site directory and its settings file). Anything that needs the
site's own runtime, such as connecting to its database, is supplied by
the caller as a per-phase hook.
"""

import logging
import re
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit

from boot.base_boot import BaseBoot
from boot.command import BOOTSTRAP_DEFAULT_KEY, CommandDescriptor, RequirementResult
from boot.phases import Phase
from boot.registry import default_registry
from common.command_utils import log_boot
from settings.config_models import BootSettings

module_logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "settings.php"
DEFAULT_SITE_DIR = "default"
DATABASES_PATTERN = re.compile(r"\$databases\s*(\[|=)")


class DrupalPhase(IntEnum):
    NONE = 0
    ROOT = 1
    SITE = 2
    CONFIGURATION = 3
    DATABASE = 4
    FULL = 5
    LOGIN = 6


PhaseHook = Callable[["DrupalBoot"], Optional[bool]]


@dataclass(frozen=True)
class DrupalLayout:
    """Where a Drupal major release keeps its marker files and version."""

    name: str
    markers: Tuple[str, ...]
    version_file: str
    version_pattern: str
    description: str = ""


DRUPAL8_LAYOUT = DrupalLayout(
    name="drupal8",
    markers=("autoload.php", "core/lib/Drupal.php"),
    version_file="core/lib/Drupal.php",
    version_pattern=r"const\s+VERSION\s*=\s*['\"]([^'\"]+)['\"]",
    description="Drupal 8 and later (core/ directory layout)",
)

DRUPAL7_LAYOUT = DrupalLayout(
    name="drupal7",
    markers=("includes/bootstrap.inc", "modules/system/system.module"),
    version_file="includes/bootstrap.inc",
    version_pattern=r"define\(\s*['\"]VERSION['\"]\s*,\s*['\"]([^'\"]+)['\"]\s*\)",
    description="Drupal 7 (includes/ directory layout)",
)


def site_dir_candidates(uri: str) -> List[str]:
    """
    Site directory names to try for `uri`, most specific first.

    Host parts (with the port in front) are combined with leading path
    segments, e.g. `http://example.com:8080/sub` yields
    `8080.example.com.sub`, `example.com.sub`, ... and finally `default`.
    """
    parsed = urlsplit(uri if "://" in uri else f"http://{uri}")
    host = (parsed.hostname or "").rstrip(".")
    host_parts = [part for part in host.split(".") if part]
    if parsed.port:
        host_parts.insert(0, str(parsed.port))
    path_parts = [part for part in parsed.path.split("/") if part]

    candidates: List[str] = []
    for i in range(len(path_parts), -1, -1):
        for j in range(len(host_parts), 0, -1):
            name = ".".join(host_parts[-j:] + path_parts[:i])
            if name not in candidates:
                candidates.append(name)
    if DEFAULT_SITE_DIR not in candidates:
        candidates.append(DEFAULT_SITE_DIR)
    return candidates


class DrupalBoot(BaseBoot):
    """Bootstraps a Drupal-style site root."""

    def __init__(
        self,
        layout: DrupalLayout,
        boot_settings: Optional[BootSettings] = None,
        logger: Optional[logging.Logger] = None,
        phase_hooks: Optional[Mapping[int, PhaseHook]] = None,
        teardown: Optional[Callable[["DrupalBoot"], None]] = None,
    ):
        self.layout = layout
        self.name = layout.name
        self.phase_hooks: Dict[int, PhaseHook] = dict(phase_hooks or {})
        self.teardown = teardown
        self._version_regex = re.compile(layout.version_pattern)

        self.site_dir: Optional[Path] = None
        self.settings_file: Optional[Path] = None
        self.context: Dict[str, Any] = {}
        super().__init__(boot_settings, logger or module_logger)

    # --- Root detection -------------------------------------------------

    def valid_root(self, path: Union[str, Path]) -> bool:
        root = Path(path)
        if not root.is_dir():
            return False
        return all((root / marker).is_file() for marker in self.layout.markers)

    def get_version(self, root: Union[str, Path]) -> Optional[str]:
        version_path = Path(root) / self.layout.version_file
        try:
            content = version_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            self.logger.warning(f"Could not read version file '{version_path}': {e}")
            return None
        match = self._version_regex.search(content)
        return match.group(1) if match else None

    # --- Phase table ----------------------------------------------------

    def define_phases(self) -> Iterable[Phase]:
        return [
            Phase(DrupalPhase.NONE, "none", self.bootstrap_none,
                  description="No site bootstrap; only the tool itself"),
            Phase(DrupalPhase.ROOT, "root", self.bootstrap_root,
                  validator=self.validate_root, description="Locate the site root"),
            Phase(DrupalPhase.SITE, "site", self.bootstrap_site,
                  validator=self.validate_site, description="Locate the site directory for the URI"),
            Phase(DrupalPhase.CONFIGURATION, "configuration", self.bootstrap_configuration,
                  validator=self.validate_configuration, description="Locate the site settings"),
            Phase(DrupalPhase.DATABASE, "database", self.bootstrap_database,
                  validator=self.validate_database, description="Connect to the site database"),
            Phase(DrupalPhase.FULL, "full", self.bootstrap_full,
                  description="Fully initialise the site runtime"),
            Phase(DrupalPhase.LOGIN, "login", self.bootstrap_login,
                  description="Log in as the requested user"),
        ]

    def extra_phase_aliases(self) -> Mapping[str, int]:
        return {
            "drush": DrupalPhase.NONE,
            "config": DrupalPhase.CONFIGURATION,
            "db": DrupalPhase.DATABASE,
        }

    def discovery_phase_indices(self) -> Iterable[int]:
        return [
            DrupalPhase.NONE,
            DrupalPhase.ROOT,
            DrupalPhase.SITE,
            DrupalPhase.CONFIGURATION,
        ]

    # --- Phase bodies ---------------------------------------------------

    def _run_hook(self, phase: DrupalPhase) -> Optional[bool]:
        hook = self.phase_hooks.get(phase)
        if hook is None:
            return True
        return hook(self)

    def bootstrap_none(self) -> Optional[bool]:
        return self._run_hook(DrupalPhase.NONE)

    def validate_root(self) -> bool:
        return self.root is not None and self.valid_root(self.root)

    def bootstrap_root(self) -> Optional[bool]:
        self.context["root"] = self.root
        self.context["version"] = self.version
        log_boot(f"Site root: {self.root}", "debug", self.logger, self.boot_settings)
        return self._run_hook(DrupalPhase.ROOT)

    def find_site_dir(self) -> Optional[Path]:
        """The first existing `sites/<name>` directory for the current URI."""
        if self.root is None:
            return None
        sites = self.root / "sites"
        for name in site_dir_candidates(self.uri or DEFAULT_SITE_DIR):
            candidate = sites / name
            if candidate.is_dir():
                return candidate
        return None

    def validate_site(self) -> bool:
        return self.find_site_dir() is not None

    def bootstrap_site(self) -> Optional[bool]:
        self.site_dir = self.find_site_dir()
        self.context["site_dir"] = self.site_dir
        log_boot(f"Site directory: {self.site_dir}", "debug", self.logger, self.boot_settings)
        return self._run_hook(DrupalPhase.SITE)

    def validate_configuration(self) -> bool:
        return self.site_dir is not None and (self.site_dir / SETTINGS_FILE_NAME).is_file()

    def bootstrap_configuration(self) -> Optional[bool]:
        self.settings_file = self.site_dir / SETTINGS_FILE_NAME
        self.context["settings_file"] = self.settings_file
        return self._run_hook(DrupalPhase.CONFIGURATION)

    def validate_database(self) -> bool:
        if self.settings_file is None:
            return False
        try:
            content = self.settings_file.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            self.logger.warning(f"Could not read settings file '{self.settings_file}': {e}")
            return False
        return DATABASES_PATTERN.search(content) is not None

    def bootstrap_database(self) -> Optional[bool]:
        return self._run_hook(DrupalPhase.DATABASE)

    def bootstrap_full(self) -> Optional[bool]:
        return self._run_hook(DrupalPhase.FULL)

    def bootstrap_login(self) -> Optional[bool]:
        return self._run_hook(DrupalPhase.LOGIN)

    # --- Commands -------------------------------------------------------

    def command_defaults(self) -> Dict[str, Any]:
        return {BOOTSTRAP_DEFAULT_KEY: "full"}

    def enforce_requirement(self, command: CommandDescriptor) -> RequirementResult:
        diagnostics = self._check_min_version(command) + self._check_core(command)
        if diagnostics:
            return RequirementResult.failed(*diagnostics)
        return RequirementResult.passed()

    def _check_core(self, command: CommandDescriptor) -> List[str]:
        """Check the command's supported core majors, e.g. ["7", "8+"]."""
        if not command.core:
            return []
        supported = ", ".join(command.core)
        major = (self.version or "").split(".")[0]
        if not major.isdigit():
            return [
                f"Command '{command.name}' supports Drupal core {supported}, "
                f"but the core version at '{self.root}' could not be determined."
            ]
        for entry in command.core:
            entry = entry.strip()
            if entry.endswith("+") and entry[:-1].isdigit():
                if int(major) >= int(entry[:-1]):
                    return []
            elif entry == major:
                return []
        return [
            f"Command '{command.name}' supports Drupal core {supported}; "
            f"the site at '{self.root}' runs {self.version}."
        ]

    def terminate(self) -> None:
        if self.teardown is not None:
            self.teardown(self)
        self.site_dir = None
        self.settings_file = None
        self.context.clear()
        super().terminate()


def make_drupal_factory(
    layout: DrupalLayout,
    phase_hooks: Optional[Mapping[int, PhaseHook]] = None,
    teardown: Optional[Callable[[DrupalBoot], None]] = None,
) -> Callable[..., DrupalBoot]:
    """Build a registry factory for `layout` with optional phase hooks."""

    def factory(
        boot_settings: Optional[BootSettings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> DrupalBoot:
        return DrupalBoot(layout, boot_settings, logger, phase_hooks, teardown)

    return factory


default_registry.add(
    DRUPAL8_LAYOUT.name,
    make_drupal_factory(DRUPAL8_LAYOUT),
    {"description": DRUPAL8_LAYOUT.description},
)
default_registry.add(
    DRUPAL7_LAYOUT.name,
    make_drupal_factory(DRUPAL7_LAYOUT),
    {"description": DRUPAL7_LAYOUT.description},
)
