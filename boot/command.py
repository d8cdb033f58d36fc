# boot/command.py
# -*- coding: utf-8 -*-
"""
Command descriptors and the results exchanged with the bootstrapper.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

PhaseRef = Union[int, str]

# Default key holding the phase a command needs when it declares none.
BOOTSTRAP_DEFAULT_KEY = "bootstrap"


@dataclass
class CommandDescriptor:
    """
    A command selected by the command-discovery collaborator.

    `bootstrap_errors` collects the diagnostics that are rendered when the
    command cannot be dispatched.
    """

    name: str
    required_phase: Optional[PhaseRef] = None
    min_version: Optional[str] = None
    core: List[str] = field(default_factory=list)
    defaults: Dict[str, Any] = field(default_factory=dict)
    bootstrap_errors: List[str] = field(default_factory=list)

    def apply_defaults(self, defaults: Mapping[str, Any]) -> None:
        """Merge variant defaults; values the command already has win."""
        for key, value in defaults.items():
            self.defaults.setdefault(key, value)
        if self.required_phase is None:
            self.required_phase = self.defaults.get(BOOTSTRAP_DEFAULT_KEY)


@dataclass(frozen=True)
class RequirementResult:
    """Outcome of requirement enforcement for one command."""

    ok: bool
    diagnostics: Tuple[str, ...] = ()

    @classmethod
    def passed(cls) -> "RequirementResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, *diagnostics: str) -> "RequirementResult":
        return cls(ok=False, diagnostics=tuple(diagnostics))


class DispatchStatus(Enum):
    DISPATCHED = "dispatched"
    REQUIREMENT_NOT_MET = "requirement_not_met"
    COMMAND_NOT_FOUND = "command_not_found"
    BOOTSTRAP_FAILED = "bootstrap_failed"


@dataclass
class DispatchResult:
    """What `bootstrap_and_dispatch` did, and the command's return value."""

    status: DispatchStatus
    command: Optional[CommandDescriptor] = None
    value: Any = None
    phase_index: int = -1
    error: Optional[Exception] = None

    @property
    def proceed(self) -> bool:
        """The dispatch signal: True only when the command was executed."""
        return self.status is DispatchStatus.DISPATCHED
