"""
Bootstrap orchestration core.

This package selects the boot variant for a site root, advances it through
its ordered phases and gates command dispatch on the command's requirements.
"""

from boot.base_boot import BaseBoot
from boot.bootstrapper import Bootstrapper, BootstrapState
from boot.command import (
    CommandDescriptor,
    DispatchResult,
    DispatchStatus,
    RequirementResult,
)
from boot.phases import Phase, PhaseTable
from boot.registry import BootRegistry, default_registry

import boot.variants  # noqa: E402,F401  registers the shipped variants

__all__ = [
    "BaseBoot",
    "BootRegistry",
    "Bootstrapper",
    "BootstrapState",
    "CommandDescriptor",
    "DispatchResult",
    "DispatchStatus",
    "Phase",
    "PhaseTable",
    "RequirementResult",
    "default_registry",
]
