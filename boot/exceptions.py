# boot/exceptions.py
# -*- coding: utf-8 -*-
"""
Exceptions raised while selecting a variant and advancing bootstrap phases.
"""

from typing import Optional, Union


class BootError(Exception):
    """Base class for all bootstrap errors."""


class NoVariantDetected(BootError):
    """No registered variant claims the given root."""

    def __init__(self, root):
        self.root = root
        super().__init__(f"No supported site was found at root '{root}'")


class UnknownPhaseError(BootError):
    """A phase shorthand or index does not resolve for the active variant."""

    def __init__(self, phase: Union[int, str, None], variant_name: Optional[str] = None):
        self.phase = phase
        self.variant_name = variant_name
        where = f" for variant '{variant_name}'" if variant_name else ""
        super().__init__(f"Unknown bootstrap phase {phase!r}{where}")


class PhaseOrderError(BootError):
    """A phase was requested before all of its predecessors had run."""


class PhaseHandlerFailure(BootError):
    """A phase handler raised or reported failure."""

    def __init__(self, index: int, name: str, message: str):
        self.index = index
        self.name = name
        super().__init__(f"Bootstrap phase '{name}' ({index}) failed: {message}")


class PhaseValidationError(PhaseHandlerFailure):
    """A phase validator rejected the phase before its handler ran."""
