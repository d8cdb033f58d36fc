# boot/phases.py
# -*- coding: utf-8 -*-
"""
Phase tables and phase alias maps.

A variant declares its initialization steps as `Phase` records. They are
collected into an immutable `PhaseTable` ordered by index, from which the
shorthand alias map and the discovery subset are derived.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import (
    Callable,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
)

# Resolves to the highest phase; commands declaring it are bootstrapped
# as far as the root allows.
MAX_PHASE_ALIAS = "max"


@dataclass(frozen=True)
class Phase:
    """One ordered initialization step of a variant."""

    index: int
    name: str
    handler: Callable[[], Optional[bool]]
    validator: Optional[Callable[[], bool]] = None
    description: str = ""

    def __post_init__(self):
        if isinstance(self.index, bool) or not isinstance(self.index, int):
            raise TypeError(f"Phase index must be an int, got {self.index!r}")
        if self.index < 0:
            raise ValueError(f"Phase index must be >= 0, got {self.index}")
        object.__setattr__(self, "index", int(self.index))
        if not self.name:
            raise ValueError("Phase name must not be empty")

    def validate(self) -> bool:
        """Return True when the phase has no validator or the validator passes."""
        if self.validator is None:
            return True
        return bool(self.validator())


class PhaseTable:
    """
    Ordered, immutable collection of phases.

    Indices may be sparse but are unique; iteration always yields phases in
    increasing index order.
    """

    def __init__(self, phases: Iterable[Phase]):
        ordered = sorted(phases, key=lambda phase: phase.index)
        if not ordered:
            raise ValueError("A phase table needs at least one phase")

        seen = set()
        for phase in ordered:
            if phase.index in seen:
                raise ValueError(f"Duplicate phase index {phase.index}")
            seen.add(phase.index)

        self._phases: Tuple[Phase, ...] = tuple(ordered)
        self._by_index: Mapping[int, Phase] = MappingProxyType(
            {phase.index: phase for phase in ordered}
        )

    def __iter__(self) -> Iterator[Phase]:
        return iter(self._phases)

    def __len__(self) -> int:
        return len(self._phases)

    def __contains__(self, index) -> bool:
        return index in self._by_index

    def __getitem__(self, index: int) -> Phase:
        return self._by_index[index]

    @property
    def indices(self) -> Tuple[int, ...]:
        return tuple(phase.index for phase in self._phases)

    @property
    def lowest(self) -> int:
        return self._phases[0].index

    @property
    def highest(self) -> int:
        return self._phases[-1].index

    def handlers(self) -> Mapping[int, Callable[[], Optional[bool]]]:
        """Read-only mapping of phase index to handler, in index order."""
        return MappingProxyType(
            {phase.index: phase.handler for phase in self._phases}
        )

    def next_after(self, index: int) -> Optional[Phase]:
        """The first phase with an index greater than `index`, if any."""
        for phase in self._phases:
            if phase.index > index:
                return phase
        return None

    def previous_before(self, index: int) -> int:
        """Index of the last phase below `index`, or -1 when there is none."""
        previous = -1
        for phase in self._phases:
            if phase.index >= index:
                break
            previous = phase.index
        return previous

    def phases_between(self, after: int, through: int) -> List[Phase]:
        """Phases with `after < index <= through`, in order."""
        return [
            phase for phase in self._phases if after < phase.index <= through
        ]


def build_alias_map(
    table: PhaseTable, extra_aliases: Optional[Mapping[str, int]] = None
) -> Mapping[str, int]:
    """
    Derive the shorthand map for a phase table.

    Every phase is reachable by its own name and `max` points at the highest
    phase. `extra_aliases` adds further shorthands; each must name an index
    present in the table.
    """
    aliases = {phase.name.lower(): phase.index for phase in table}
    aliases[MAX_PHASE_ALIAS] = table.highest
    for shorthand, index in (extra_aliases or {}).items():
        if index not in table:
            raise ValueError(
                f"Alias '{shorthand}' points at undefined phase index {index}"
            )
        aliases[shorthand.lower()] = int(index)
    return MappingProxyType(aliases)


def build_discovery_set(
    table: PhaseTable, indices: Iterable[int]
) -> FrozenSet[int]:
    """
    Validate a discovery subset: every member must be defined and the set
    must be a prefix of the table's ordering.
    """
    discovery = frozenset(int(index) for index in indices)
    if not discovery:
        raise ValueError("At least one discovery phase is required")
    for index in discovery:
        if index not in table:
            raise ValueError(f"Discovery phase {index} is not defined")

    prefix = table.indices[: len(discovery)]
    if discovery != frozenset(prefix):
        raise ValueError(
            f"Discovery phases {sorted(discovery)} are not a prefix of {list(table.indices)}"
        )
    return discovery
