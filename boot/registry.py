"""
Registry for boot variants.

This module provides an ordered registry of boot variant factories, a
decorator for registering them, and root-based variant selection.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from boot.base_boot import BaseBoot
from settings.config_models import BootSettings

module_logger = logging.getLogger(__name__)

# A variant class, or any callable building a variant from settings and a logger.
VariantFactory = Callable[..., BaseBoot]


class BootRegistry:
    """
    Ordered registry of boot variants.

    Variants are tried in registration order and the first one whose
    `valid_root` accepts a root is selected.
    """

    def __init__(self):
        self._registry: Dict[str, VariantFactory] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}

    def register(self, name: str, metadata: Optional[Dict[str, Any]] = None):
        """
        Decorator for registering variant factories.

        Args:
            name: The name of the variant.
            metadata: Optional metadata for the variant, such as a description.

        Returns:
            A decorator function that registers the factory and returns it unchanged.
        """

        def decorator(factory: VariantFactory) -> VariantFactory:
            self.add(name, factory, metadata)
            return factory

        return decorator

    def add(
        self,
        name: str,
        factory: VariantFactory,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if name in self._registry:
            raise ValueError(f"Variant with name '{name}' already registered")
        self._registry[name] = factory
        self._metadata[name] = dict(metadata or {})

    def names(self) -> List[str]:
        """Registered variant names in priority order."""
        return list(self._registry)

    def get_factory(self, name: str) -> VariantFactory:
        """
        Get a variant factory by name.

        Raises:
            KeyError: If no variant with the given name is registered.
        """
        if name not in self._registry:
            raise KeyError(f"No variant registered with name '{name}'")
        return self._registry[name]

    def get_metadata(self, name: str) -> Dict[str, Any]:
        self.get_factory(name)
        return dict(self._metadata[name])

    def restricted_to(self, names: Sequence[str]) -> "BootRegistry":
        """
        A new registry holding only `names`, in the order given.

        Raises:
            KeyError: If any of the names is not registered.
        """
        subset = BootRegistry()
        for name in names:
            subset.add(name, self.get_factory(name), self._metadata[name])
        return subset

    def create_variants(
        self,
        boot_settings: Optional[BootSettings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> List[BaseBoot]:
        """Instantiate every registered variant, in priority order."""
        variants = []
        for name, factory in self._registry.items():
            variant = factory(boot_settings, logger)
            variant.name = name
            variants.append(variant)
        return variants

    def select_variant(
        self,
        root: Union[str, Path],
        boot_settings: Optional[BootSettings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> Optional[BaseBoot]:
        """
        Select the variant that claims `root`.

        Returns:
            The first registered variant whose `valid_root(root)` is true, or
            None when no variant claims the root. None is not an error: the
            caller continues without a bootstrapped site.
        """
        logger_to_use = logger if logger else module_logger
        selected: Optional[BaseBoot] = None

        for variant in self.create_variants(boot_settings, logger):
            if not variant.valid_root(root):
                continue
            if selected is None:
                selected = variant
                logger_to_use.debug(f"Variant '{variant.name}' claims root '{root}'")
            else:
                # First match wins; later claims are only noted.
                logger_to_use.debug(
                    f"Variant '{variant.name}' also claims root '{root}'; keeping '{selected.name}'"
                )

        if selected is None:
            logger_to_use.debug(f"No registered variant claims root '{root}'")
        return selected


default_registry = BootRegistry()
