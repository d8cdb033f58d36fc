"""
Boot variants shipped with siteboot.

Importing this package registers them on `boot.registry.default_registry`
in priority order.
"""

from boot.variants.drupal_boot import (
    DRUPAL7_LAYOUT,
    DRUPAL8_LAYOUT,
    DrupalBoot,
    DrupalLayout,
    DrupalPhase,
    make_drupal_factory,
)

__all__ = [
    "DRUPAL7_LAYOUT",
    "DRUPAL8_LAYOUT",
    "DrupalBoot",
    "DrupalLayout",
    "DrupalPhase",
    "make_drupal_factory",
]
