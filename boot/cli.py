# -*- coding: utf-8 -*-
"""
Command-line entry point for siteboot.

Every command here is itself bootstrapped through `Bootstrapper`, so it
only runs when the site at the root meets what it declares.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Optional

import click

from boot.bootstrapper import Bootstrapper, BootstrapState
from boot.command import CommandDescriptor
from boot.phases import MAX_PHASE_ALIAS
from boot.registry import default_registry
from common.core_utils import level_from_name, setup_logging
from settings.config_loader import load_boot_settings
from settings.config_models import CONFIG_FILE_DEFAULT, BootSettings

module_logger = logging.getLogger(__name__)

CommandAction = Callable[[Bootstrapper, CommandDescriptor], Any]


def run_builtin_command(
    boot_settings: BootSettings,
    build_command: Callable[[BootstrapState], Optional[CommandDescriptor]],
    action: CommandAction,
) -> bool:
    """
    Bootstrap for one built-in command and run it.

    Returns:
        True when the command was dispatched, False when it was aborted.
    """
    bootstrapper = Bootstrapper(boot_settings=boot_settings, logger=module_logger)
    result = bootstrapper.bootstrap_and_dispatch(
        resolver=build_command,
        dispatcher=lambda command: action(bootstrapper, command),
    )
    return result.proceed


@click.group()
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Site root to bootstrap. Defaults to the current directory.",
)
@click.option("--uri", default=None, help="Site of a multi-site root to bootstrap.")
@click.option(
    "--config",
    "config_file",
    default=CONFIG_FILE_DEFAULT,
    show_default=True,
    help="YAML configuration file.",
)
@click.option("--log-level", default=None, help="Logging level, e.g. DEBUG.")
@click.pass_context
def cli(ctx, root, uri, config_file, log_level):
    """
    A command-line interface for bootstrapping site installations.

    Detects which supported system lives at the root, bootstraps it as far
    as the chosen command needs, and reports what it found.
    """
    boot_settings = load_boot_settings(
        {"root": root, "uri": uri, "log_level": log_level},
        config_file_path=config_file,
    )
    setup_logging(
        log_level=level_from_name(boot_settings.log_level),
        log_file=boot_settings.log_file,
        log_prefix=boot_settings.log_prefix,
        symbols=boot_settings.symbols,
    )
    ctx.obj = {"settings": boot_settings}


@cli.command(name="status")
@click.pass_context
def status_command(ctx):
    """
    Shows the detected variant, its version and how far it bootstraps.
    """

    def build_command(state: BootstrapState) -> CommandDescriptor:
        required = MAX_PHASE_ALIAS if state.active_variant else "none"
        return CommandDescriptor(name="status", required_phase=required)

    def show_status(bootstrapper: Bootstrapper, command: CommandDescriptor) -> None:
        state = bootstrapper.state
        variant = state.active_variant
        click.echo(f"Root: {state.root}")
        click.echo(f"Site URI: {state.site_uri}")
        click.echo(f"Variant: {variant.name if variant else 'none'}")
        click.echo(f"Version: {state.version or 'unknown'}")
        click.echo(f"Bootstrap phase: {bootstrapper.current_phase_name or 'none'}")

    if not run_builtin_command(ctx.obj["settings"], build_command, show_status):
        ctx.exit(1)


@cli.command(name="phases")
@click.pass_context
def phases_command(ctx):
    """
    Lists the phase table, aliases and discovery phases of the detected variant.
    """

    def show_phases(bootstrapper: Bootstrapper, command: CommandDescriptor) -> None:
        variant = bootstrapper.active_variant
        if variant is None:
            click.echo("No supported site found at the root.")
            return
        discovery = variant.bootstrap_init_phases()
        click.echo(f"Variant: {variant.name}")
        for phase in variant.phase_table:
            marker = " (discovery)" if phase.index in discovery else ""
            details = f" - {phase.description}" if phase.description else ""
            click.echo(f"  {phase.index}: {phase.name}{marker}{details}")
        aliases = ", ".join(
            f"{alias}={index}"
            for alias, index in sorted(variant.bootstrap_phase_map().items())
        )
        click.echo(f"Aliases: {aliases}")

    if not run_builtin_command(
        ctx.obj["settings"],
        lambda state: CommandDescriptor(name="phases", required_phase="none"),
        show_phases,
    ):
        ctx.exit(1)


@cli.command(name="bootstrap")
@click.argument("phase")
@click.pass_context
def bootstrap_command(ctx, phase):
    """
    Bootstraps the site up to PHASE (a phase name, alias or index).
    """
    required = int(phase) if phase.isdigit() else phase

    def show_reached(bootstrapper: Bootstrapper, command: CommandDescriptor) -> None:
        click.echo(
            f"Bootstrapped to phase {bootstrapper.current_phase_name or 'none'} "
            f"({bootstrapper.state.current_phase_index})"
        )

    if not run_builtin_command(
        ctx.obj["settings"],
        lambda state: CommandDescriptor(name="bootstrap", required_phase=required),
        show_reached,
    ):
        ctx.exit(1)


@cli.command(name="variants")
def variants_command():
    """
    Lists the registered variants in the order they are tried.
    """
    for name in default_registry.names():
        description = default_registry.get_metadata(name).get("description", "")
        click.echo(f"{name}: {description}" if description else name)


if __name__ == "__main__":
    cli()
