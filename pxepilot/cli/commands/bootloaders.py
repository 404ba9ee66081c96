#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Bootloaders command group"""
import click
from prettytable import PrettyTable

from pxepilot.catalog import ConfigurationCatalog
from pxepilot.cli.config import Config
from pxepilot.cli.util import preflight_logger
from pxepilot.serve.context import ServeContext


def print_bootloaders(config: Config):
    """Print all known bootloaders given the Config instance."""

    logger = preflight_logger(config, "bootloaders")
    try:
        config_dir = ServeContext.get_dirs(config, logger=logger)[0]
        catalog = ConfigurationCatalog.from_dir(config_dir, logger)
    except (OSError, ValueError) as err:
        raise click.ClickException(f"Unable to load catalog: {err}")

    table = PrettyTable()
    table.field_names = ["Name", "File", "Config Path"]
    for bootloader in catalog.bootloaders():
        table.add_row(
            [bootloader.name, bootloader.file, bootloader.config_path]
        )

    click.echo(table)


@click.command()
@click.pass_context
def cli(ctx):
    """
    Print all known bootloaders and exit.

    If verbose is given, debug logs will be printed to the screen.
    """

    config: Config = ctx.obj
    print_bootloaders(config)
