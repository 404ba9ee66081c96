#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Configurations command group"""
import typing as t

import click
from prettytable import PrettyTable

from pxepilot.catalog import ConfigurationCatalog
from pxepilot.cli.config import Config
from pxepilot.cli.util import preflight_context, preflight_logger
from pxepilot.deploy import DeploymentResult, HostRequest, Outcome
from pxepilot.errors import ConfigurationNotFound
from pxepilot.serve.context import ServeContext


def _load_catalog(config: Config) -> ConfigurationCatalog:
    logger = preflight_logger(config, "configs")
    try:
        config_dir = ServeContext.get_dirs(config, logger=logger)[0]
        return ConfigurationCatalog.from_dir(config_dir, logger)
    except (OSError, ValueError) as err:
        raise click.ClickException(f"Unable to load catalog: {err}")


def print_configurations(config: Config):
    """Print all known configurations given the Config instance."""

    catalog = _load_catalog(config)
    table = PrettyTable()
    table.field_names = ["Name", "Bootloader"]
    for configuration in catalog.configurations():
        table.add_row([configuration.name, configuration.bootloader.name])

    click.echo(table)


def show_configuration(config: Config, name: str):
    """Print the named configuration along with its content."""

    configuration = _load_catalog(config).resolve(name)
    if configuration is None:
        raise click.ClickException(f"Configuration not found: {name}")

    bootloader = configuration.bootloader
    click.echo(f"Name: {configuration.name}")
    click.echo(
        f"Bootloader: {bootloader.name} ({bootloader.file}, "
        f"{bootloader.config_path})"
    )
    click.echo("Content:")
    click.echo(configuration.content)


def print_deployment(result: DeploymentResult):
    """Print one row per deployed host."""

    table = PrettyTable()
    table.field_names = ["Name", "Configuration", "Rebooted"]
    for entry in result.hosts:
        rebooted = entry.outcome.value
        if entry.outcome == Outcome.failed and entry.reason is not None:
            rebooted = f"{rebooted}({entry.reason.value})"
        table.add_row([entry.name, result.configuration, rebooted])

    click.echo(table)


def deploy_configuration(
    config: Config, name: str, hostnames: t.Sequence[str], now: bool
) -> DeploymentResult:
    """Deploy the named configuration onto the given hosts."""

    context = preflight_context(config)
    requests = [HostRequest(name=host, reboot=now) for host in hostnames]
    try:
        result = context.orchestrator.deploy(name, requests)
    except ConfigurationNotFound as err:
        raise click.ClickException(str(err))
    print_deployment(result)
    return result


@click.group()
@click.pass_context
def cli(_, **__):
    """
    Subcommands for working with configurations.

    If verbose is given, debug logs will be printed to the screen.
    """


@cli.command()
@click.pass_context
def ls(ctx):  # pylint: disable=invalid-name
    """Print known configurations and their bootloader."""

    config: Config = ctx.obj
    print_configurations(config)


@cli.command()
@click.argument("name")
@click.pass_context
def show(ctx, name):
    """Print the configuration NAME with its rendered content."""

    config: Config = ctx.obj
    show_configuration(config, name)


@cli.command()
@click.option(
    "--now",
    is_flag=True,
    default=False,
    help="Reboot the hosts so they boot the configuration right away.",
)
@click.argument("config_name", metavar="CONFIG")
@click.argument("hostnames", nargs=-1, required=True)
@click.pass_context
def deploy(ctx, now, config_name, hostnames):
    """
    Deploy CONFIG onto HOSTNAMES.

    Hosts which fail do not stop the others, each host gets its own row.
    """

    config: Config = ctx.obj
    deploy_configuration(config, config_name, hostnames, now)
