#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Hosts command group"""
import typing as t

import click
from prettytable import PrettyTable

from pxepilot.cli.config import Config
from pxepilot.cli.util import preflight_context
from pxepilot.errors import DuplicateMacError, DuplicateNameError, HostError
from pxepilot.host import GenericAgent, Host, NoEndpoint, VendorRemote
from pxepilot.serve.context import ServeContext


def _management_columns(host: Host) -> t.Tuple[str, str, str]:
    management = host.management
    if isinstance(management, NoEndpoint):
        return management.kind, "", ""
    return (
        management.kind,
        management.mac_address or "",
        management.address,
    )


def print_hosts(context: ServeContext):
    """Print all known hosts."""

    table = PrettyTable()
    table.field_names = [
        "Name",
        "Configuration",
        "MAC",
        "MGMT",
        "MGMT MAC",
        "MGMT Address",
        "Power State",
    ]
    for host in context.registry.list():
        configuration = ""
        if host.configuration is not None:
            configuration = host.configuration.name
        table.add_row(
            [
                host.name,
                configuration,
                "\n".join(host.macs),
                *_management_columns(host),
                host.power_state.value,
            ]
        )

    click.echo(table)


def add_host(context: ServeContext, name: str, macs: t.Sequence[str], **kw):
    """
    Register the given host, or update the one owning the MACs.

    Keyword arguments describe the management endpoint: ``kind``,
    ``address``, ``mgmt_mac``, ``username`` and ``password``.
    """

    kind = kw.get("kind", "none")
    management: t.Union[VendorRemote, GenericAgent, NoEndpoint]
    if kind == "none":
        management = NoEndpoint()
    else:
        if not kw.get("address"):
            raise click.BadParameter(
                f"--address is needed for {kind} management"
            )
        endpoint: t.Dict[str, t.Any] = {
            "address": kw["address"],
            "mac_address": kw.get("mgmt_mac"),
        }
        if kind == "vendor_remote":
            endpoint["username"] = kw.get("username")
            endpoint["password"] = kw.get("password")
            management = VendorRemote(**endpoint)
        else:
            management = GenericAgent(**endpoint)

    try:
        host = context.registry.upsert(macs, name, management=management)
    except (DuplicateMacError, DuplicateNameError, ValueError) as err:
        raise click.ClickException(str(err))
    click.echo(f"Registered host: {host.to_json()}")


def delete_host(context: ServeContext, name: str):
    """Remove the named host."""

    if not context.registry.remove(name):
        raise click.ClickException(f"Host not found: {name}")
    click.echo(f"Deleted host {name}")


def power_host(context: ServeContext, name: str, action: str):
    """Run the given power action (on, off or reboot) on the named host."""

    orchestrator = context.orchestrator
    operation = {
        "on": orchestrator.power_on,
        "off": orchestrator.power_off,
        "reboot": orchestrator.reboot,
    }[action]
    try:
        state = operation(name)
    except HostError as err:
        raise click.ClickException(f"{err.reason.value}: {err}")
    click.echo(f"{name}: {state.value}")


def refresh_hosts(context: ServeContext) -> bool:
    """Refresh power states and print the hosts, return if all answered."""

    result = context.refresher.refresh_all()
    print_hosts(context)
    if not result.ok:
        click.echo(
            f"Unable to refresh power state of: {', '.join(result.failed)}",
            err=True,
        )
    return result.ok


@click.group()
@click.pass_context
def cli(_, **__):
    """
    Subcommands for working with hosts.

    If verbose is given, debug logs will be printed to the screen.
    """


@cli.command()
@click.pass_context
def ls(ctx):  # pylint: disable=invalid-name
    """Print known hosts with their configuration and power state."""

    config: Config = ctx.obj
    print_hosts(preflight_context(config))


@cli.command()
@click.argument("name")
@click.argument("macs", nargs=-1, required=True)
@click.option(
    "--kind",
    type=click.Choice(["none", "vendor_remote", "generic_agent"]),
    default="none",
    show_default=True,
    help="How the host's power is managed.",
)
@click.option("--address", default=None, help="Management address.")
@click.option("--mgmt-mac", default=None, help="Management MAC address.")
@click.option("--username", default=None, help="IPMI username.")
@click.option("--password", default=None, help="IPMI password.")
@click.pass_context
def add(ctx, name, macs, **kwargs):
    """
    Register host NAME owning MACS.

    If a host already owns the MACs it is updated instead.
    """

    config: Config = ctx.obj
    add_host(preflight_context(config), name, macs, **kwargs)


@cli.command()
@click.argument("name")
@click.pass_context
def delete(ctx, name):
    """Remove host NAME."""

    config: Config = ctx.obj
    delete_host(preflight_context(config), name)


@cli.command()
@click.argument("name")
@click.pass_context
def reboot(ctx, name):
    """Boot host NAME, power-cycling it if it is running."""

    config: Config = ctx.obj
    power_host(preflight_context(config), name, "reboot")


@cli.command()
@click.argument("name")
@click.pass_context
def on(ctx, name):  # pylint: disable=invalid-name
    """Power on host NAME."""

    config: Config = ctx.obj
    power_host(preflight_context(config), name, "on")


@cli.command()
@click.argument("name")
@click.pass_context
def off(ctx, name):
    """Power off host NAME."""

    config: Config = ctx.obj
    power_host(preflight_context(config), name, "off")


@cli.command()
@click.pass_context
def refresh(ctx):
    """Query the power state of every host and print them."""

    config: Config = ctx.obj
    refresh_hosts(preflight_context(config))
