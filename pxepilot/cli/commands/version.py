#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Version command group"""
import platform
import shutil

import click

from pxepilot.cli.config import Config
from pxepilot.vars import VERSION


@click.command()
@click.pass_context
def cli(ctx):
    """
    Print version and exit.

    Use --verbose to also get the platform and the ipmitool in use.
    """

    config: Config = ctx.obj
    if not config.verbose:
        click.echo(VERSION)
        return

    click.echo(
        f"pxepilot {VERSION} on "
        f"{' '.join(platform.architecture()).strip()} "
        f"with Python {platform.python_version()}"
    )
    ipmitool = shutil.which(config.ipmitool)
    click.echo(f"ipmitool: {ipmitool or f'{config.ipmitool} (not found)'}")
