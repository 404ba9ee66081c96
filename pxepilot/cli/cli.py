#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Create cli interface for pxepilot, ready to be loaded by main.

We use a Multi Command structure and lazily load files from `cli.commands`.

See click documentation at
https://click.palletsprojects.com/en/8.1.x/commands/#custom-multi-commands
for more info.
"""
import os
import typing as t
from dataclasses import fields
from functools import cache, reduce

import click
import click_config_file
from click import Context

from pxepilot.cli.config import DEFAULT_CONFIG, Config

COMMAND_FOLDER = os.path.join(os.path.dirname(__file__), "commands")


class PxePilotCLI(click.Group):
    """Define a command group that lazily loads from `COMMAND_FOLDER`."""

    @staticmethod
    def list_commands(_: Context) -> t.List[str]:
        """Get sorted list of command file names."""

        commands = []
        for filename in os.listdir(COMMAND_FOLDER):
            if filename.endswith(".py") and filename != "__init__.py":
                commands.append(filename.removesuffix(".py"))
        commands.sort()
        return commands

    @staticmethod
    def get_command(_: Context, cmd_name: str) -> t.Optional[click.Command]:
        """
        Get command by the given name.

        Looks for a python file with the same name in `COMMAND_FOLDER`
        and returns its ``cli`` attribute, or None if there's no such file.
        """

        filename = os.path.join(COMMAND_FOLDER, cmd_name + ".py")
        if not os.path.isfile(filename):
            return None
        namespace: t.Dict[str, t.Any] = {"__file__": filename}
        with open(filename, encoding="utf-8") as pyfile:
            code = compile(pyfile.read(), filename, "exec")
            eval(code, namespace, namespace)  # pylint: disable=eval-used
        return namespace["cli"]


@cache
def config_to_click(config: Config):
    """Translate config dataclass to click decorators."""
    decs: t.List[t.Callable] = []

    for field in fields(config):
        if field.name.endswith("_help"):
            continue

        name_norm = field.name.lower().replace("_", "-")
        name_param = f"--{name_norm}"
        kwargs: t.Dict[str, t.Any] = {
            "default": field.default,
            "help": getattr(config, field.name + "_help", ""),
            "show_default": True,
        }
        if field.type == bool:
            name_param += f"/--no-{name_norm}"
        elif field.type in (int, float):
            kwargs["type"] = field.type
        else:
            kwargs["type"] = str
        decs.append(click.option(name_param, **kwargs))

    def wrapper(func):
        # Decorators is organized from top of call stack to bottom,
        # so traverse from bottom to top while constructing wrapped function
        # this is why we have decs[::-1]
        return reduce(lambda x, y: y(x), decs[::-1], func)

    return wrapper


@click.command(cls=PxePilotCLI)
@config_to_click(DEFAULT_CONFIG)
@click_config_file.configuration_option()
@click.pass_context
def cli(ctx, **kwargs):
    """PXE Pilot CLI."""
    ctx.obj = Config(**kwargs)


def run():
    """Start the pxepilot cli"""
    cli()  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":
    run()
