#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Helpers shared by cli commands."""
import logging

import click

from pxepilot.cli.config import Config
from pxepilot.logging import DUMB_LOGGER
from pxepilot.logging import get as get_logger
from pxepilot.logging import setup as setup_logging
from pxepilot.serve.context import ServeContext


def preflight_logger(config: Config, name: str) -> logging.Logger:
    """Setup correct logger instance for a command given Config."""

    if config.verbose:
        setup_logging(verbose=True, use_file=False, use_stream=True)
        return get_logger(name)
    return DUMB_LOGGER


def preflight_context(config: Config) -> ServeContext:
    """
    Build the ServeContext a command works with.

    Raises
    ------
    click.ClickException
        If the configuration directory cannot be loaded.
    """

    try:
        return ServeContext.from_config(config)
    except (OSError, ValueError) as err:
        raise click.ClickException(f"Unable to load configuration: {err}")
