#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Start command group."""
import os
import sys

import click

from pxepilot.cli.config import Config
from pxepilot.cli.util import preflight_context
from pxepilot.logging import get as get_logger
from pxepilot.logging import setup as setup_logging
from pxepilot.serve.app import setup, start
from pxepilot.vars import LOGFILE_NAME


@click.command()
@click.pass_context
def cli(ctx):
    """
    Start pxepilot server.

    Loads the catalog and static hosts before gunicorn starts.
    """

    config: Config = ctx.obj
    setup_logging(
        verbose=config.verbose,
        use_file=config.persist_log,
        file_path=os.path.join(config.log_dir, LOGFILE_NAME),
        use_stream=(not config.quiet),
    )
    logger = get_logger("start")
    context = preflight_context(config)
    catalog = context.catalog.get()
    logger.info(
        "Serving %d configuration(s) over %d bootloader(s) for %d host(s)",
        len(catalog.configurations()),
        len(catalog.bootloaders()),
        len(context.registry.list()),
    )
    if context.orchestrator.writer is None:
        logger.info("TFTP writing disabled")
    else:
        logger.info("Writing TFTP files under %s", config.tftp_root)

    if config.quiet:
        devnull = open(  # pylint: disable=consider-using-with
            os.devnull, "w", encoding="utf-8"
        )
        sys.stderr = devnull
        sys.stdout = devnull
    setup(ctx=context)
    start()
