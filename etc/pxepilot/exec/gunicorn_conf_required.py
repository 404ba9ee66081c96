#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# pylint: disable=all
"""
Required configuration of gunicorn for pxepilot.

These settings are required for gunicorn to run properly as
pxepilot's http server.

For more information, see pxepilot.serve.context and pxepilot.serve.app
"""
import sys

from gunicorn.arbiter import Arbiter
from gunicorn.workers.base import Worker

from pxepilot.logging import FORMAT, ROTATING_FILE_HANDLER_OPTS
from pxepilot.serve.context import ServeContext

# --- Preflight check for needed context variable
_ctx: ServeContext = globals().get("ctx", None)
if _ctx is None:
    raise ValueError("Unable to get current application context.")


# --- Logging setup ---
_handlers_def = {}
_handlers_access = []
_handlers_error = []
if _ctx.config.output_gunicorn_logs:
    _handlers_def["console"] = {
        "class": "logging.StreamHandler",
        "formatter": "generic",
        "stream": sys.stdout,
    }
    _handlers_access.append("console")
    _handlers_error.append("console")
if _ctx.config.persist_log:
    _handlers_access.append("accesslog_file")
    _handlers_error.append("errorlog_file")
    _handlers_def["accesslog_file"] = {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "generic",
        "filename": f"{_ctx.log_dir}/gunicorn.access.log",
        **ROTATING_FILE_HANDLER_OPTS,
    }
    _handlers_def["errorlog_file"] = {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "generic",
        "filename": f"{_ctx.log_dir}/gunicorn.error.log",
        **ROTATING_FILE_HANDLER_OPTS,
    }
if len(_handlers_def) == 0:
    _handlers_def["null"] = {"class": "logging.NullHandler"}
    _handlers_access.append("null")
    _handlers_error.append("null")

_log_level = "DEBUG" if _ctx.config.verbose else "INFO"

logconfig_dict = {
    "version": 1,
    "disable_existing_loggers": False,
    "loggers": {
        "gunicorn.access": {
            "level": _log_level,
            "handlers": _handlers_access,
        },
        "gunicorn.error": {
            "level": _log_level,
            "handlers": _handlers_error,
        },
    },
    "handlers": _handlers_def,
    "formatters": {
        "generic": {"format": FORMAT, "class": "logging.Formatter"}
    },
}


def post_fork(server: Arbiter, worker: Worker):
    """
    After a worker is created, kick-off the `ServeContext` instance.

    For more information see
    https://docs.gunicorn.org/en/stable/settings.html#post-fork
    """

    _ctx.start()


def worker_exit(server: Arbiter, worker: Worker):
    """
    Before a worker is exited, clean up its `ServeContext` instance.

    For more information see
    https://docs.gunicorn.org/en/stable/settings.html#worker-exit
    """

    _ctx.stop()
