#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Initialize and configure pxepilot logging."""
import logging
import logging.handlers
import typing as t

BASENAME = "pxepilot"  # Base logger name
# Format of log messages, shared with the gunicorn log config
FORMAT = "%(asctime)s - %(levelname)s - %(name)s :: %(message)s"
ROTATING_FILE_HANDLER_OPTS: t.Dict[str, t.Any] = {
    "mode": "a",
    "maxBytes": 500 * (10 ** 6),  # 500 MB
    "backupCount": 5,
}

# Logger that goes nowhere, for callers which don't care about output
DUMB_LOGGER = logging.getLogger("_dumb_logger")
DUMB_LOGGER.disabled = True


def _with_format(
    handler: logging.Handler, formatter: logging.Formatter, level: int
) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def get_stream_handler(
    formatter: logging.Formatter, level: int
) -> logging.Handler:
    """Create a stream handler with the given formatter and level."""

    return _with_format(logging.StreamHandler(), formatter, level)


def get_file_handler(
    formatter: logging.Formatter, level: int, file_path: str
) -> logging.Handler:
    """
    Create a rotating file handler writing to `file_path`.

    See `ROTATING_FILE_HANDLER_OPTS` for the rotation settings used.
    """

    return _with_format(
        logging.handlers.RotatingFileHandler(
            file_path, **ROTATING_FILE_HANDLER_OPTS
        ),
        formatter,
        level,
    )


def setup(
    verbose: bool = False,
    use_file: bool = False,
    file_path: t.Optional[str] = None,
    use_stream: bool = True,
):
    """
    Attach handlers to the pxepilot base logger.

    Parameters
    ----------
    verbose : bool
        If True, sets level to DEBUG. Otherwise, level is set to INFO.
    use_file : bool
        Log into a rotating file at `file_path`.
    file_path : str, optional
        Required if `use_file` is `True`.
    use_stream : bool
        Log to stderr.

    Raises
    ------
    ValueError
        If `file_path` is not a string and `use_file` is `True`.
    """

    formatter = logging.Formatter(FORMAT)
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(BASENAME)
    logger.propagate = False
    logger.setLevel(level)

    if use_file:
        if not isinstance(file_path, str):
            raise ValueError(
                "Expected string for file_path argument, instead got "
                f"{type(file_path)}"
            )
        logger.addHandler(get_file_handler(formatter, level, file_path))

    if use_stream:
        logger.addHandler(get_stream_handler(formatter, level))


def teardown():
    """Remove every handler `setup` attached. Mostly used by tests."""

    logger = logging.getLogger(BASENAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


def get(name: str) -> logging.Logger:
    """
    Get a child logger of the pxepilot base logger.

    Parameters
    ----------
    name : str
        Name of the child logger, without the `BASENAME` prefix.
    """

    return logging.getLogger(BASENAME).getChild(name)
