#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Test pxepilot.logging module."""
import logging

import pytest

import pxepilot.logging

pytestmark = pytest.mark.usefixtures("do_log_teardown")


def test_value_error_raised_if_file_path_not_given_for_setup():
    """Test `ValueError` raised if `file_path` is not given with `use_file`."""

    with pytest.raises(ValueError):
        pxepilot.logging.setup(use_file=True, file_path=None)

    with pytest.raises(ValueError):
        pxepilot.logging.setup(use_file=True, file_path=1)  # type: ignore

    pxepilot.logging.setup(use_file=False, file_path=None)


def test_get_gets_a_child_of_the_base_logger():
    """Test that `get` returns a child of the base logger."""

    pxepilot.logging.setup(use_stream=True)
    logger = pxepilot.logging.get("test")

    assert logger.name == pxepilot.logging.BASENAME + ".test"
    assert logger.hasHandlers()


def test_setup_writes_to_rotating_file(tmp_path):
    """Test logs end up in the given file when `use_file` is set."""

    log_file = tmp_path / "pxepilot.log"
    pxepilot.logging.setup(
        verbose=True,
        use_file=True,
        file_path=str(log_file),
        use_stream=False,
    )
    pxepilot.logging.get("test").debug("hello from the test")
    for handler in logging.getLogger(pxepilot.logging.BASENAME).handlers:
        handler.flush()

    content = log_file.read_text("utf-8")
    assert "DEBUG - pxepilot.test :: hello from the test" in content


def test_teardown_removes_handlers():
    """Test `teardown` removes every handler `setup` added."""

    pxepilot.logging.setup(use_stream=True)
    pxepilot.logging.teardown()

    assert logging.getLogger(pxepilot.logging.BASENAME).handlers == []
