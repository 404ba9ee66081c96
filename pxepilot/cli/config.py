#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Describe configuration variables for runtime."""
import typing as t
from dataclasses import dataclass

from pxepilot.vars import IPMITOOL_EXEC, MAX_WORKERS, POWER_TIMEOUT


@dataclass
class Config:
    """Define config variables and help text."""

    verbose: bool = False
    verbose_help: str = "Enable verbose logging"
    quiet: bool = False
    quiet_help: str = "Disable printing logs to screen"
    log_dir: str = "/var/log/pxepilot"
    log_dir_help: str = "Provide path to log directory. File rotation is used."
    persist_log: bool = False
    persist_log_help: str = "Persist logs to disk at given log dir."
    config_dir: str = "/etc/pxepilot"
    config_dir_help: str = "Path to configuration directory."
    redis: bool = False
    redis_help: str = (
        "Use redis to keep hosts between runs, otherwise hosts live in "
        "memory and are loaded from the hosts directory on start."
    )
    redis_url: str = "redis://localhost:6379"
    redis_url_help: str = "Connection URI to Redis server."
    output_gunicorn_logs: bool = True
    output_gunicorn_logs_help: str = "Print gunicorn logs to the screen"
    gunicorn_layer_default: bool = True
    gunicorn_layer_default_help: str = (
        "Layer gunicorn config on top of "
        "the default gunicorn config. This lets user configurations use "
        "and override variables in the gunicorn config."
    )
    max_cache_file_size: int = 10 ** 8
    max_cache_file_size_help: str = (
        "Max file size that will be cached (in bytes)"
    )
    tftp_root: str = "/var/lib/tftpboot"
    tftp_root_help: str = "Root directory of the TFTP server."
    write_tftp: bool = True
    write_tftp_help: str = (
        "Write deployed configurations for each host MAC address under "
        "the TFTP root."
    )
    power_timeout: float = float(POWER_TIMEOUT)
    power_timeout_help: str = (
        "Seconds allowed for each call to a management endpoint."
    )
    max_workers: int = MAX_WORKERS
    max_workers_help: str = (
        "Max number of hosts whose power is controlled at the same time."
    )
    ipmitool: str = IPMITOOL_EXEC
    ipmitool_help: str = "ipmitool executable."
    ipmi_username: t.Optional[str] = None
    ipmi_username_help: str = (
        "IPMI username for hosts which don't define their own."
    )
    ipmi_password: t.Optional[str] = None
    ipmi_password_help: str = (
        "IPMI password for hosts which don't define their own."
    )

    def __hash__(self):
        return hash(repr(self))


DEFAULT_CONFIG = Config()
