#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Hold various pxepilot variables.

Be sure to sync with version in pyproject.toml
"""
VERSION: str = "0.1.0"

# --- CLI ---
LOGFILE_NAME = "pxepilot.log"

# --- Config ---
# These are relative to the configuration directory
BOOTLOADERS_DIR = "bootloaders"  # json files, one Bootloader each
CONFIGURATIONS_DIR = "configurations"  # <bootloader>/<configuration>[.j2]
HOSTS_DIR = "hosts"  # json files, statically registered hosts
EXEC_DIR = "exec"  # directory containing executables or their configs
TEMPLATE_SUFFIX = ".j2"

# --- TFTP ---
# pxelinux looks up "01-<mac with dashes>" for ethernet hardware types
PXE_MAC_FILE_PREFIX = "01-"

# --- POWER ---
POWER_TIMEOUT = 5  # seconds, applied to every backend call
MAX_WORKERS = 16  # upper bound on concurrent backend calls per batch
IPMITOOL_EXEC = "ipmitool"
IPMI_INTERFACE = "lanplus"

# --- GUNICORN ---
GUNICORN_REQUIRED_CONFIG = "gunicorn_conf_required.py"
GUNICORN_DEFAULT_CONFIG = "gunicorn_conf_default.py"
GUNICORN_CONFIG = "gunicorn_conf.py"
