#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Errors raised while deploying configurations and controlling power.

Anything deriving from `HostError` concerns a single host and is captured
into that host's result by the orchestrator. `ConfigurationNotFound` is the
only error which aborts a whole deployment.
"""
from enum import Enum


class FailureReason(str, Enum):
    """Reason code reported for a failed host."""

    host_unknown = "HostUnknown"  # pylint: disable=invalid-name
    no_management_endpoint = (  # pylint: disable=invalid-name
        "NoManagementEndpoint"
    )
    backend_timeout = "BackendTimeout"  # pylint: disable=invalid-name
    backend_refused = "BackendRefused"  # pylint: disable=invalid-name
    backend_protocol_error = (  # pylint: disable=invalid-name
        "BackendProtocolError"
    )
    config_write_failed = "ConfigWriteFailed"  # pylint: disable=invalid-name
    unexpected = "Unexpected"  # pylint: disable=invalid-name


class ConfigurationNotFound(LookupError):
    """Requested configuration is not part of the catalog."""

    def __init__(self, name: str):
        super().__init__(f"Configuration not found: {name}")
        self.name = name


class HostError(Exception):
    """Base class of every per-host failure."""

    reason: FailureReason

    def __init__(self, host: str, message: str = ""):
        super().__init__(f"{host}: {message or self.reason.value}")
        self.host = host
        self.message = message


class HostUnknown(HostError):
    """No host is registered under the requested name."""

    reason = FailureReason.host_unknown


class ConfigWriteFailed(HostError):
    """Rendered configuration could not be written for the host."""

    reason = FailureReason.config_write_failed


class UnexpectedHostError(HostError):
    """Anything else that went wrong while working on a single host."""

    reason = FailureReason.unexpected


class PowerError(HostError):
    """A power operation could not be carried out."""


class NoManagementEndpoint(PowerError):
    """Host has no management endpoint, nothing was attempted."""

    reason = FailureReason.no_management_endpoint


class BackendTimeout(PowerError):
    """Backend did not answer within the call timeout."""

    reason = FailureReason.backend_timeout


class BackendRefused(PowerError):
    """Backend could not be reached or rejected our credentials."""

    reason = FailureReason.backend_refused


class BackendProtocolError(PowerError):
    """Backend answered with something we could not understand."""

    reason = FailureReason.backend_protocol_error


class DuplicateMacError(ValueError):
    """A MAC address is already owned by another host."""


class DuplicateNameError(ValueError):
    """A name is already used by another host."""
