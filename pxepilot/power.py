#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Power control of hosts through their management endpoint.

Two backends are available:

* `IPMIBackend` drives vendor remote-management controllers with the
  ``ipmitool`` executable.
* `AgentBackend` talks json over http to a generic management agent.

`PowerAdapter` picks the backend matching the endpoint variant of a host.
Every backend call is bounded by a timeout and nothing is retried, callers
decide whether to try again.
"""
import subprocess
import typing as t
from abc import ABC, abstractmethod

import requests

from pxepilot.errors import (
    BackendProtocolError,
    BackendRefused,
    BackendTimeout,
    NoManagementEndpoint,
)
from pxepilot.host import (
    GenericAgent,
    Host,
    NoEndpoint,
    PowerState,
    VendorRemote,
)
from pxepilot.logging import get as get_logger
from pxepilot.vars import IPMITOOL_EXEC, POWER_TIMEOUT

Endpoint = t.Union[VendorRemote, GenericAgent]


class PowerBackend(ABC):
    """
    Interface over the power capabilities of one kind of endpoint.

    All methods take the host name for error reporting and raise a
    `PowerError` subclass on failure.
    """

    @abstractmethod
    def query_state(self, host: str, endpoint: Endpoint) -> PowerState:
        """Return the live power state."""

    @abstractmethod
    def power_on(self, host: str, endpoint: Endpoint):
        """Power the host on."""

    @abstractmethod
    def power_off(self, host: str, endpoint: Endpoint):
        """Power the host off."""

    @abstractmethod
    def power_cycle(self, host: str, endpoint: Endpoint):
        """Power the host off and on again."""


class IPMIBackend(PowerBackend):
    """
    Run ``ipmitool chassis power`` commands against a BMC.

    Parameters
    ----------
    timeout : float
        Seconds the ipmitool process may run before it is killed.
    username, password : str, optional
        Credentials used when the endpoint doesn't carry its own.
    executable : str
        ipmitool executable to run.
    """

    def __init__(
        self,
        timeout: float = POWER_TIMEOUT,
        username: t.Optional[str] = None,
        password: t.Optional[str] = None,
        executable: str = IPMITOOL_EXEC,
    ):
        self.timeout = timeout
        self.username = username
        self.password = password
        self.executable = executable
        self.logger = get_logger("IPMIBackend")

    def command(self, endpoint: VendorRemote, action: str) -> t.List[str]:
        """Build the ipmitool command line for the given power action."""

        cmd = [
            self.executable,
            "-I",
            endpoint.interface,
            "-H",
            endpoint.address,
        ]
        username = endpoint.username or self.username
        password = endpoint.password or self.password
        if username:
            cmd.extend(["-U", username])
        if password:
            cmd.extend(["-P", password])
        cmd.extend(["chassis", "power", action])
        return cmd

    def _run(self, host: str, endpoint: VendorRemote, action: str) -> str:
        self.logger.info(
            "Running ipmi power %s for %s at %s",
            action,
            host,
            endpoint.address,
        )
        try:
            result = subprocess.run(
                self.command(endpoint, action),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as err:
            self.logger.warning(
                "ipmi power %s timed out for %s after %ss",
                action,
                host,
                self.timeout,
            )
            raise BackendTimeout(
                host, f"ipmitool timed out after {self.timeout}s"
            ) from err
        except UnicodeDecodeError as err:
            self.logger.warning(
                "ipmitool sent undecodable output for %s: %s", host, err
            )
            raise BackendProtocolError(
                host, f"undecodable ipmitool output: {err}"
            ) from err
        except OSError as err:
            self.logger.error("Unable to run %s: %s", self.executable, err)
            raise BackendRefused(
                host, f"unable to run {self.executable}: {err}"
            ) from err

        if result.returncode != 0:
            error = result.stderr.strip() or result.stdout.strip()
            self.logger.warning(
                "ipmi power %s failed for %s: %s", action, host, error
            )
            raise BackendRefused(host, error or "ipmitool failed")
        return result.stdout.strip()

    def query_state(self, host: str, endpoint: VendorRemote) -> PowerState:
        output = self._run(host, endpoint, "status")
        states = {
            "chassis power is on": PowerState.on,
            "chassis power is off": PowerState.off,
        }
        state = states.get(output.lower())
        if state is None:
            raise BackendProtocolError(
                host, f"unexpected ipmitool output: {output!r}"
            )
        return state

    def power_on(self, host: str, endpoint: VendorRemote):
        self._run(host, endpoint, "on")

    def power_off(self, host: str, endpoint: VendorRemote):
        self._run(host, endpoint, "off")

    def power_cycle(self, host: str, endpoint: VendorRemote):
        self._run(host, endpoint, "cycle")


class AgentBackend(PowerBackend):
    """
    Control power through a management agent's http api.

    The agent answers ``GET <base>/power`` with ``{"state": "on"}``
    (``on``, ``off`` or ``unknown``) and accepts ``POST
    <base>/power/<on|off|cycle>``. ``<base>`` is the endpoint address,
    prefixed with ``http://`` if it has no scheme.

    Parameters
    ----------
    timeout : float
        Seconds allowed to connect and to read the response.
    session : requests.Session, optional
        Session to send requests with.
    """

    STATES = {
        "on": PowerState.on,
        "off": PowerState.off,
        "unknown": PowerState.unknown,
    }

    def __init__(
        self,
        timeout: float = POWER_TIMEOUT,
        session: t.Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.logger = get_logger("AgentBackend")

    @staticmethod
    def base_url(endpoint: GenericAgent) -> str:
        """Return the url of the agent, without trailing slash."""

        address = endpoint.address.rstrip("/")
        if "://" not in address:
            address = f"http://{address}"
        return address

    def _request(
        self, host: str, method: str, url: str
    ) -> requests.Response:
        self.logger.info("Sending %s request on %s for %s", method, url, host)
        try:
            resp = self.session.request(
                method,
                url,
                timeout=(self.timeout, self.timeout),
                headers={"Accept": "application/json"},
            )
        # ConnectTimeout is also a ConnectionError, check timeouts first
        except requests.Timeout as err:
            self.logger.warning("%s %s timed out for %s", method, url, host)
            raise BackendTimeout(
                host, f"agent timed out after {self.timeout}s"
            ) from err
        except requests.ConnectionError as err:
            self.logger.warning("Unable to reach agent of %s: %s", host, err)
            raise BackendRefused(
                host, f"unable to reach agent: {err}"
            ) from err
        # invalid urls and broken transfers
        except requests.RequestException as err:
            self.logger.warning("Request to agent of %s failed: %s", host, err)
            raise BackendProtocolError(
                host, f"request to agent failed: {err}"
            ) from err

        self.logger.info("Response code %d from %s", resp.status_code, url)
        if resp.status_code in (401, 403):
            raise BackendRefused(
                host, f"agent refused the request ({resp.status_code})"
            )
        if not 200 <= resp.status_code < 300:
            raise BackendProtocolError(
                host, f"unexpected status code {resp.status_code} from agent"
            )
        return resp

    def query_state(self, host: str, endpoint: GenericAgent) -> PowerState:
        resp = self._request(host, "GET", f"{self.base_url(endpoint)}/power")
        try:
            body = resp.json()
        except ValueError as err:
            raise BackendProtocolError(
                host, f"agent sent invalid json: {err}"
            ) from err
        state = body.get("state") if isinstance(body, dict) else None
        if not isinstance(state, str) or state.lower() not in self.STATES:
            raise BackendProtocolError(
                host, f"agent sent unexpected power state: {body!r}"
            )
        return self.STATES[state.lower()]

    def _action(self, host: str, endpoint: GenericAgent, action: str):
        self._request(
            host, "POST", f"{self.base_url(endpoint)}/power/{action}"
        )

    def power_on(self, host: str, endpoint: GenericAgent):
        self._action(host, endpoint, "on")

    def power_off(self, host: str, endpoint: GenericAgent):
        self._action(host, endpoint, "off")

    def power_cycle(self, host: str, endpoint: GenericAgent):
        self._action(host, endpoint, "cycle")


class PowerAdapter:
    """
    Translate power operations on hosts into backend calls.

    Parameters
    ----------
    vendor : PowerBackend
        Backend for `VendorRemote` endpoints.
    agent : PowerBackend
        Backend for `GenericAgent` endpoints.
    """

    def __init__(
        self,
        vendor: t.Optional[PowerBackend] = None,
        agent: t.Optional[PowerBackend] = None,
    ):
        self.vendor = vendor if vendor is not None else IPMIBackend()
        self.agent = agent if agent is not None else AgentBackend()
        self.logger = get_logger("PowerAdapter")

    def backend(
        self, host: Host
    ) -> t.Tuple[PowerBackend, Endpoint]:
        """
        Return the backend and endpoint to use for the given host.

        Raises
        ------
        NoManagementEndpoint
            If the host has no management endpoint.
        """

        endpoint = host.management
        if isinstance(endpoint, VendorRemote):
            return self.vendor, endpoint
        if isinstance(endpoint, GenericAgent):
            return self.agent, endpoint
        if isinstance(endpoint, NoEndpoint):
            raise NoManagementEndpoint(
                host.name, "no management endpoint configured"
            )
        raise TypeError(f"Unknown management endpoint {endpoint!r}")

    def query_state(self, host: Host) -> PowerState:
        """Return the live power state of the host."""

        backend, endpoint = self.backend(host)
        return backend.query_state(host.name, endpoint)

    def power_on(self, host: Host) -> PowerState:
        """Power the host on, returning its new state."""

        backend, endpoint = self.backend(host)
        backend.power_on(host.name, endpoint)
        return PowerState.on

    def power_off(self, host: Host) -> PowerState:
        """Power the host off, returning its new state."""

        backend, endpoint = self.backend(host)
        backend.power_off(host.name, endpoint)
        return PowerState.off

    def reboot(self, host: Host) -> PowerState:
        """
        Make the host boot, whatever its current state.

        Running hosts are power-cycled, hosts which are off or in an
        unknown state are powered on.
        """

        backend, endpoint = self.backend(host)
        state = backend.query_state(host.name, endpoint)
        if state == PowerState.on:
            self.logger.info("Power cycling %s", host.name)
            backend.power_cycle(host.name, endpoint)
        else:
            self.logger.info("Powering on %s (was %s)", host.name, state.value)
            backend.power_on(host.name, endpoint)
        return PowerState.on
