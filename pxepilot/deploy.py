#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Deploy configurations onto hosts and drive their power.

A deployment assigns one configuration to a batch of hosts and reboots
the ones asked for. Failures are isolated per host: an unknown name or an
unreachable controller only fails that host's entry, the rest of the batch
carries on. Assignments are never rolled back, a host which failed to
reboot still boots the new configuration next time.
"""
import functools
import typing as t
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

from pxepilot.catalog import CatalogReference, Configuration
from pxepilot.errors import (
    ConfigurationNotFound,
    FailureReason,
    HostError,
    HostUnknown,
    UnexpectedHostError,
)
from pxepilot.fsdata import SHA256
from pxepilot.host import Host, PowerState
from pxepilot.logging import get as get_logger
from pxepilot.model import PilotModel
from pxepilot.power import PowerAdapter
from pxepilot.registry import HostRegistry
from pxepilot.tftp import ConfigWriter
from pxepilot.vars import MAX_WORKERS

_T = t.TypeVar("_T")
_logger = get_logger("deploy")


def fan_out(
    hosts: t.Sequence[Host],
    operation: t.Callable[[Host], _T],
    max_workers: int = MAX_WORKERS,
) -> t.List[t.Union[_T, HostError]]:
    """
    Run operation for every host on a thread pool.

    Results come back in the order of `hosts`, whatever order the calls
    complete in. A `HostError` raised for one host is returned in that
    host's slot instead of being raised. Any other exception is logged and
    returned as an `UnexpectedHostError`.
    """

    def _capture(host: Host) -> t.Union[_T, HostError]:
        try:
            return operation(host)
        except HostError as err:
            return err
        except Exception as err:  # pylint: disable=broad-except
            _logger.exception("Unexpected error on host %s", host.name)
            failure = UnexpectedHostError(
                host.name, f"{type(err).__name__}: {err}"
            )
            failure.__cause__ = err
            return failure

    if len(hosts) == 0:
        return []
    with ThreadPoolExecutor(
        max_workers=max(1, min(max_workers, len(hosts))),
        thread_name_prefix="pxepilot-power",
    ) as pool:
        futures = [pool.submit(_capture, host) for host in hosts]
        return [future.result() for future in futures]


class Outcome(str, Enum):
    """What happened to one entry of a deployment."""

    rebooted = "Rebooted"  # pylint: disable=invalid-name
    config_applied = "ConfigApplied"  # pylint: disable=invalid-name
    failed = "Failed"  # pylint: disable=invalid-name


class HostRequest(PilotModel):
    """Ask for a host to get the configuration, and maybe reboot."""

    name: str
    reboot: bool = False


class HostResult(PilotModel):
    """
    Outcome of one deployment entry.

    Attributes
    ----------
    name : str
        Host name, as requested.
    outcome : Outcome
    reason : FailureReason, optional
        Set when the outcome is `Outcome.failed`.
    detail : str, optional
        Human readable explanation of the failure.
    """

    name: str
    outcome: Outcome
    reason: t.Optional[FailureReason] = None
    detail: t.Optional[str] = None

    @classmethod
    def from_error(cls, name: str, err: HostError) -> "HostResult":
        """Create a failed result from the given error."""

        return cls(
            name=name,
            outcome=Outcome.failed,
            reason=err.reason,
            detail=err.message or None,
        )


class DeploymentResult(PilotModel):
    """Results of a deployment, in the order hosts were requested."""

    configuration: str
    hosts: t.List[HostResult]

    @property
    def failures(self) -> t.List[HostResult]:
        """Results of the entries which failed."""

        return [r for r in self.hosts if r.outcome == Outcome.failed]


RequestLike = t.Union[HostRequest, t.Tuple[str, bool]]


class DeploymentOrchestrator:
    """
    Assign configurations to hosts and control their power.

    Parameters
    ----------
    registry : HostRegistry
    catalog : CatalogReference
        Read once per deployment.
    adapter : PowerAdapter
    writer : ConfigWriter, optional
        If given, assigned configurations are also written for the TFTP
        server.
    max_workers : int
        Bound on concurrent power operations of one deployment.
    """

    def __init__(
        self,
        registry: HostRegistry,
        catalog: CatalogReference,
        adapter: PowerAdapter,
        writer: t.Optional[ConfigWriter] = None,
        max_workers: int = MAX_WORKERS,
    ):
        self.registry = registry
        self.catalog = catalog
        self.adapter = adapter
        self.writer = writer
        self.max_workers = max_workers

    def _assign(self, name: str, configuration: Configuration) -> Host:
        # written under the host lock so the file matches the registry
        write = None
        if self.writer is not None:
            write = functools.partial(
                self.writer.write, configuration=configuration
            )
        host = self.registry.set_configuration(name, configuration, write)
        if host is None:
            raise HostUnknown(name, "no such host")
        return host

    def _reboot(self, host: Host) -> PowerState:
        state = self.adapter.reboot(host)
        self.registry.set_power_state(host.name, state)
        return state

    def deploy(
        self, configuration_name: str, requests: t.Iterable[RequestLike]
    ) -> DeploymentResult:
        """
        Deploy a configuration onto the requested hosts.

        Parameters
        ----------
        configuration_name : str
        requests : iterable of HostRequest or (name, reboot) tuples

        Raises
        ------
        ConfigurationNotFound
            If the configuration is not in the catalog. Nothing is changed.
        """

        configuration = self.catalog.get().resolve(configuration_name)
        if configuration is None:
            _logger.warning(
                "Refusing to deploy unknown configuration %s",
                configuration_name,
            )
            raise ConfigurationNotFound(configuration_name)

        entries = [
            r
            if isinstance(r, HostRequest)
            else HostRequest(name=r[0], reboot=r[1])
            for r in requests
        ]
        _logger.info(
            "Deploying %s on %s",
            configuration_name,
            ", ".join(e.name for e in entries),
        )

        results: t.List[t.Optional[HostResult]] = [None] * len(entries)
        # one reboot per host, duplicate entries share its outcome
        reboots: t.Dict[SHA256, t.Tuple[Host, t.List[int]]] = {}
        for index, entry in enumerate(entries):
            try:
                host = self._assign(entry.name, configuration)
            except HostError as err:
                _logger.warning(
                    "Unable to deploy %s on %s: %s",
                    configuration_name,
                    entry.name,
                    err,
                )
                results[index] = HostResult.from_error(entry.name, err)
                continue
            if entry.reboot:
                reboots.setdefault(host.uuid, (host, []))[1].append(index)
            else:
                results[index] = HostResult(
                    name=entry.name, outcome=Outcome.config_applied
                )

        hosts = [host for host, _ in reboots.values()]
        outcomes = fan_out(hosts, self._reboot, self.max_workers)
        for (host, indexes), outcome in zip(reboots.values(), outcomes):
            if isinstance(outcome, HostError):
                _logger.warning("Unable to reboot %s: %s", host.name, outcome)
            for index in indexes:
                name = entries[index].name
                results[index] = (
                    HostResult.from_error(name, outcome)
                    if isinstance(outcome, HostError)
                    else HostResult(name=name, outcome=Outcome.rebooted)
                )

        result = DeploymentResult(
            configuration=configuration_name,
            hosts=[r for r in results if r is not None],
        )
        _logger.info(
            "Deployed %s on %d host(s), %d failure(s)",
            configuration_name,
            len(result.hosts),
            len(result.failures),
        )
        return result

    def _power(
        self, name: str, operation: t.Callable[[Host], PowerState]
    ) -> PowerState:
        host = self.registry.lookup(name)
        if host is None:
            raise HostUnknown(name, "no such host")
        state = operation(host)
        self.registry.set_power_state(host.name, state)
        return state

    def power_on(self, name: str) -> PowerState:
        """
        Power on the named host.

        Raises
        ------
        HostUnknown
        PowerError
        """

        return self._power(name, self.adapter.power_on)

    def power_off(self, name: str) -> PowerState:
        """Power off the named host, see `power_on` for errors."""

        return self._power(name, self.adapter.power_off)

    def reboot(self, name: str) -> PowerState:
        """Boot the named host, power-cycling it if it is running."""

        return self._power(name, self.adapter.reboot)
