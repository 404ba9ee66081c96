# -*- coding: utf-8 -*-
"""Keep the registry in sync with live power states and discovered hosts."""
import typing as t

from pxepilot.deploy import fan_out
from pxepilot.errors import HostError
from pxepilot.host import Host
from pxepilot.logging import get as get_logger
from pxepilot.model import PilotModel
from pxepilot.power import PowerAdapter
from pxepilot.registry import HostRegistry
from pxepilot.vars import MAX_WORKERS


class RefreshResult(PilotModel):
    """
    Hosts whose power state was refreshed, and those which didn't answer.

    A refresh with failures is still a successful refresh, power state is
    telemetry and the failed hosts keep their previous value.
    """

    refreshed: t.List[str] = []
    failed: t.List[str] = []

    @property
    def ok(self) -> bool:  # pylint: disable=invalid-name
        """Return if every queried host answered."""

        return len(self.failed) == 0


class RefreshEngine:
    """
    Reconcile cached host information with the outside world.

    Parameters
    ----------
    registry : HostRegistry
    adapter : PowerAdapter
    max_workers : int
        Bound on concurrent power state queries.
    """

    def __init__(
        self,
        registry: HostRegistry,
        adapter: PowerAdapter,
        max_workers: int = MAX_WORKERS,
    ):
        self.registry = registry
        self.adapter = adapter
        self.max_workers = max_workers
        self.logger = get_logger("RefreshEngine")

    def refresh_all(self) -> RefreshResult:
        """Query the power state of every host with a management endpoint."""

        hosts = [host for host in self.registry.list() if host.has_management]
        self.logger.info("Refreshing power state of %d host(s)", len(hosts))
        states = fan_out(hosts, self.adapter.query_state, self.max_workers)

        result = RefreshResult()
        for host, state in zip(hosts, states):
            if isinstance(state, HostError):
                self.logger.warning(
                    "Unable to refresh power state of %s: %s", host.name, state
                )
                result.failed.append(host.name)
                continue
            if self.registry.set_power_state(host.name, state) is None:
                # removed while we were asking
                continue
            result.refreshed.append(host.name)

        if not result.ok:
            self.logger.warning(
                "Power state refresh failed for: %s", ", ".join(result.failed)
            )
        return result

    def sync(self, hosts: t.Iterable[Host]) -> t.List[Host]:
        """
        Register or update discovered hosts.

        Identity, name and management endpoint are taken from the given
        hosts, configurations and power states already known are kept.

        Raises
        ------
        DuplicateMacError
        DuplicateNameError
        """

        synced = []
        for host in hosts:
            synced.append(
                self.registry.upsert(
                    host.macs, host.name, management=host.management
                )
            )
        self.logger.info("Synced %d host(s)", len(synced))
        return synced
