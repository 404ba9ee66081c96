# -*- coding: utf-8 -*-
"""Representation of hosts and the endpoints managing their power."""
import hashlib
import logging
import typing as t
from enum import Enum
from pathlib import Path

import orjson
from pydantic import Field, field_validator

from pxepilot.catalog import Configuration
from pxepilot.fsdata import SHA256, DataFile, FileSystemCache, find_files
from pxepilot.logging import DUMB_LOGGER
from pxepilot.model import PilotModel
from pxepilot.vars import IPMI_INTERFACE

Mac = t.NewType("Mac", str)


def normalize_mac(value: str) -> Mac:
    """
    Normalize a MAC address to lowercase, colon separated form.

    Raises
    ------
    ValueError
        If the given value is empty.
    """

    mac = str(value).strip().lower().replace("-", ":")
    if len(mac) == 0:
        raise ValueError("MAC address must not be empty")
    return Mac(mac)


class PowerState(str, Enum):
    """Last observed power state of a host."""

    on = "On"  # pylint: disable=invalid-name
    off = "Off"  # pylint: disable=invalid-name
    unknown = "Unknown"  # pylint: disable=invalid-name


class VendorRemote(PilotModel):
    """
    Vendor remote-management controller (BMC), driven through IPMI.

    Attributes
    ----------
    mac_address : Mac, optional
        MAC address of the controller's own interface.
    address : str
        Hostname or IP address of the controller.
    username, password : str, optional
        Credentials, falling back to the ones configured globally.
    interface : str
        ipmitool interface, lanplus by default.
    """

    kind: t.Literal["vendor_remote"] = "vendor_remote"
    mac_address: t.Optional[Mac] = None
    address: str
    username: t.Optional[str] = None
    password: t.Optional[str] = None
    interface: str = IPMI_INTERFACE


class GenericAgent(PilotModel):
    """Generic management agent answering over HTTP."""

    kind: t.Literal["generic_agent"] = "generic_agent"
    mac_address: t.Optional[Mac] = None
    address: str


class NoEndpoint(PilotModel):
    """Host has no way to be managed out-of-band."""

    kind: t.Literal["none"] = "none"


ManagementEndpoint = t.Annotated[
    t.Union[VendorRemote, GenericAgent, NoEndpoint],
    Field(discriminator="kind"),
]


class Host(PilotModel):
    """
    Represent a network-booted host.

    Identity is the ordered set of MAC addresses, the name is only the
    handle humans use and may change.

    Attributes
    ----------
    name : str
    macs : list of Mac
        At least one, normalized, no duplicates.
    management : ManagementEndpoint
        Exactly one of VendorRemote, GenericAgent or NoEndpoint.
    configuration : Configuration, optional
        Configuration the host boots with next.
    power_state : PowerState
        Cached from the last observation, not authoritative.
    """

    name: str
    macs: t.List[Mac] = Field(min_length=1)
    management: ManagementEndpoint = Field(default_factory=NoEndpoint)
    configuration: t.Optional[Configuration] = None
    power_state: PowerState = PowerState.unknown

    @field_validator("macs")
    @classmethod
    def macs_are_unique(cls, value: t.List[str]) -> t.List[Mac]:
        """Normalize MAC addresses and reject duplicates."""

        macs = [normalize_mac(mac) for mac in value]
        if len(set(macs)) != len(macs):
            raise ValueError(f"Duplicate MAC addresses given: {macs}")
        return macs

    @property
    def uuid(self) -> SHA256:
        """Stable key of the host, see `get_uuid`."""

        return get_uuid(macs=self.macs)

    @property
    def has_management(self) -> bool:
        """Return if the host can be reached out-of-band."""

        return not isinstance(self.management, NoEndpoint)


def get_uuid(
    macs: t.Optional[t.Sequence[str]] = None,
    host: t.Optional[Host] = None,
) -> SHA256:
    """
    Compute the uuid of a host from its MAC addresses.

    If host is given, MACs will be pulled from the host.

    Raises
    ------
    ValueError
        if no MAC addresses are available.
    """

    if host is not None:
        macs = host.macs
    if not macs:
        raise ValueError("Need at least one MAC address to compute uuid")

    identity = ",".join(normalize_mac(mac) for mac in macs)
    return SHA256(hashlib.sha256(identity.encode("utf-8")).hexdigest())


def hosts_from_dir(
    hosts_dir: Path,
    logger: logging.Logger = DUMB_LOGGER,
    cache: t.Optional[FileSystemCache] = None,
) -> t.List[Host]:
    """
    Load statically registered hosts from json files under hosts_dir.

    Each file holds one host, or a list of hosts.

    Raises
    ------
    ValueError
        If a file doesn't describe hosts.
    OSError
        If a file cannot be read.
    """

    hosts: t.List[Host] = []
    logger.info("Looking for host files in %s", hosts_dir)
    for path in find_files(hosts_dir, logger, ".json"):
        try:
            data = orjson.loads(DataFile(path, cache=cache).read())
            entries = data if isinstance(data, list) else [data]
            hosts.extend(Host.model_validate(entry) for entry in entries)
        except (OSError, ValueError) as err:
            logger.error("Unable to parse host file %s: %s", path, err)
            raise err
    return hosts
