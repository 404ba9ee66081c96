#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# pylint: disable=redefined-outer-name,unused-argument
"""Test contents of pxepilot.host module."""
import orjson
import pytest
from hypothesis import given
from pydantic import ValidationError

from pxepilot.host import (
    GenericAgent,
    Host,
    NoEndpoint,
    PowerState,
    VendorRemote,
    get_uuid,
    hosts_from_dir,
    normalize_mac,
)

from .conftest import PROD, host_strategy

pytestmark = pytest.mark.usefixtures("logfix")


def test_normalize_mac_lowercases_and_uses_colons():
    """Test MACs are normalized to a single form."""

    assert normalize_mac("AA-BB-CC-DD-EE-FF") == "aa:bb:cc:dd:ee:ff"
    assert normalize_mac(" aa:bb ") == "aa:bb"
    with pytest.raises(ValueError):
        normalize_mac("  ")


def test_host_needs_a_mac_and_rejects_duplicates():
    """Test MAC list constraints of a host."""

    with pytest.raises(ValidationError):
        Host(name="a", macs=[])
    with pytest.raises(ValidationError):
        Host(name="a", macs=["aa:aa", "AA-AA"])
    with pytest.raises(ValidationError):
        Host(name=" ", macs=["aa:aa"])


def test_host_defaults():
    """Test a host without management or configuration."""

    host = Host(name="a", macs=["AA:AA"])

    assert host.macs == ["aa:aa"]
    assert isinstance(host.management, NoEndpoint)
    assert not host.has_management
    assert host.configuration is None
    assert host.power_state == PowerState.unknown


def test_management_is_parsed_by_kind():
    """Test the management endpoint is picked from its kind."""

    vendor = Host.model_validate(
        {
            "name": "a",
            "macs": ["aa:aa"],
            "management": {"kind": "vendor_remote", "address": "10.0.0.1"},
        }
    )
    agent = Host.model_validate(
        {
            "name": "b",
            "macs": ["bb:bb"],
            "management": {"kind": "generic_agent", "address": "10.0.0.2"},
        }
    )

    assert isinstance(vendor.management, VendorRemote)
    assert vendor.management.interface == "lanplus"
    assert isinstance(agent.management, GenericAgent)
    assert agent.has_management

    with pytest.raises(ValidationError):
        Host.model_validate(
            {
                "name": "c",
                "macs": ["cc:cc"],
                "management": {"kind": "telepathy", "address": "x"},
            }
        )


def test_uuid_depends_on_macs_only():
    """Test the uuid follows the MACs, not the name."""

    one = Host(name="a", macs=["aa:aa", "bb:bb"])
    two = Host(name="b", macs=["AA-AA", "BB-BB"])

    assert one.uuid == two.uuid == get_uuid(macs=["aa:aa", "bb:bb"])
    assert get_uuid(host=one) == one.uuid
    assert Host(name="a", macs=["aa:aa"]).uuid != one.uuid
    with pytest.raises(ValueError):
        get_uuid(macs=[])


@given(host=host_strategy())
def test_host_json_round_trip(host: Host):
    """Test a host comes back unchanged from its json form."""

    host.configuration = PROD

    assert Host.from_json(host.to_json()) == host


def test_hosts_from_dir_reads_single_hosts_and_lists(tmp_path):
    """Test host files may hold one host or a list of them."""

    (tmp_path / "one.json").write_bytes(
        orjson.dumps({"name": "one", "macs": ["aa:aa"]})
    )
    (tmp_path / "more.json").write_bytes(
        orjson.dumps(
            [
                {"name": "two", "macs": ["bb:bb"]},
                {"name": "three", "macs": ["cc:cc"]},
            ]
        )
    )
    (tmp_path / "ignored.txt").write_text("not a host", "utf-8")

    hosts = hosts_from_dir(tmp_path)

    assert sorted(host.name for host in hosts) == ["one", "three", "two"]


def test_hosts_from_dir_raises_on_invalid_file(tmp_path):
    """Test an invalid host file is an error."""

    (tmp_path / "bad.json").write_text('{"name": "bad"}', "utf-8")

    with pytest.raises(ValueError):
        hosts_from_dir(tmp_path)
