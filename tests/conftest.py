#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Store shared fixtures for pxepilot tests."""
import os
import re
import shutil
import threading
import time
import typing as t
from pathlib import Path

import orjson
import pytest
from hypothesis import HealthCheck, settings
from hypothesis import strategies as st
from pytest_redis import factories

import pxepilot.logging
from pxepilot.catalog import (
    Bootloader,
    CatalogReference,
    Configuration,
    ConfigurationCatalog,
)
from pxepilot.cli.config import Config
from pxepilot.errors import PowerError
from pxepilot.host import GenericAgent, Host, NoEndpoint, PowerState
from pxepilot.power import PowerAdapter, PowerBackend
from pxepilot.registry import HostRegistry, MemoryHostStore

# Generating hosts with hypothesis can be slow, and the redis fixtures are
# function scoped, so disable these health checks by default.
settings.register_profile(
    "suppress_too_slow",
    suppress_health_check=(
        HealthCheck.too_slow,
        HealthCheck.function_scoped_fixture,
    ),
    deadline=None,
    max_examples=15,
)
settings.load_profile("suppress_too_slow")

EXEC_SOURCE_DIR = Path(__file__).parent.parent / "etc" / "pxepilot" / "exec"

PXELINUX = Bootloader(
    name="pxelinux", file="pxelinux.0", config_path="pxelinux.cfg"
)
PROD = Configuration(
    name="prod", bootloader=PXELINUX, content="DEFAULT prod\n"
)
DEV = Configuration(name="dev", bootloader=PXELINUX, content="DEFAULT dev\n")


def mac_strategy():
    """Hypothesis strategy to generate MAC addresses."""

    return st.from_regex(
        re.compile(r"([0-9a-f]{2}:){5}[0-9a-f]{2}"), fullmatch=True
    )


def name_strategy():
    """Hypothesis strategy to generate host names."""

    return st.from_regex(re.compile(r"[a-z][a-z0-9-]{0,15}"), fullmatch=True)


@st.composite
def host_strategy(draw, name=None):
    """Hypothesis strategy to generate Host instances."""

    macs = draw(st.lists(mac_strategy(), min_size=1, max_size=3, unique=True))
    management = draw(
        st.one_of(
            st.just(NoEndpoint()),
            st.builds(
                GenericAgent,
                address=st.from_regex(
                    re.compile(r"10\.0\.[0-9]{1,2}\.[0-9]{1,2}"),
                    fullmatch=True,
                ),
            ),
        )
    )
    return Host(
        name=name if name is not None else draw(name_strategy()),
        macs=macs,
        management=management,
        power_state=draw(st.sampled_from(PowerState)),
    )


@st.composite
def unique_hosts_strategy(draw, min_size=1, max_size=8):
    """Hypothesis strategy to generate hosts sharing no name and no MAC."""

    hosts = draw(
        st.lists(
            host_strategy(),
            min_size=min_size,
            max_size=max_size,
            unique_by=lambda host: host.name,
        )
    )
    seen: t.Set[str] = set()
    unique = []
    for host in hosts:
        if seen.isdisjoint(host.macs):
            seen.update(host.macs)
            unique.append(host)
    return unique


class FakeBackend(PowerBackend):
    """
    In-process power backend recording every call it gets.

    Parameters
    ----------
    states : dict, optional
        Power state of each host name, hosts not in here are off.
    delays : dict, optional
        Seconds each call for the given host name sleeps.
    failures : dict, optional
        `PowerError` subclass raised by every call for the given host name.
    crashes : dict, optional
        Exception raised as is by every call for the given host name, for
        failures the power code doesn't translate.
    """

    def __init__(
        self,
        states: t.Optional[t.Dict[str, PowerState]] = None,
        delays: t.Optional[t.Dict[str, float]] = None,
        failures: t.Optional[t.Dict[str, t.Type[PowerError]]] = None,
        crashes: t.Optional[t.Dict[str, Exception]] = None,
    ):
        self.states = dict(states or {})
        self.delays = dict(delays or {})
        self.failures = dict(failures or {})
        self.crashes = dict(crashes or {})
        self.calls: t.List[t.Tuple[str, str]] = []
        self.completed: t.List[str] = []
        self._lock = threading.Lock()

    def _call(self, host: str, action: str):
        with self._lock:
            self.calls.append((host, action))
        if host in self.delays:
            time.sleep(self.delays[host])
        if host in self.failures:
            raise self.failures[host](host, "injected failure")
        if host in self.crashes:
            raise self.crashes[host]

    def _done(self, host: str, state: t.Optional[PowerState] = None):
        with self._lock:
            self.completed.append(host)
            if state is not None:
                self.states[host] = state

    def actions(self, host: str) -> t.List[str]:
        """Return the actions called for the given host, in order."""

        return [action for name, action in self.calls if name == host]

    def query_state(self, host, endpoint):
        self._call(host, "status")
        return self.states.get(host, PowerState.off)

    def power_on(self, host, endpoint):
        self._call(host, "on")
        self._done(host, PowerState.on)

    def power_off(self, host, endpoint):
        self._call(host, "off")
        self._done(host, PowerState.off)

    def power_cycle(self, host, endpoint):
        self._call(host, "cycle")
        self._done(host, PowerState.on)


@pytest.fixture()
def fake_backend():
    """Get a FakeBackend without any delay or failure."""

    return FakeBackend()


@pytest.fixture()
def adapter(fake_backend):
    """Get a PowerAdapter sending every call to `fake_backend`."""

    return PowerAdapter(vendor=fake_backend, agent=fake_backend)


@pytest.fixture()
def catalog_ref():
    """Get a catalog holding the prod and dev configurations."""

    return CatalogReference(
        ConfigurationCatalog(
            bootloaders=[PXELINUX], configurations=[PROD, DEV]
        )
    )


@pytest.fixture()
def registry():
    """Get an empty in-memory HostRegistry."""

    return HostRegistry(MemoryHostStore())


@pytest.fixture()
def logfix():
    """Setup and teardown logging for each test."""

    pxepilot.logging.setup(verbose=True, use_stream=True)
    yield
    pxepilot.logging.teardown()


@pytest.fixture
def do_log_teardown():
    """
    Same as logfix, except we only perform the teardown step.

    Used when a test sets up its own logging.
    """

    yield
    pxepilot.logging.teardown()


def get_redis_exec() -> t.Optional[str]:
    """
    Find path to redis-server on the system.

    Can override with env var REDIS_EXEC.
    """

    return os.environ.get("REDIS_EXEC") or shutil.which("redis-server")


REDIS_EXEC = get_redis_exec()
if REDIS_EXEC is not None:
    my_redis_proc = factories.redis_proc(executable=REDIS_EXEC)
    my_redisdb = factories.redisdb("my_redis_proc")
else:

    @pytest.fixture()
    def my_redisdb():
        """Skip tests needing redis, there is no redis-server to run."""

        pytest.skip("redis-server is not available")


def write_config_dir(
    root: Path,
    hosts: t.Optional[t.List[t.Dict[str, t.Any]]] = None,
) -> Path:
    """
    Populate root with a configuration directory.

    Holds the pxelinux bootloader, a plain ``prod`` configuration, a
    ``dev`` template, the given hosts and the gunicorn configs.
    """

    (root / "bootloaders").mkdir(parents=True)
    (root / "bootloaders" / "pxelinux.json").write_bytes(
        orjson.dumps(PXELINUX.model_dump())
    )
    configurations = root / "configurations" / "pxelinux"
    configurations.mkdir(parents=True)
    (configurations / "prod").write_text("DEFAULT prod\n", "utf-8")
    (configurations / "dev.j2").write_text(
        "DEFAULT {{ name }}\n# {{ bootloader.file }}\n", "utf-8"
    )
    (root / "hosts").mkdir()
    if hosts is not None:
        (root / "hosts" / "hosts.json").write_bytes(orjson.dumps(hosts))
    shutil.copytree(EXEC_SOURCE_DIR, root / "exec")
    return root


@pytest.fixture()
def config_dir(tmp_path):
    """Get a populated configuration directory with two hosts."""

    return write_config_dir(
        tmp_path / "config",
        hosts=[
            {
                "name": "alpha",
                "macs": ["AA-AA-AA-AA-AA-01"],
                "management": {
                    "kind": "generic_agent",
                    "address": "10.0.0.1",
                },
            },
            {"name": "bravo", "macs": ["aa:aa:aa:aa:aa:02"]},
        ],
    )


@pytest.fixture()
def config(config_dir, tmp_path):
    """Get a Config pointing at `config_dir`, writing TFTP files in tmp."""

    return Config(
        config_dir=str(config_dir),
        tftp_root=str(tmp_path / "tftpboot"),
        log_dir=str(tmp_path),
    )
