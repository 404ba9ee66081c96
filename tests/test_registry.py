#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# pylint: disable=redefined-outer-name,unused-argument
"""Test contents of pxepilot.registry module."""
import threading
import typing as t

import pytest
from hypothesis import given
from redis import Redis

from pxepilot.catalog import Configuration, ConfigurationCatalog
from pxepilot.errors import DuplicateMacError, DuplicateNameError
from pxepilot.fsdata import SHA256
from pxepilot.host import GenericAgent, Host, PowerState
from pxepilot.registry import (
    BaseHostStore,
    HostRegistry,
    MemoryHostStore,
    RedisHostStore,
)

from .conftest import DEV, PROD, PXELINUX, host_strategy, unique_hosts_strategy

pytestmark = pytest.mark.usefixtures("logfix")


def check_store_contract(store: BaseHostStore, hosts: t.List[Host]):
    """Exercise the operations every store must support."""

    assert store.all() == []
    assert store.get(SHA256("missing")) is None
    assert store.get_by_name("missing") is None
    with pytest.raises(ValueError):
        store.delete(SHA256("missing"))

    for host in hosts:
        store.put(host)
    assert sorted(store.all(), key=lambda h: h.name) == sorted(
        hosts, key=lambda h: h.name
    )
    for host in hosts:
        assert store.get(host.uuid) == host
        assert store.get_by_name(host.name) == host

    first = hosts[0]
    assert store.find(name=first.name) == [first]
    assert store.find(name=first.name, power_state="nope") == []

    renamed = first.model_copy(update={"name": first.name + "_renamed"})
    store.put(renamed)
    assert store.get_by_name(first.name) is None
    assert store.get_by_name(renamed.name) == renamed

    store.delete(first.uuid)
    assert store.get(first.uuid) is None
    assert store.get_by_name(renamed.name) is None
    assert len(store.all()) == len(hosts) - 1


class TestMemoryHostStore:
    """Test functionality of pxepilot.registry.MemoryHostStore"""

    @staticmethod
    @given(hosts=unique_hosts_strategy())
    def test_memory_store_contract(hosts: t.List[Host]):
        """Test put, get, find and delete on the memory store."""

        check_store_contract(MemoryHostStore(), hosts)

    @staticmethod
    def test_memory_store_hands_out_copies():
        """Test mutating a returned host doesn't change the store."""

        store = MemoryHostStore()
        store.put(Host(name="a", macs=["aa:aa"]))

        host = store.get_by_name("a")
        assert host is not None
        host.power_state = PowerState.on

        stored = store.get_by_name("a")
        assert stored is not None
        assert stored.power_state == PowerState.unknown


class TestRedisHostStore:
    """Test functionality of pxepilot.registry.RedisHostStore"""

    @staticmethod
    @given(hosts=unique_hosts_strategy())
    def test_redis_store_contract(hosts: t.List[Host], my_redisdb: Redis):
        """Test put, get, find and delete on the redis store."""

        my_redisdb.flushall()
        check_store_contract(RedisHostStore(redis_conn=my_redisdb), hosts)

    @staticmethod
    def test_redis_store_ping(my_redisdb: Redis):
        """Test ping succeeds on a running redis."""

        assert RedisHostStore(redis_conn=my_redisdb).ping()

    @staticmethod
    def test_registry_works_on_redis(my_redisdb: Redis):
        """Test the registry over the redis store."""

        my_redisdb.flushall()
        registry = HostRegistry(RedisHostStore(redis_conn=my_redisdb))
        registry.upsert(["aa:aa"], "a")
        registry.set_configuration("a", PROD)

        host = registry.lookup("a")
        assert host is not None
        assert host.configuration == PROD
        assert registry.remove("a")
        assert registry.list() == []


class TestHostRegistry:
    """Test functionality of pxepilot.registry.HostRegistry"""

    @staticmethod
    def test_lookup_of_unknown_name_is_none(registry: HostRegistry):
        """Test a missing host is reported as None, not an exception."""

        assert registry.lookup("missing") is None
        assert registry.set_configuration("missing", PROD) is None
        assert registry.set_power_state("missing", PowerState.on) is None
        assert not registry.remove("missing")

    @staticmethod
    @given(hosts=unique_hosts_strategy(min_size=2))
    def test_list_is_sorted_by_name(hosts: t.List[Host]):
        """Test the registry lists hosts sorted by name."""

        registry = HostRegistry(MemoryHostStore())
        for host in hosts:
            registry.upsert(host.macs, host.name)

        assert [h.name for h in registry.list()] == sorted(
            h.name for h in hosts
        )

    @staticmethod
    def test_upsert_creates_then_updates(registry: HostRegistry):
        """Test upsert matches the existing host by its MACs."""

        created = registry.upsert(["AA:AA"], "a")
        registry.set_configuration("a", PROD)
        registry.set_power_state("a", PowerState.on)

        agent = GenericAgent(address="10.0.0.1")
        updated = registry.upsert(
            ["aa:aa", "bb:bb"], "renamed", management=agent
        )

        assert updated.name == "renamed"
        assert updated.macs == ["aa:aa", "bb:bb"]
        assert updated.management == agent
        assert updated.configuration == PROD
        assert updated.power_state == PowerState.on
        assert updated.uuid != created.uuid
        assert registry.lookup("a") is None
        assert [h.name for h in registry.list()] == ["renamed"]

    @staticmethod
    def test_upsert_drops_lock_of_replaced_uuid(registry: HostRegistry):
        """Test changing the MACs of a host doesn't leave its old lock."""

        created = registry.upsert(["aa:aa"], "a")
        registry.set_configuration("a", PROD)
        # pylint: disable=protected-access
        assert created.uuid in registry._locks

        updated = registry.upsert(["aa:aa", "bb:bb"], "a")
        registry.set_configuration("a", DEV)

        assert created.uuid not in registry._locks
        assert set(registry._locks) == {updated.uuid}

    @staticmethod
    def test_upsert_without_name_keeps_name(registry: HostRegistry):
        """Test name is optional when updating."""

        registry.upsert(["aa:aa"], "a")

        assert registry.upsert(["aa:aa"]).name == "a"
        with pytest.raises(ValueError):
            registry.upsert(["bb:bb"])

    @staticmethod
    def test_upsert_rejects_duplicates(registry: HostRegistry):
        """Test MACs and names stay unique across hosts."""

        registry.upsert(["aa:aa"], "a")
        registry.upsert(["bb:bb"], "b")

        with pytest.raises(DuplicateMacError):
            registry.upsert(["aa:aa", "bb:bb"], "c")
        with pytest.raises(DuplicateNameError):
            registry.upsert(["cc:cc"], "a")
        with pytest.raises(DuplicateNameError):
            registry.upsert(["bb:bb"], "a")
        assert len(registry.list()) == 2

    @staticmethod
    def test_mutations_of_different_hosts_do_not_contend(
        registry: HostRegistry,
    ):
        """Test holding one host's lock doesn't block another host."""

        a = registry.upsert(["aa:aa"], "a")
        registry.upsert(["bb:bb"], "b")
        done = threading.Event()

        def _mutate_b():
            registry.set_configuration("b", PROD)
            done.set()

        with registry.host_lock(a.uuid):
            thread = threading.Thread(target=_mutate_b)
            thread.start()
            assert done.wait(timeout=5)
        thread.join()

        host = registry.lookup("b")
        assert host is not None and host.configuration == PROD

    @staticmethod
    def test_mutation_waits_for_host_lock(registry: HostRegistry):
        """Test a mutation of a locked host waits for the lock."""

        a = registry.upsert(["aa:aa"], "a")
        done = threading.Event()

        def _mutate_a():
            registry.set_configuration("a", PROD)
            done.set()

        with registry.host_lock(a.uuid):
            thread = threading.Thread(target=_mutate_a)
            thread.start()
            assert not done.wait(timeout=0.2)
        thread.join()

        assert done.is_set()

    @staticmethod
    def test_concurrent_configuration_updates_are_not_lost(
        registry: HostRegistry,
    ):
        """Test racing updates of many hosts all land."""

        names = [f"host{i}" for i in range(20)]
        for i, name in enumerate(names):
            registry.upsert([f"aa:{i:02x}"], name)

        threads = [
            threading.Thread(
                target=registry.set_configuration, args=(name, PROD)
            )
            for name in names
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert all(h.configuration == PROD for h in registry.list())

    @staticmethod
    def test_reconcile_unassigns_removed_configurations(
        registry: HostRegistry,
    ):
        """Test a catalog reload unassigns vanished configurations."""

        registry.upsert(["aa:aa"], "a")
        registry.upsert(["bb:bb"], "b")
        registry.upsert(["cc:cc"], "c")
        registry.set_configuration("a", PROD)
        registry.set_configuration("b", DEV)
        new_prod = Configuration(
            name="prod", bootloader=PXELINUX, content="DEFAULT new\n"
        )

        unassigned = registry.reconcile_configurations(
            ConfigurationCatalog([PXELINUX], [new_prod])
        )

        assert unassigned == ["b"]
        a, b, c = registry.list()
        assert a.configuration == new_prod
        assert b.configuration is None
        assert c.configuration is None

    @staticmethod
    @given(host=host_strategy(name="only"))
    def test_remove_forgets_host(host: Host):
        """Test a removed host can be registered again."""

        registry = HostRegistry(MemoryHostStore())
        registry.upsert(host.macs, host.name)

        assert registry.remove("only")
        assert registry.lookup("only") is None
        assert registry.upsert(host.macs, "only").name == "only"
