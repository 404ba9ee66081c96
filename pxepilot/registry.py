# -*- coding: utf-8 -*-
"""
Storage of hosts and the registry guarding their mutation.

Stores only know how to persist hosts. The `HostRegistry` on top of them
indexes hosts by name, keeps MAC addresses and names unique and hands out
one lock per host, so mutations of a single host serialize while
mutations of different hosts proceed independently.
"""
import contextlib
import threading
import typing as t
from abc import ABC, abstractmethod

import redis

from pxepilot.catalog import Configuration, ConfigurationCatalog
from pxepilot.errors import DuplicateMacError, DuplicateNameError
from pxepilot.fsdata import SHA256
from pxepilot.host import Host, PowerState, normalize_mac
from pxepilot.logging import get as get_logger


def _matches(host: Host, attrs: t.Dict[str, t.Any]) -> bool:
    dumped = host.model_dump(mode="json")
    return all(dumped.get(key) == value for key, value in attrs.items())


class BaseHostStore(ABC):
    """ABC for a host storage utility."""

    @abstractmethod
    def put(self, host: Host):
        """Put the given host into the store, replacing its previous copy."""

    @abstractmethod
    def get(self, uuid: SHA256) -> t.Optional[Host]:
        """Get host from the store with the given uuid."""

    @abstractmethod
    def get_by_name(self, name: str) -> t.Optional[Host]:
        """Get host from the store with the given name."""

    @abstractmethod
    def delete(self, uuid: SHA256):
        """
        Delete the host with the given uuid.

        Raises
        ------
        ValueError
            If no host has the given uuid.
        """

    @abstractmethod
    def all(self) -> t.List[Host]:
        """Return all hosts in the store."""

    def find(self, **kwargs) -> t.List[Host]:
        """
        Get host(s) from the store matching all of the given attributes.

        Values are compared against the json form of the host, so enums
        are given by value (i.e. ``power_state="On"``).
        """

        return [host for host in self.all() if _matches(host, kwargs)]


class MemoryHostStore(BaseHostStore):
    """
    Keep hosts in process memory, serialized the same way redis does.

    Hosts are stored as json so callers never share an instance with the
    store.
    """

    def __init__(self):
        self._hosts: t.Dict[SHA256, str] = {}
        self._names: t.Dict[str, SHA256] = {}
        # keeps the two dicts consistent with each other
        self._lock = threading.Lock()
        self.logger = get_logger("MemoryHostStore")

    def put(self, host: Host):
        uuid = host.uuid
        with self._lock:
            previous = self._hosts.get(uuid)
            if previous is not None:
                old_name = Host.from_json(previous).name
                if self._names.get(old_name) == uuid:
                    del self._names[old_name]
            self._hosts[uuid] = host.to_json()
            self._names[host.name] = uuid
        self.logger.debug("Stored host %s (%s)", host.name, uuid)

    def get(self, uuid: SHA256) -> t.Optional[Host]:
        raw = self._hosts.get(uuid)
        return Host.from_json(raw) if raw is not None else None

    def get_by_name(self, name: str) -> t.Optional[Host]:
        uuid = self._names.get(name)
        return self.get(uuid) if uuid is not None else None

    def delete(self, uuid: SHA256):
        with self._lock:
            raw = self._hosts.pop(uuid, None)
            if raw is None:
                raise ValueError(f"No host with uuid {uuid} in the store")
            name = Host.from_json(raw).name
            if self._names.get(name) == uuid:
                del self._names[name]

    def all(self) -> t.List[Host]:
        return [Host.from_json(raw) for raw in list(self._hosts.values())]


class RedisHostStore(BaseHostStore):
    """
    Store hosts into Redis.

    A redis connection can be provided if available, otherwise
    any kwargs passed to this instance are given directly to ``redis.Redis``.

    Each host is a json string under ``HOST_KEY_PREFIX + uuid``, uuids are
    kept in the ``HOSTS_KEY`` set and names in the ``NAMES_KEY`` hash.
    """

    HOSTS_KEY = "pxepilot:hosts"
    NAMES_KEY = "pxepilot:names"
    HOST_KEY_PREFIX = "pxepilot:host:"

    def __init__(self, redis_conn: t.Optional[redis.Redis] = None, **kwargs):
        if redis_conn is not None:
            self.redis = redis_conn
        else:
            self.redis = redis.Redis(**kwargs)
        self.logger = get_logger("RedisHostStore")

    def _key(self, uuid: str) -> str:
        return self.HOST_KEY_PREFIX + uuid

    @staticmethod
    def _decode(value: t.Union[str, bytes]) -> str:
        return value.decode("utf-8") if isinstance(value, bytes) else value

    def ping(self) -> bool:
        """Try connecting to configured redis instance, logging results."""

        host = self.redis.connection_pool.connection_kwargs.get("host")
        try:
            self.redis.ping()
        except redis.exceptions.ConnectionError:
            self.logger.warning(
                "Unable to establish connection with redis host at %s", host
            )
            return False
        self.logger.info("Connected to redis at %s", host)
        return True

    def put(self, host: Host):
        uuid = host.uuid
        previous = self.get(uuid)
        with self.redis.pipeline() as pipe:
            if previous is not None and previous.name != host.name:
                pipe.hdel(self.NAMES_KEY, previous.name)
            pipe.set(self._key(uuid), host.to_json())
            pipe.sadd(self.HOSTS_KEY, uuid)
            pipe.hset(self.NAMES_KEY, host.name, uuid)
            pipe.execute()
        self.logger.debug("Stored host %s (%s)", host.name, uuid)

    def get(self, uuid: SHA256) -> t.Optional[Host]:
        raw = self.redis.get(self._key(uuid))
        return Host.from_json(raw) if raw is not None else None

    def get_by_name(self, name: str) -> t.Optional[Host]:
        uuid = self.redis.hget(self.NAMES_KEY, name)
        if uuid is None:
            return None
        return self.get(SHA256(self._decode(uuid)))

    def delete(self, uuid: SHA256):
        host = self.get(uuid)
        if host is None:
            raise ValueError(f"No host with uuid {uuid} in the store")
        with self.redis.pipeline() as pipe:
            pipe.delete(self._key(uuid))
            pipe.srem(self.HOSTS_KEY, uuid)
            pipe.hdel(self.NAMES_KEY, host.name)
            pipe.execute()

    def all(self) -> t.List[Host]:
        uuids = [self._decode(u) for u in self.redis.smembers(self.HOSTS_KEY)]
        if len(uuids) == 0:
            return []
        values = self.redis.mget([self._key(uuid) for uuid in uuids])
        return [Host.from_json(raw) for raw in values if raw is not None]


class HostRegistry:
    """
    Catalog of hosts, addressable by name.

    Lookups return copies; use the mutation methods to change a host.

    Parameters
    ----------
    store : BaseHostStore
        Where hosts are persisted.
    """

    def __init__(self, store: BaseHostStore):
        self.store = store
        self.logger = get_logger("HostRegistry")
        self._locks: t.Dict[SHA256, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        # held by upsert and remove only, they touch the name/MAC indexes
        self._structure_lock = threading.RLock()

    @contextlib.contextmanager
    def host_lock(self, uuid: SHA256) -> t.Iterator[None]:
        """Hold the exclusive mutation scope of one host."""

        with self._locks_guard:
            lock = self._locks.setdefault(uuid, threading.Lock())
        with lock:
            yield

    def lookup(self, name: str) -> t.Optional[Host]:
        """Return the host with the given name, None if there is none."""

        return self.store.get_by_name(name)

    def list(self) -> t.List[Host]:
        """Return a snapshot of all hosts, sorted by name."""

        return sorted(self.store.all(), key=lambda host: host.name)

    def _mutate(
        self,
        name: str,
        mutation: t.Callable[[Host], None],
        then: t.Optional[t.Callable[[Host], t.Any]] = None,
    ) -> t.Optional[Host]:
        """
        Apply mutation to the named host under its lock, then store it.

        If given, `then` is called with the stored host before the lock is
        released. Its exceptions propagate, the stored change is kept.
        """

        host = self.store.get_by_name(name)
        if host is None:
            return None
        with self.host_lock(host.uuid):
            # re-read, someone may have changed it before we got the lock
            current = self.store.get(host.uuid)
            if current is None or current.name != name:
                return None
            mutation(current)
            self.store.put(current)
            if then is not None:
                then(current)
        return current

    def set_configuration(
        self,
        name: str,
        configuration: t.Optional[Configuration],
        then: t.Optional[t.Callable[[Host], t.Any]] = None,
    ) -> t.Optional[Host]:
        """
        Set the configuration of the named host.

        `then` runs with the updated host while its lock is still held.

        Returns
        -------
        Host
            The updated host.
        None
            If no host has the given name.
        """

        def _set(host: Host):
            host.configuration = configuration

        return self._mutate(name, _set, then)

    def set_power_state(
        self, name: str, state: PowerState
    ) -> t.Optional[Host]:
        """Set the cached power state of the named host, None if unknown."""

        def _set(host: Host):
            host.power_state = state

        return self._mutate(name, _set)

    def upsert(
        self,
        macs: t.Sequence[str],
        name: t.Optional[str] = None,
        **attrs: t.Any,
    ) -> Host:
        """
        Create or update the host identified by the given MAC addresses.

        An existing host matches if it owns any of the given MACs; its
        MAC list is replaced by the given one. Remaining attrs (i.e.
        ``management``) are set on the host.

        Raises
        ------
        DuplicateMacError
            If the MACs are spread over more than one existing host.
        DuplicateNameError
            If the name belongs to another host.
        ValueError
            If a new host is given without a name, or attrs are invalid.
        """

        wanted = {normalize_mac(mac) for mac in macs}
        with self._structure_lock:
            owners = {
                host.uuid: host
                for host in self.store.all()
                if wanted.intersection(host.macs)
            }
            if len(owners) > 1:
                raise DuplicateMacError(
                    f"MAC addresses {sorted(wanted)} belong to more than one "
                    f"host: {sorted(h.name for h in owners.values())}"
                )
            existing = next(iter(owners.values()), None)

            if name is not None:
                named = self.store.get_by_name(name)
                if named is not None and (
                    existing is None or named.uuid != existing.uuid
                ):
                    raise DuplicateNameError(f"Host name taken: {name}")

            if existing is None:
                if name is None:
                    raise ValueError("A name is needed to register a host")
                host = Host(name=name, macs=list(macs), **attrs)
                self.store.put(host)
                self.logger.info("Registered host %s (%s)", name, host.uuid)
                return host

            with self.host_lock(existing.uuid):
                current = self.store.get(existing.uuid) or existing
                data = current.model_dump()
                data.update(attrs, macs=list(macs))
                if name is not None:
                    data["name"] = name
                updated = Host(**data)
                if updated.uuid != current.uuid:
                    self.store.delete(current.uuid)
                self.store.put(updated)
            if updated.uuid != existing.uuid:
                with self._locks_guard:
                    self._locks.pop(existing.uuid, None)
            self.logger.info(
                "Updated host %s (%s)", updated.name, updated.uuid
            )
            return updated

    def remove(self, name: str) -> bool:
        """Remove the named host, returning False if it didn't exist."""

        with self._structure_lock:
            host = self.store.get_by_name(name)
            if host is None:
                return False
            with self.host_lock(host.uuid):
                self.store.delete(host.uuid)
            with self._locks_guard:
                self._locks.pop(host.uuid, None)
        self.logger.info("Removed host %s (%s)", name, host.uuid)
        return True

    def reconcile_configurations(
        self, catalog: ConfigurationCatalog
    ) -> t.List[str]:
        """
        Point hosts at the configurations of a freshly loaded catalog.

        Hosts whose configuration disappeared from the catalog are
        unassigned, the others get the catalog's current version.

        Returns
        -------
        list of str
            Names of the hosts which were unassigned.
        """

        unassigned = []
        for host in self.list():
            if host.configuration is None:
                continue
            current = catalog.resolve(host.configuration.name)
            if current == host.configuration:
                continue
            self.set_configuration(host.name, current)
            if current is None:
                self.logger.warning(
                    "Configuration %s of host %s no longer exists, "
                    "unassigning it",
                    host.configuration.name,
                    host.name,
                )
                unassigned.append(host.name)
        return unassigned

