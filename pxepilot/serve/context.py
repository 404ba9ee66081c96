#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Set variables needed for the app at runtime."""
import logging
import os
import typing as t
from dataclasses import dataclass
from pathlib import Path

import redis

from pxepilot.catalog import CatalogReference, ConfigurationCatalog
from pxepilot.cli.config import Config
from pxepilot.deploy import DeploymentOrchestrator
from pxepilot.fsdata import FileSystemCache
from pxepilot.host import hosts_from_dir
from pxepilot.logging import DUMB_LOGGER
from pxepilot.logging import get as get_logger
from pxepilot.power import AgentBackend, IPMIBackend, PowerAdapter
from pxepilot.refresh import RefreshEngine
from pxepilot.registry import (
    BaseHostStore,
    HostRegistry,
    MemoryHostStore,
    RedisHostStore,
)
from pxepilot.tftp import ConfigWriter
from pxepilot.vars import EXEC_DIR, HOSTS_DIR


@dataclass
class ServeContext:
    """
    Everything an operation needs at runtime, built from a `Config`.

    Assumes logging has already been setup.
    """

    config: Config
    config_dir: Path
    hosts_dir: Path
    exec_dir: Path
    log_dir: Path
    cache: FileSystemCache
    registry: HostRegistry
    catalog: CatalogReference
    adapter: PowerAdapter
    orchestrator: DeploymentOrchestrator
    refresher: RefreshEngine

    @staticmethod
    def get_dirs(
        config: Config, logger: logging.Logger = DUMB_LOGGER
    ) -> t.Tuple[Path, Path, Path, Path]:
        """
        Return config, hosts, exec and log directories.

        Raises
        ------
        ValueError
            If the config directory does not exist, or the log directory
            does not exist while logs are persisted.
        """

        config_dir = Path(config.config_dir).absolute()
        hosts_dir = config_dir / HOSTS_DIR
        exec_dir = config_dir / EXEC_DIR
        log_dir = Path(config.log_dir).absolute()

        if not os.path.isdir(config_dir):
            raise ValueError(
                f"CONFIG directory does not exist, unable to start: "
                f"{config_dir}"
            )
        if config.persist_log and not os.path.isdir(log_dir):
            raise ValueError(
                f"LOG directory does not exist, unable to start: {log_dir}"
            )

        logger.info(
            f"Using the following directories: config: {str(config_dir)}, "
            f"hosts: {str(hosts_dir.relative_to(config_dir))}, "
            f"exec: {str(exec_dir.relative_to(config_dir))}, "
            f"log: {str(log_dir)}"
        )
        return config_dir, hosts_dir, exec_dir, log_dir

    @staticmethod
    def get_store(
        config: Config, logger: logging.Logger = DUMB_LOGGER
    ) -> BaseHostStore:
        """Get the host store described by the given Config."""

        if config.redis:
            logger.info("Using redis host store at %s", config.redis_url)
            return RedisHostStore(redis.from_url(config.redis_url))
        logger.info("Using in-memory host store")
        return MemoryHostStore()

    @staticmethod
    def get_cache(
        config: Config, logger: logging.Logger = DUMB_LOGGER
    ) -> FileSystemCache:
        """Get FileSystemCache instance for the config directory."""

        logger.debug("Creating cache for %s", config.config_dir)
        return FileSystemCache(
            os.path.abspath(config.config_dir),
            max_file_size_bytes=config.max_cache_file_size,
        )

    @staticmethod
    def get_adapter(config: Config) -> PowerAdapter:
        """Get the PowerAdapter described by the given Config."""

        return PowerAdapter(
            vendor=IPMIBackend(
                timeout=config.power_timeout,
                username=config.ipmi_username,
                password=config.ipmi_password,
                executable=config.ipmitool,
            ),
            agent=AgentBackend(timeout=config.power_timeout),
        )

    @classmethod
    def from_config(
        cls, config: Config, adapter: t.Optional[PowerAdapter] = None
    ) -> "ServeContext":
        """
        Create ServeContext using the given Config instance.

        Loads the catalog and registers the hosts of the hosts directory.

        Parameters
        ----------
        config : Config
        adapter : PowerAdapter, optional
            Used instead of the one built from the config.
        """

        logger = get_logger("ServeContext")
        config_dir, hosts_dir, exec_dir, log_dir = cls.get_dirs(
            config, logger
        )
        cache = cls.get_cache(config, logger)
        catalog = CatalogReference(
            ConfigurationCatalog.from_dir(config_dir, logger, cache)
        )
        registry = HostRegistry(cls.get_store(config, logger))
        if adapter is None:
            adapter = cls.get_adapter(config)
        writer = ConfigWriter(config.tftp_root) if config.write_tftp else None

        refresher = RefreshEngine(registry, adapter, config.max_workers)
        refresher.sync(hosts_from_dir(hosts_dir, logger, cache))
        registry.reconcile_configurations(catalog.get())

        return cls(
            config=config,
            config_dir=config_dir,
            hosts_dir=hosts_dir,
            exec_dir=exec_dir,
            log_dir=log_dir,
            cache=cache,
            registry=registry,
            catalog=catalog,
            adapter=adapter,
            orchestrator=DeploymentOrchestrator(
                registry,
                catalog,
                adapter,
                writer=writer,
                max_workers=config.max_workers,
            ),
            refresher=refresher,
        )

    def reload_catalog(self) -> ConfigurationCatalog:
        """
        Load the catalog from disk again and swap it in.

        Hosts whose configuration disappeared are unassigned.

        Raises
        ------
        ValueError
        OSError
            If the new catalog cannot be loaded, the current one is kept.
        """

        logger = get_logger("ServeContext")
        catalog = ConfigurationCatalog.from_dir(
            self.config_dir, logger, self.cache
        )
        self.catalog.swap(catalog)
        self.registry.reconcile_configurations(catalog)
        return catalog

    def start(self):
        """Run one-time startup tasks."""

        if isinstance(self.registry.store, RedisHostStore):
            self.registry.store.ping()

    def stop(self):
        """Run one-time teardown tasks."""


_CONTEXT: ServeContext


def get_context() -> ServeContext:
    """Return the current ServeContext instance."""

    return _CONTEXT


def set_context(ctx: ServeContext):
    """Set the current context to the given ServeContext."""

    global _CONTEXT  # pylint: disable=global-statement
    _CONTEXT = ctx
