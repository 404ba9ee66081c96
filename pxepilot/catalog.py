#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Bootloaders and the boot configurations bound to them.

The catalog is loaded from the configuration directory:

* ``bootloaders/*.json``: one `Bootloader` per file.
* ``configurations/<bootloader>/<name>``: content of configuration
  ``name`` for that bootloader. Files ending in ``.j2`` are rendered as
  jinja templates with ``name`` and ``bootloader`` available, the suffix
  being dropped from the configuration name.

A loaded catalog is never mutated. Reloading builds a new catalog and swaps
it into a `CatalogReference`, so anything holding the previous catalog keeps
a consistent view.
"""
import logging
import threading
import typing as t
from pathlib import Path
from types import MappingProxyType

from pydantic import ConfigDict

from pxepilot.fsdata import (
    DataFile,
    DataJinjaTemplate,
    FileSystemCache,
    find_files,
)
from pxepilot.logging import DUMB_LOGGER
from pxepilot.model import PilotModel
from pxepilot.vars import BOOTLOADERS_DIR, CONFIGURATIONS_DIR, TEMPLATE_SUFFIX


class Bootloader(PilotModel):
    """
    A network bootloader served over TFTP.

    Attributes
    ----------
    name : str
    file : str
        Bootloader binary, relative to the TFTP root (i.e. pxelinux.0).
    config_path : str
        Directory, relative to the TFTP root, per-host configurations
        are written into (i.e. pxelinux.cfg).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    file: str
    config_path: str

    @classmethod
    def from_path(
        cls,
        path: Path,
        logger: logging.Logger,
        cache: t.Optional[FileSystemCache] = None,
    ) -> "Bootloader":
        """
        Parse the given bootloader file.

        Raises
        ------
        OSError
            If the path cannot be read.
        ValueError
            If the file does not describe a Bootloader.
        """

        try:
            return cls.from_json(DataFile(path, cache=cache).read())
        except (OSError, ValueError) as err:
            logger.error("Unable to parse bootloader file %s: %s", path, err)
            raise err


class Configuration(PilotModel):
    """A named boot configuration, rendered for one bootloader."""

    model_config = ConfigDict(frozen=True)

    name: str
    bootloader: Bootloader
    content: str


class ConfigurationCatalog:
    """
    Immutable set of bootloaders and configurations.

    Parameters
    ----------
    bootloaders : iterable of Bootloader
    configurations : iterable of Configuration

    Raises
    ------
    ValueError
        On duplicate names, or if a configuration references a bootloader
        which is not part of the catalog.
    """

    __slots__ = ("_bootloaders", "_configurations")

    def __init__(
        self,
        bootloaders: t.Iterable[Bootloader] = (),
        configurations: t.Iterable[Configuration] = (),
    ):
        loaders: t.Dict[str, Bootloader] = {}
        for bootloader in bootloaders:
            if bootloader.name in loaders:
                raise ValueError(f"Duplicate bootloader: {bootloader.name}")
            loaders[bootloader.name] = bootloader

        configs: t.Dict[str, Configuration] = {}
        for configuration in configurations:
            if configuration.name in configs:
                raise ValueError(
                    f"Duplicate configuration: {configuration.name}"
                )
            if loaders.get(configuration.bootloader.name) != (
                configuration.bootloader
            ):
                raise ValueError(
                    f"Configuration {configuration.name} uses unknown "
                    f"bootloader {configuration.bootloader.name}"
                )
            configs[configuration.name] = configuration

        self._bootloaders = MappingProxyType(loaders)
        self._configurations = MappingProxyType(configs)

    def __len__(self) -> int:
        return len(self._configurations)

    def __contains__(self, name: str) -> bool:
        return name in self._configurations

    def resolve(self, name: str) -> t.Optional[Configuration]:
        """Return the configuration with the given name, if any."""

        return self._configurations.get(name)

    def bootloader(self, name: str) -> t.Optional[Bootloader]:
        """Return the bootloader with the given name, if any."""

        return self._bootloaders.get(name)

    def configurations(self) -> t.List[Configuration]:
        """Return all configurations sorted by name."""

        return [self._configurations[k] for k in sorted(self._configurations)]

    def bootloaders(self) -> t.List[Bootloader]:
        """Return all bootloaders sorted by name."""

        return [self._bootloaders[k] for k in sorted(self._bootloaders)]

    @classmethod
    def from_dir(
        cls,
        config_dir: Path,
        logger: logging.Logger = DUMB_LOGGER,
        cache: t.Optional[FileSystemCache] = None,
    ) -> "ConfigurationCatalog":
        """
        Load the catalog from the given configuration directory.

        Missing ``bootloaders`` or ``configurations`` directories give
        an empty catalog, with a warning.

        Raises
        ------
        ValueError
            If a file cannot be parsed or rendered, or a configuration
            lives under a directory not naming a known bootloader.
        OSError
            If a file cannot be read.
        """

        bootloaders_dir = config_dir / BOOTLOADERS_DIR
        configurations_dir = config_dir / CONFIGURATIONS_DIR
        for directory in (bootloaders_dir, configurations_dir):
            if not directory.is_dir():
                logger.warning("Directory %s does not exist", directory)

        logger.info("Looking for bootloaders in %s", bootloaders_dir)
        bootloaders = {
            loader.name: loader
            for loader in (
                Bootloader.from_path(path, logger=logger, cache=cache)
                for path in find_files(bootloaders_dir, logger, ".json")
            )
        }

        logger.info("Looking for configurations in %s", configurations_dir)
        configurations = []
        for path in find_files(configurations_dir, logger):
            relative = path.relative_to(configurations_dir)
            if len(relative.parts) != 2:
                raise ValueError(
                    "Expected configuration file at "
                    f"<bootloader>/<configuration>, got {relative}"
                )
            bootloader = bootloaders.get(relative.parts[0])
            if bootloader is None:
                raise ValueError(
                    f"Configuration {path} is under unknown bootloader "
                    f"{relative.parts[0]}"
                )
            configurations.append(
                _load_configuration(path, bootloader, logger, cache)
            )

        catalog = cls(bootloaders.values(), configurations)
        logger.info(
            "Loaded %d bootloaders and %d configurations",
            len(bootloaders),
            len(catalog),
        )
        return catalog


def _load_configuration(
    path: Path,
    bootloader: Bootloader,
    logger: logging.Logger,
    cache: t.Optional[FileSystemCache],
) -> Configuration:
    name = path.name
    try:
        if name.endswith(TEMPLATE_SUFFIX):
            name = name.removesuffix(TEMPLATE_SUFFIX)
            content = DataJinjaTemplate(path, cache=cache).render(
                name=name, bootloader=bootloader.model_dump()
            )
        else:
            content = DataFile(path, cache=cache).read().decode("utf-8")
        return Configuration(name=name, bootloader=bootloader, content=content)
    except (OSError, ValueError) as err:
        logger.error("Unable to load configuration %s: %s", path, err)
        raise err


class CatalogReference:
    """
    Hold the current catalog, swapping it atomically on reload.

    Readers call `get` once per operation and work on that snapshot.
    """

    def __init__(self, catalog: t.Optional[ConfigurationCatalog] = None):
        self._catalog = catalog if catalog is not None else (
            ConfigurationCatalog()
        )
        self._swap_lock = threading.Lock()

    def get(self) -> ConfigurationCatalog:
        """Return the current catalog."""

        return self._catalog

    def swap(self, catalog: ConfigurationCatalog) -> ConfigurationCatalog:
        """Replace the current catalog, returning the previous one."""

        with self._swap_lock:
            previous = self._catalog
            self._catalog = catalog
        return previous
