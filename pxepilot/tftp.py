# -*- coding: utf-8 -*-
"""Write rendered configurations where bootloaders look for them."""
import typing as t
from pathlib import Path

from pxepilot.catalog import Configuration
from pxepilot.errors import ConfigWriteFailed
from pxepilot.host import Host
from pxepilot.logging import get as get_logger
from pxepilot.vars import PXE_MAC_FILE_PREFIX


class ConfigWriter:
    """
    Place a host's configuration under the TFTP root, one file per MAC.

    Files land at ``<root>/<bootloader.config_path>/01-<mac>``, the MAC
    written with dashes, which is where pxelinux style bootloaders look
    first.

    Parameters
    ----------
    root : str or Path
        TFTP root directory.
    """

    def __init__(self, root: t.Union[str, Path]):
        self.root = Path(root)
        self.logger = get_logger("ConfigWriter")

    def paths(self, host: Host, configuration: Configuration) -> t.List[Path]:
        """Return the files written for the host."""

        directory = self.root / configuration.bootloader.config_path
        return [
            directory / (PXE_MAC_FILE_PREFIX + mac.replace(":", "-"))
            for mac in host.macs
        ]

    def write(self, host: Host, configuration: Configuration) -> t.List[Path]:
        """
        Write the configuration content for every MAC of the host.

        Raises
        ------
        ConfigWriteFailed
            If a file cannot be written.
        """

        paths = self.paths(host, configuration)
        try:
            for path in paths:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(configuration.content, encoding="utf-8")
        except OSError as err:
            self.logger.error(
                "Unable to write configuration %s for %s: %s",
                configuration.name,
                host.name,
                err,
            )
            raise ConfigWriteFailed(host.name, str(err)) from err
        self.logger.info(
            "Wrote configuration %s for %s to %s",
            configuration.name,
            host.name,
            ", ".join(str(p) for p in paths),
        )
        return paths
