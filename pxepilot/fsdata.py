#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Tools for reading, caching and rendering files from the config dir."""
import hashlib
import logging
import os
import typing as t
from pathlib import Path

from jinja2 import StrictUndefined, Template, TemplateError

from pxepilot.logging import get as get_logger

SHA256 = t.NewType("SHA256", str)


def compute_sha256(content: bytes) -> SHA256:
    """Get the hex SHA256 digest of the given content."""

    return SHA256(hashlib.sha256(content).hexdigest())


class FileSystemCache:
    """
    Cache file contents, keyed by path and invalidated on mtime change.

    Catalog reloads read every bootloader and configuration file again;
    the cache makes that cheap for files which did not change and lets
    callers ask which files did.

    Parameters
    -----------
    root_dir : str or Path
        Directory files are expected to live under. Only used for logging.
    max_file_size_bytes : int, optional
        Files larger than this are read but never cached.
    """

    __slots__ = ["root", "cache", "logger", "max_file_size_bytes"]

    def __init__(
        self,
        root_dir: t.Union[str, Path],
        max_file_size_bytes: t.Optional[int] = None,
    ):
        self.root: Path = Path(root_dir)
        # path hash: (content, mtime in ns)
        self.cache: t.Dict[SHA256, t.Tuple[bytes, int]] = {}
        self.logger: logging.Logger = get_logger("FileSystemCache")
        self.max_file_size_bytes = max_file_size_bytes

        self.logger.info("Caching files from %s", repr(str(self.root)))

    @staticmethod
    def get_key(path: Path) -> SHA256:
        """Get cache key for the given path."""

        return compute_sha256(str(path).encode("utf-8"))

    def is_dirty(self, path: Path) -> bool:
        """
        Check if the given path changed on disk since it was cached.

        Raises
        ------
        ValueError
            If the path was never cached.
        OSError
            If the path cannot be stat'ed.
        """

        entry = self.cache.get(self.get_key(path))
        if entry is None:
            raise ValueError(
                f"Path is not present in the cache: {repr(str(path))}"
            )
        if entry[1] < path.stat().st_mtime_ns:
            self.logger.info("Found dirty file in cache: %s", repr(str(path)))
            return True
        return False

    def get(self, path: Path) -> t.Optional[bytes]:
        """
        Return cached content for the path, or None if it isn't cached.

        Dirty entries are re-read from disk before being returned.

        Raises
        ------
        OSError
        """

        entry = self.cache.get(self.get_key(path))
        if entry is None:
            return None
        if self.is_dirty(path):
            if not self.put(path):
                # file grew past the size limit, stop serving stale data
                del self.cache[self.get_key(path)]
                return None
            return self.cache[self.get_key(path)][0]
        return entry[0]

    def put(self, path: Path, content: t.Optional[bytes] = None) -> bool:
        """
        Cache the given path, reading it if `content` is not given.

        Returns False if the file is over `max_file_size_bytes`.

        Raises
        ------
        OSError
            If the path cannot be read.
        """

        stat = path.stat()
        size = stat.st_size if content is None else len(content)
        if (
            self.max_file_size_bytes is not None
            and size > self.max_file_size_bytes
        ):
            self.logger.debug(
                "Not caching %s, size %d is over the max of %d bytes",
                repr(str(path)),
                size,
                self.max_file_size_bytes,
            )
            return False

        if content is None:
            content = path.read_bytes()
        self.logger.debug(
            "Caching %s: SHA256 %s, mtime_ns %d",
            repr(str(path)),
            compute_sha256(content),
            stat.st_mtime_ns,
        )
        self.cache[self.get_key(path)] = (content, stat.st_mtime_ns)
        return True


class DataFile:
    """
    A file from the config directory, read through an optional cache.

    Parameters
    ----------
    path : Path
    cache : FileSystemCache, optional
    """

    __slots__ = ("path", "cache")

    def __init__(self, path: Path, cache: t.Optional[FileSystemCache] = None):
        self.path: Path = path
        self.cache: t.Optional[FileSystemCache] = cache

    def validate(self):
        """
        Check that the data file is safe to read.

        Raises
        ------
        ValueError
            if the path is missing, not a regular file, relative, a symlink
            or unreadable.
        """

        checks = (
            (lambda p: p.exists(), "Path does not exist"),
            (lambda p: p.is_file(), "Path is not a file"),
            (lambda p: p.is_absolute(), "Path is relative"),
            (lambda p: not p.is_symlink(), "Path is a symlink"),
            (lambda p: os.access(p, os.R_OK), "Path is not readable"),
        )
        for check, msg in checks:
            if not check(self.path):
                raise ValueError(f"{msg}: {self.path}")

    def read(self) -> bytes:
        """Validate and read the file, going through the cache if set."""

        self.validate()
        if self.cache is None:
            return self.path.read_bytes()

        cached = self.cache.get(self.path)
        if cached is not None:
            return cached
        content = self.path.read_bytes()
        self.cache.put(self.path, content)
        return content


class DataJinjaTemplate(DataFile):
    """
    A Jinja2 template from the config directory.

    Undefined variables are errors, so a configuration referencing a
    variable we don't provide fails at load time instead of rendering
    an empty string into a boot file.
    """

    @staticmethod
    def render_jinja(source: str, **context: t.Any) -> str:
        """Render the given jinja2 source using kwargs as vars."""

        return Template(source, undefined=StrictUndefined).render(**context)

    def render(self, **context: t.Any) -> str:
        """
        Read and render the template with the given variables.

        Raises
        ------
        ValueError
            If the file cannot be read or references undefined variables.
        """

        logger = get_logger("DataJinjaTemplate")
        logger.debug("Rendering %s with args: %s", self.path, context)
        content = self.read().decode("utf-8")
        try:
            return self.render_jinja(content, **context)
        except TemplateError as err:
            raise ValueError(f"Unable to render {self.path}: {err}") from err


def find_files(
    root: Path,
    logger: logging.Logger,
    suffix: t.Optional[str] = None,
) -> t.List[Path]:
    """
    Recursively list files under root, sorted, optionally by suffix.

    Walk errors are logged as warnings and otherwise ignored.
    """

    def on_error(err: OSError):
        logger.warning("Error occurred while looking for files: %s", err)

    found: t.List[Path] = []
    for (path, _, files) in os.walk(root, onerror=on_error):
        for name in files:
            if suffix is None or name.endswith(suffix):
                found.append(Path(path) / name)
    return sorted(found)
