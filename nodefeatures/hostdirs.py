"""Locations of the inspected host's system directories."""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass

_PATH_PREFIX_ENV = "NODEFEATURES_PATH_PREFIX"


def _join(*elems: str) -> str:
    """Join path elements the way a path-cleaning join does: empty parts
    are dropped, absolute parts do not discard earlier ones, and the
    result is normalised."""
    parts = [elem for elem in elems if elem]
    if not parts:
        return ""
    cleaned = posixpath.normpath("/".join(parts))
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


@dataclass(frozen=True)
class HostDir:
    """A directory of the host system, possibly mounted under a prefix."""

    root: str

    def path(self, *args: str) -> str:
        """Return the full path of a file below this directory."""
        return _join(self.root, *args)

    def __str__(self) -> str:
        return self.root

    def __fspath__(self) -> str:
        return self.root


PATH_PREFIX = os.environ.get(_PATH_PREFIX_ENV, "/")

BOOT_DIR = HostDir(PATH_PREFIX + "boot")
ETC_DIR = HostDir(PATH_PREFIX + "etc")
SYSFS_DIR = HostDir(PATH_PREFIX + "sys")