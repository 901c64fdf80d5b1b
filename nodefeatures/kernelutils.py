"""Reading the kernel version and the kernel build configuration."""

from __future__ import annotations

import gzip
import logging
import os
import re
from pathlib import Path

from . import hostdirs
from .base import DiscoveryError

log = logging.getLogger(__name__)

OSRELEASE_PATH = "/proc/sys/kernel/osrelease"

# Maximum length of a label value accepted by the cluster.
LABEL_VALUE_MAX_LENGTH = 63

_KCONFIG_RE = re.compile(r"^CONFIG_(?P<flag>\w+)=(?P<value>.+)", re.ASCII)


def get_kernel_version(osrelease_path: str = OSRELEASE_PATH) -> str:
    """Return the running kernel's release string."""
    return Path(osrelease_path).read_text().strip()


def parse_kconfig_text(text: str) -> dict[str, str]:
    """Parse kernel config text into a mapping of option name to value.

    Options set to ``y`` or ``m`` map to ``"true"``; other values have
    their surrounding quotes removed and are dropped if too long.
    """
    kconfig: dict[str, str] = {}
    for line in text.split("\n"):
        m = _KCONFIG_RE.match(line)
        if m is None:
            continue
        flag, value = m.group("flag"), m.group("value")
        if value in ("y", "m"):
            kconfig[flag] = "true"
            continue
        value = value.strip('"')
        if len(value) > LABEL_VALUE_MAX_LENGTH:
            log.warning(
                "ignoring kconfig option '%s': value exceeds max length of %d characters",
                flag,
                LABEL_VALUE_MAX_LENGTH,
            )
            continue
        kconfig[flag] = value
    return kconfig


def kconfig_search_paths(kernel_version: str | None) -> list[str]:
    """Return the well-known locations of the kernel config, in search order."""
    if kernel_version is None:
        return ["/proc/config.gz", "/usr/src/linux/.config"]
    return [
        "/proc/config.gz",
        f"/usr/src/linux-{kernel_version}/.config",
        "/usr/src/linux/.config",
        f"/usr/lib/modules/{kernel_version}/config",
        f"/usr/lib/ostree-boot/config-{kernel_version}",
        f"/usr/lib/kernel/config-{kernel_version}",
        f"/usr/src/linux-headers-{kernel_version}/.config",
        f"/lib/modules/{kernel_version}/build/.config",
        hostdirs.BOOT_DIR.path(f"config-{kernel_version}"),
    ]


def _read_kconfig_file(path: str) -> bytes:
    if os.path.splitext(path)[1] == ".gz":
        with gzip.open(path, "rb") as f:
            return f.read()
    return Path(path).read_bytes()


def parse_kconfig(config_path: str = "") -> dict[str, str]:
    """Read and parse the kernel config.

    ``config_path`` is tried first, then the well-known locations.
    Raises DiscoveryError if no config could be read.
    """
    try:
        version: str | None = get_kernel_version()
    except OSError:
        version = None

    candidates = [config_path, *kconfig_search_paths(version)]
    for path in candidates:
        if not path:
            continue
        try:
            raw = _read_kconfig_file(path)
        except (OSError, EOFError):
            continue
        return parse_kconfig_text(raw.decode("utf-8", errors="replace"))

    raise DiscoveryError(f"failed to read kernel config from {candidates}")