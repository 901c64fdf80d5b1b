"""Network features: SR-IOV capable and configured interfaces."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from . import hostdirs
from .base import DiscoveryError, FeatureSource, Features

log = logging.getLogger(__name__)

FLAG_UP = 1 << 0
FLAG_LOOPBACK = 1 << 3

SYSFS_BASE_DIR = "class/net"

_INT_RE = re.compile(r"[+-]?[0-9]+")
_UINT64_MAX = (1 << 64) - 1


def _parse_uint(text: str) -> int:
    """Parse an unsigned integer, taking the base from its prefix."""
    if not text or not text[0].isdigit():
        raise ValueError(f"invalid syntax: {text!r}")
    lowered = text.lower()
    if lowered.startswith(("0x", "0b", "0o")):
        value = int(text, 0)
    elif len(text) > 1 and text.startswith("0"):
        value = int(text[1:].lstrip("o"), 8) if text[1:] else 0
    else:
        value = int(text, 10)
    if value > _UINT64_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value


def _atoi(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"invalid syntax: {text!r}")
    return int(text)


def read_if_flags(name: str) -> int:
    """Return the flags of network interface ``name``.

    Raises DiscoveryError if they cannot be read or parsed.
    """
    try:
        raw = Path(hostdirs.SYSFS_DIR.path(SYSFS_BASE_DIR, name, "flags")).read_text()
    except OSError as err:
        raise DiscoveryError(f"failed to read flags for interface {name!r}: {err}") from err
    try:
        return _parse_uint(raw.strip())
    except ValueError as err:
        raise DiscoveryError(f"failed to parse flags for interface {name!r}: {err}") from err


def _read_count(name: str, file_name: str) -> int:
    return _atoi(Path(hostdirs.SYSFS_DIR.path(SYSFS_BASE_DIR, name, file_name)).read_text().strip())


class NetworkSource(FeatureSource):
    """Reports SR-IOV capable and configured network interfaces."""

    name = "network"

    def discover(self) -> Features:
        features: Features = {}
        try:
            interfaces = sorted(os.listdir(hostdirs.SYSFS_DIR.path(SYSFS_BASE_DIR)))
        except OSError as err:
            raise DiscoveryError(f"failed to list network interfaces: {err}") from err

        for name in interfaces:
            try:
                flags = read_if_flags(name)
            except DiscoveryError as err:
                log.error("%s", err)
                continue
            if not flags & FLAG_UP or flags & FLAG_LOOPBACK:
                continue

            try:
                total = _read_count(name, "device/sriov_totalvfs")
            except OSError as err:
                log.debug("SR-IOV not supported for network interface: %s: %s", name, err)
                continue
            except ValueError as err:
                log.error(
                    "error in obtaining maximum supported number of virtual functions "
                    "for network interface: %s: %s",
                    name,
                    err,
                )
                continue
            if total <= 0:
                continue

            log.debug("SR-IOV capability is detected on the network interface: %s", name)
            log.debug(
                "%d maximum supported number of virtual functions on network interface: %s",
                total,
                name,
            )
            features["sriov.capable"] = True

            try:
                num = _read_count(name, "device/sriov_numvfs")
            except OSError as err:
                log.debug("SR-IOV not configured for network interface: %s: %s", name, err)
                continue
            except ValueError as err:
                log.error(
                    "error in obtaining the configured number of virtual functions "
                    "for network interface: %s: %s",
                    name,
                    err,
                )
                continue
            if num > 0:
                log.debug("%d virtual functions configured on network interface: %s", num, name)
                features["sriov.configured"] = True
                break
            if num == 0:
                log.debug("SR-IOV not configured on network interface: %s", name)
        return features