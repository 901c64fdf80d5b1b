"""Memory features: NUMA topology and NVDIMM devices."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from . import hostdirs
from .base import FeatureSource, Features

log = logging.getLogger(__name__)


def is_numa() -> bool:
    """Return True if more than one memory node is online.

    Raises OSError if the node list cannot be read.
    """
    online = Path(hostdirs.SYSFS_DIR.path("devices/system/node/online")).read_text()
    return online.strip() != "0"


def detect_nvdimm() -> dict[str, bool]:
    """Return NVDIMM features: device presence and DAX-configured regions.

    Raises OSError if the NVDIMM class directory exists but cannot be read.
    """
    features: dict[str, bool] = {}
    try:
        devices = os.listdir(hostdirs.SYSFS_DIR.path("class/nd"))
    except FileNotFoundError:
        return {}
    if devices:
        features["present"] = True

    try:
        regions = os.listdir(hostdirs.SYSFS_DIR.path("bus/nd/devices"))
    except OSError as err:
        log.warning("failed to detect NVDIMM configuration: %s", err)
    else:
        if any(name.startswith("dax") for name in regions):
            features["dax"] = True
    return features


class MemorySource(FeatureSource):
    """Discovers memory features."""

    name = "memory"

    def discover(self) -> Features:
        features: Features = {}

        try:
            if is_numa():
                features["numa"] = True
        except OSError as err:
            log.error("failed to detect NUMA topology: %s", err)

        try:
            nvdimm = detect_nvdimm()
        except OSError as err:
            log.error("NVDIMM detection failed: %s", err)
        else:
            for key, value in nvdimm.items():
                features["nv." + key] = value

        return features