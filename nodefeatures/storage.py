"""Storage feature detection."""

from __future__ import annotations

import os
from pathlib import Path

from . import hostdirs
from .base import DiscoveryError, FeatureSource, Features


class StorageSource(FeatureSource):
    """Reports whether a non-rotational block device is attached."""

    name = "storage"

    def discover(self) -> Features:
        features: Features = {}
        try:
            block_devices = sorted(os.listdir(hostdirs.SYSFS_DIR.path("block")))
        except OSError:
            return features

        for bdev in block_devices:
            fname = hostdirs.SYSFS_DIR.path("block", bdev, "queue/rotational")
            try:
                data = Path(fname).read_bytes()
            except OSError as err:
                raise DiscoveryError(f"can't read rotational status: {err}") from err
            if data.startswith(b"0"):
                features["nonrotationaldisk"] = True
                break
        return features