"""IOMMU feature detection."""

from __future__ import annotations

import os

from . import hostdirs
from .base import DiscoveryError, FeatureSource, Features


class IommuSource(FeatureSource):
    """Reports whether IOMMU devices are present."""

    name = "iommu"

    def discover(self) -> Features:
        features: Features = {}
        try:
            devices = os.listdir(hostdirs.SYSFS_DIR.path("class/iommu/"))
        except OSError as err:
            raise DiscoveryError(f"failed to check for IOMMU support: {err}") from err
        if devices:
            features["enabled"] = True
        return features