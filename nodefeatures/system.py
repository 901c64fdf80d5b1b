"""Operating system features from os-release."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from . import hostdirs
from .base import FeatureSource, Features

log = logging.getLogger(__name__)

OS_RELEASE_FIELDS = ("ID", "VERSION_ID")

_RELEASE_RE = re.compile(r"^(?P<key>\w+)=(?P<value>.+)", re.ASCII)
_VERSION_RE = re.compile(r"^(?P<major>\d+)(\.(?P<minor>\d+))?(\..*)?\Z", re.ASCII | re.DOTALL)


def parse_os_release(path: str | None = None) -> dict[str, str]:
    """Read an os-release file into a mapping with quotes removed.

    Raises OSError if the file cannot be read.
    """
    if path is None:
        path = hostdirs.ETC_DIR.path("os-release")
    release: dict[str, str] = {}
    for line in Path(path).read_text().split("\n"):
        m = _RELEASE_RE.match(line.removesuffix("\r"))
        if m is not None:
            release[m.group("key")] = m.group("value").strip('"')
    return release


def split_version(version: str) -> dict[str, str]:
    """Split a numeric version into major and minor components.

    Missing components are empty strings; a non-numeric version yields
    an empty mapping.
    """
    m = _VERSION_RE.match(version)
    if m is None:
        return {}
    return {"major": m.group("major"), "minor": m.group("minor") or ""}


class SystemSource(FeatureSource):
    """Discovers operating system features."""

    name = "system"

    def discover(self) -> Features:
        features: Features = {}
        try:
            release = parse_os_release()
        except (OSError, UnicodeDecodeError) as err:
            log.error("failed to get os-release: %s", err)
            return features

        for key in OS_RELEASE_FIELDS:
            if key not in release:
                continue
            value = release[key]
            feature = "os_release." + key
            features[feature] = value
            if key == "VERSION_ID":
                for sub_key, sub_value in split_version(value).items():
                    if sub_value:
                        features[f"{feature}.{sub_key}"] = sub_value
        return features